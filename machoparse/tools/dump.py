#!/usr/bin/env python3

import argparse
import dataclasses
import logging
from pathlib import Path

import colorama
import machoparse
from machoparse.macho import (
    GenericCommand,
    MachOError,
    MachOFile,
    Section,
    SegmentCommand,
    parse_file,
)
from machoparse.report import serialize_macho
from machoparse.settings.config import DumpConfig
from machoparse.settings.logging import (
    argparse_add_logging_args,
    argparse_parse_logging,
)

logger = logging.getLogger(__name__)

colorama.just_fix_windows_console()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        allow_abbrev=False,
        description="Print the header and load commands of a Mach-O file.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {machoparse.VERSION}"
    )
    parser.add_argument("filename", type=Path, help="Path to the Mach-O file")
    parser.add_argument(
        "--json", action="store_true", help="Print a JSON report instead of text"
    )
    parser.add_argument(
        "--config", type=Path, metavar="<file>", help="Path to a machoparse.yml"
    )
    parser.add_argument(
        "--show-data",
        action="store_true",
        default=None,
        help="Include section and raw command data",
    )
    parser.add_argument(
        "--no-color", "-n", action="store_true", help="Do not color the output"
    )
    argparse_add_logging_args(parser)

    args = parser.parse_args()

    argparse_parse_logging(args)
    return args


def load_config(args: argparse.Namespace) -> DumpConfig:
    config = DumpConfig.default()
    if args.config is not None:
        config = DumpConfig.from_file(args.config)

    # Command line wins over the config file.
    if args.show_data is not None:
        config = config.model_copy(update={"show_data": args.show_data})
    if args.no_color:
        config = config.model_copy(update={"color": False})

    return config


def format_value(value) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, int):
        return f"0x{value:x}"
    if isinstance(value, frozenset):
        return ", ".join(sorted(value)) or "-"
    if isinstance(value, tuple):
        return ", ".join(f"0x{v:x}" for v in value) or "-"
    if dataclasses.is_dataclass(value):
        return " ".join(
            f"{k}={format_value(v)}" for k, v in dataclasses.asdict(value).items()
        )
    return str(value)


def format_data(data: bytes, config: DumpConfig) -> str:
    shown = data[: config.max_data_bytes].hex(" ")
    if len(data) > config.max_data_bytes:
        shown += f" ... ({len(data)} bytes)"
    return shown


class Printer:
    def __init__(self, config: DumpConfig):
        self.config = config

    def color(self, color: str, text: str) -> str:
        if not self.config.color:
            return text
        return f"{color}{text}{colorama.Style.RESET_ALL}"

    def field(self, name: str, value, indent: int = 2):
        print(f"{' ' * indent}{name}: {format_value(value)}")

    def print_section(self, section: Section):
        print(self.color(colorama.Fore.CYAN, f"    section {section.sectname}"))
        for field in dataclasses.fields(section):
            if field.name in ("sectname", "data"):
                continue
            self.field(field.name, getattr(section, field.name), indent=6)
        if self.config.show_data:
            print(f"      data: {format_data(section.data, self.config)}")

    def print_command(self, index: int, command):
        title = f"[{index}] {command.type} (cmd 0x{command.cmd:x}) @ 0x{command.offset:x}"
        print(self.color(colorama.Fore.GREEN, title))

        for field in dataclasses.fields(command):
            if field.name in ("cmd", "type", "offset", "sections", "data"):
                continue
            self.field(field.name, getattr(command, field.name))

        if isinstance(command, SegmentCommand):
            for section in command.sections:
                self.print_section(section)
        elif isinstance(command, GenericCommand) and self.config.show_data:
            print(f"  data: {format_data(command.data, self.config)}")

    def print_macho(self, filename: str, macho: MachOFile):
        header = macho.header
        print(self.color(colorama.Fore.BLUE, filename))
        self.field("magic", header.magic)
        self.field("bits", str(header.bits))
        self.field("byte_order", header.byte_order.value)
        self.field(
            "cpu", f"{header.cpu.type}/{header.cpu.subtype} ({header.cpu.endian.value})"
        )
        self.field("filetype", header.filetype)
        self.field("ncmds", str(header.ncmds))
        self.field("sizeofcmds", header.sizeofcmds)
        self.field("flags", header.flags)
        if macho.base_address is not None:
            self.field("base_address", macho.base_address)

        for i, command in enumerate(macho.commands):
            if self.config.wants_command(command.type):
                self.print_command(i, command)


def main():
    args = parse_args()
    config = load_config(args)

    try:
        macho = parse_file(args.filename)
    except OSError as e:
        logger.error("Cannot read %s: %s", args.filename, e)
        return 1
    except MachOError as e:
        logger.error("%s: %s", args.filename, e)
        return 1

    if args.json:
        print(serialize_macho(str(args.filename), macho, include_data=config.show_data))
    else:
        Printer(config).print_macho(str(args.filename), macho)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
