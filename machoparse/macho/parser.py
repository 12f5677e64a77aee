import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .commands import (
    COMMAND_HEADER_SIZE,
    AnyLoadCommand,
    RawCommand,
    SegmentCommand,
    decode_command,
)
from .exceptions import CommandOutOfBoundsError, MachOFormatError
from .header import MachOHeader
from .reader import Buffer, ByteOrder, read_u32

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MachOFile:
    header: MachOHeader
    commands: tuple[AnyLoadCommand, ...]

    @property
    def segments(self) -> Iterator[SegmentCommand]:
        for command in self.commands:
            if isinstance(command, SegmentCommand):
                yield command

    def commands_of_type(self, type_name: str) -> Iterator[AnyLoadCommand]:
        for command in self.commands:
            if command.type == type_name:
                yield command

    @property
    def base_address(self) -> int | None:
        """The address that function starts are relative to:
        vmaddr of the first segment that is mapped with any protection."""
        for segment in self.segments:
            if not segment.initprot.is_none:
                return segment.vmaddr

        return None


def iter_raw_commands(
    data: Buffer, header: MachOHeader
) -> Iterator[RawCommand]:
    """Slice the command area after the header into ncmds raw commands.
    Each command starts on a multiple of the alignment for the file's width."""
    view = memoryview(data)[header.hsize :]
    align = header.alignment
    order: ByteOrder = header.byte_order

    offset = 0
    for i in range(header.ncmds):
        if offset + COMMAND_HEADER_SIZE > len(view):
            raise CommandOutOfBoundsError(f"Command {i} header out of bounds")

        cmd = read_u32(view, offset, order)
        cmdsize = read_u32(view, offset + 4, order)
        if cmdsize < COMMAND_HEADER_SIZE:
            raise CommandOutOfBoundsError(
                f"Command {i} has invalid size {cmdsize}"
            )

        size = cmdsize - COMMAND_HEADER_SIZE
        fileoff = header.hsize + offset

        offset += COMMAND_HEADER_SIZE
        if offset + size > len(view):
            raise CommandOutOfBoundsError(f"Command {i} body out of bounds")

        body = view[offset : offset + size]
        offset += size
        if offset % align != 0:
            offset += align - offset % align

        yield RawCommand(cmd=cmd, offset=fileoff, body=body)


def parse_commands(data: Buffer, header: MachOHeader) -> tuple[AnyLoadCommand, ...]:
    commands = []
    for raw in iter_raw_commands(data, header):
        command = decode_command(raw, header.byte_order, data)
        logger.debug(
            "0x%x: %s (0x%x), %d bytes", raw.offset, command.type, raw.cmd, len(raw.body)
        )
        commands.append(command)

    return tuple(commands)


def read_header(data: Buffer) -> MachOHeader | None:
    return MachOHeader.from_memory(data)


def taste(data: Buffer) -> bool:
    return MachOHeader.taste(data)


def parse(data: Buffer) -> MachOFile:
    """Decode the whole file. Raises MachOFormatError if this is not
    a thin Mach-O file and a MachOParseError if it is malformed."""
    header = read_header(data)
    if header is None:
        raise MachOFormatError("File not in a mach-o format")

    logger.debug(
        "Mach-O %d-bit %s, cpu %s/%s, %d commands",
        header.bits,
        header.byte_order.value,
        header.cpu.type,
        header.cpu.subtype,
        header.ncmds,
    )

    return MachOFile(header=header, commands=parse_commands(data, header))


def parse_file(filepath: Path) -> MachOFile:
    with filepath.open("rb") as f:
        data = f.read()

    return parse(data)
