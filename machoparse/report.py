"""JSON report of a decoded Mach-O file."""

import dataclasses
from typing import Literal

from pydantic import BaseModel, ConfigDict

from .macho.commands import AnyLoadCommand, GenericCommand, SegmentCommand
from .macho.header import MachOHeader
from .macho.parser import MachOFile


class JSONMachOReport(BaseModel):
    model_config = ConfigDict(ser_json_bytes="hex")

    file: str
    format: Literal[1]
    header: MachOHeader
    commands: list[AnyLoadCommand]


def _without_data(command: AnyLoadCommand) -> AnyLoadCommand:
    """Drop the byte payloads that would dominate the report."""
    if isinstance(command, SegmentCommand):
        return dataclasses.replace(
            command,
            sections=tuple(
                dataclasses.replace(section, data=b"") for section in command.sections
            ),
        )

    if isinstance(command, GenericCommand):
        return dataclasses.replace(command, data=b"")

    return command


def serialize_macho(filename: str, macho: MachOFile, include_data: bool = False) -> str:
    commands = list(macho.commands)
    if not include_data:
        commands = [_without_data(command) for command in commands]

    report = JSONMachOReport(
        file=filename, format=1, header=macho.header, commands=commands
    )
    return report.model_dump_json(indent=2)
