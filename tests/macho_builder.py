"""Helpers to assemble small Mach-O images for the tests."""

import dataclasses
import struct

MH_MAGIC = 0xFEEDFACE
MH_MAGIC_64 = 0xFEEDFACF

CPU_TYPE_X86_64 = 0x01000007
CPU_TYPE_ARM64 = 0x0100000C
CPU_TYPE_I386 = 0x7


def pack(order: str, fmt: str, *values) -> bytes:
    return struct.pack(order + fmt, *values)


def section_entry(
    sectname: str,
    segname: str,
    addr: int,
    size: int,
    offset: int,
    *,
    bits: int = 64,
    align: int = 0,
    reloff: int = 0,
    nreloc: int = 0,
    flags: int = 0,
    order: str = "<",
) -> bytes:
    names = struct.pack("16s16s", sectname.encode(), segname.encode())
    if bits == 32:
        return names + pack(
            order, "9I", addr, size, offset, align, reloff, nreloc, flags, 0, 0
        )

    return names + pack(
        order, "2Q8I", addr, size, offset, align, reloff, nreloc, flags, 0, 0, 0
    )


def segment_body(
    name: str,
    *,
    bits: int = 64,
    vmaddr: int = 0,
    vmsize: int = 0,
    fileoff: int = 0,
    filesize: int = 0,
    maxprot: int = 7,
    initprot: int = 5,
    flags: int = 0,
    sections: tuple[bytes, ...] = (),
    nsects: int | None = None,
    order: str = "<",
) -> bytes:
    struct_fmt = "16s8I" if bits == 32 else "16s4Q4I"
    if nsects is None:
        nsects = len(sections)

    return pack(
        order,
        struct_fmt,
        name.encode(),
        vmaddr,
        vmsize,
        fileoff,
        filesize,
        maxprot,
        initprot,
        nsects,
        flags,
    ) + b"".join(sections)


def lc_str_body(string: str, fields: bytes = b"", order: str = "<") -> bytes:
    """lc_str offset, then any fixed fields, then the string itself.
    The offset counts from the start of the command."""
    offset = 8 + 4 + len(fields)
    return pack(order, "I", offset) + fields + string.encode() + b"\x00"


def dylib_body(
    name: str,
    timestamp: int = 2,
    current_version: int = 0x10000,
    compatibility_version: int = 0x10000,
    order: str = "<",
) -> bytes:
    fields = pack(order, "3I", timestamp, current_version, compatibility_version)
    return lc_str_body(name, fields, order)


def uleb128(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


@dataclasses.dataclass
class MachOBuilder:
    bits: int = 64
    order: str = "<"
    cputype: int = CPU_TYPE_X86_64
    cpusubtype: int = 3
    filetype: int = 2
    flags: int = 0
    # Override the number of commands written to the header.
    ncmds: int | None = None
    commands: list[tuple[int, bytes]] = dataclasses.field(default_factory=list)

    def add(self, cmd: int, body: bytes) -> "MachOBuilder":
        self.commands.append((cmd, body))
        return self

    @property
    def header_size(self) -> int:
        return 28 if self.bits == 32 else 32

    def command_bytes(self) -> bytes:
        """cmdsize covers only cmd + body. Any alignment padding comes
        after the command, where the parser is expected to skip it."""
        align = self.bits // 8
        out = b""
        for cmd, body in self.commands:
            size = 8 + len(body)
            out += pack(self.order, "2I", cmd, size) + body
            out += b"\x00" * (-size % align)
        return out

    def build(self, trailer: bytes = b"", trailer_offset: int | None = None) -> bytes:
        """Header and commands, then the trailer.
        If trailer_offset is set, the trailer starts at that file offset."""
        commands = self.command_bytes()
        magic = MH_MAGIC if self.bits == 32 else MH_MAGIC_64
        ncmds = len(self.commands) if self.ncmds is None else self.ncmds

        data = pack(
            self.order,
            "7I",
            magic,
            self.cputype,
            self.cpusubtype,
            self.filetype,
            ncmds,
            len(commands),
            self.flags,
        )
        if self.bits == 64:
            data += pack(self.order, "I", 0)

        data += commands

        if trailer_offset is not None:
            assert trailer_offset >= len(data)
            data += b"\x00" * (trailer_offset - len(data))

        return data + trailer
