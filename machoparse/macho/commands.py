"""
Load command records and the decoder for each command type.
Each record decodes itself from the command body with from_raw().
The body excludes the 8 byte cmd/cmdsize prefix. Decoders that need
absolute file offsets (segments, function starts) also get the whole file.
"""

import uuid
from dataclasses import dataclass
from typing import Callable, NamedTuple

from .constants import (
    SECTION_ATTRIBUTES_SYS_MASK,
    SECTION_ATTRIBUTES_USR_MASK,
    SECTION_SYS_NAMES,
    SECTION_TYPE_MASK,
    SECTION_USR_NAMES,
    SEGMENT_FLAG_NAMES,
    LoadCommandType,
    VmProt,
    command_type_name,
    section_type_name,
)
from .exceptions import (
    FunctionStartsError,
    InvalidCommandSizeError,
    LCStrOutOfBoundsError,
    SegmentOutOfBoundsError,
)
from .reader import Buffer, ByteOrder, read_u32, unpack
from .util import FlagNames, map_flags, read_cstring

# Size of the cmd and cmdsize fields that begin every load command.
COMMAND_HEADER_SIZE = 8


class RawCommand(NamedTuple):
    cmd: int
    # Absolute file offset of the start of the command.
    offset: int
    body: memoryview

    @property
    def type_name(self) -> str:
        return command_type_name(self.cmd)


def check_body_size(raw: RawCommand, expected: int):
    if len(raw.body) != expected:
        raise InvalidCommandSizeError(
            f"{raw.type_name} command at 0x{raw.offset:x}: body is {len(raw.body)} bytes, expected {expected}"
        )


def check_min_body_size(raw: RawCommand, minimum: int):
    if len(raw.body) < minimum:
        raise InvalidCommandSizeError(
            f"{raw.type_name} command at 0x{raw.offset:x}: body is {len(raw.body)} bytes, need at least {minimum}"
        )


def read_lc_str(body: memoryview, field_offset: int, order: ByteOrder) -> str:
    """Read the string referenced by the lc_str field at field_offset.
    The stored offset counts from the start of the command, so the
    command header size is taken off to index into the body."""
    if field_offset + 4 > len(body):
        raise LCStrOutOfBoundsError("lc_str field out of bounds")

    offset = read_u32(body, field_offset, order) - COMMAND_HEADER_SIZE
    if not 0 <= offset <= len(body):
        raise LCStrOutOfBoundsError(f"lc_str offset {offset + 8} out of bounds")

    return read_cstring(body[offset:])


def decode_function_starts(data: Buffer) -> tuple[int, ...]:
    """Decode the ULEB128 delta stream of LC_FUNCTION_STARTS.
    Addresses are relative to the base address of the image.
    A zero delta ends the table even if there are bytes left."""
    addresses = []
    address = 0

    delta = 0
    shift = 0
    for i, byte in enumerate(data):
        delta |= (byte & 0x7F) << shift
        if byte & 0x80:
            # Delta continues in the next byte.
            shift += 7
            if shift > 24:
                raise FunctionStartsError("function_starts delta too large")
            if i + 1 == len(data):
                raise FunctionStartsError("function_starts delta truncated")
        elif delta == 0:
            break
        else:
            address += delta
            addresses.append(address)
            delta = 0
            shift = 0

    return tuple(addresses)


@dataclass(frozen=True)
class Protection:
    read: bool
    write: bool
    execute: bool

    @classmethod
    def from_raw(cls, value: int) -> "Protection":
        if value == VmProt.NONE:
            return cls(read=False, write=False, execute=False)

        return cls(
            read=bool(value & VmProt.READ),
            write=bool(value & VmProt.WRITE),
            execute=bool(value & VmProt.EXECUTE),
        )

    @property
    def is_none(self) -> bool:
        return not (self.read or self.write or self.execute)


@dataclass(frozen=True)
class SectionAttributes:
    usr: FlagNames
    sys: FlagNames


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True)
class Section:
    sectname: str
    segname: str
    addr: int
    size: int
    offset: int
    align: int
    reloff: int
    nreloc: int
    type: str
    attributes: SectionAttributes
    data: bytes

    @classmethod
    def from_memory(
        cls, body: memoryview, offset: int, bits: int, order: ByteOrder, data: Buffer
    ) -> "Section":
        if bits == 32:
            struct_fmt = "16s16s7I"
        else:
            struct_fmt = "16s16s2Q5I"

        (sectname, segname, addr, size, fileoff, align, reloff, nreloc, flags) = (
            unpack(struct_fmt, body, offset, order)
        )

        section_type = section_type_name(flags & SECTION_TYPE_MASK)

        if fileoff + size > len(data):
            raise SegmentOutOfBoundsError(
                f"Section {read_cstring(sectname)} data 0x{fileoff:x}+0x{size:x} is past the end of the file"
            )

        payload = bytes(data[fileoff : fileoff + size])

        return cls(
            sectname=read_cstring(sectname),
            segname=read_cstring(segname),
            addr=addr,
            size=size,
            offset=fileoff,
            align=align,
            reloff=reloff,
            nreloc=nreloc,
            type=section_type,
            attributes=SectionAttributes(
                usr=map_flags(flags & SECTION_ATTRIBUTES_USR_MASK, SECTION_USR_NAMES),
                sys=map_flags(flags & SECTION_ATTRIBUTES_SYS_MASK, SECTION_SYS_NAMES),
            ),
            data=payload,
        )


@dataclass(frozen=True, kw_only=True)
class LoadCommand:
    cmd: int
    type: str
    offset: int


# (segment header format, segment header size, section entry size)
SEGMENT_LAYOUTS = {
    32: ("16s8I", 48, 68),
    64: ("16s4Q4I", 64, 80),
}


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True, kw_only=True)
class SegmentCommand(LoadCommand):
    name: str
    vmaddr: int
    vmsize: int
    fileoff: int
    filesize: int
    maxprot: Protection
    initprot: Protection
    nsects: int
    flags: FlagNames
    sections: tuple[Section, ...]

    @classmethod
    def from_raw(
        cls, raw: RawCommand, order: ByteOrder, data: Buffer
    ) -> "SegmentCommand":
        bits = 64 if raw.cmd == LoadCommandType.SEGMENT_64 else 32
        (struct_fmt, header_size, section_size) = SEGMENT_LAYOUTS[bits]

        if len(raw.body) < header_size:
            raise SegmentOutOfBoundsError(
                f"{raw.type_name} command at 0x{raw.offset:x} is too short"
            )

        (name, vmaddr, vmsize, fileoff, filesize, maxprot, initprot, nsects, flags) = (
            unpack(struct_fmt, raw.body, 0, order)
        )

        sections = []
        for i in range(nsects):
            section_offset = header_size + i * section_size
            if section_offset + section_size > len(raw.body):
                raise SegmentOutOfBoundsError(
                    f"Section {i} of segment {read_cstring(name)} is out of bounds"
                )

            sections.append(
                Section.from_memory(raw.body, section_offset, bits, order, data)
            )

        return cls(
            cmd=raw.cmd,
            type=raw.type_name,
            offset=raw.offset,
            name=read_cstring(name),
            vmaddr=vmaddr,
            vmsize=vmsize,
            fileoff=fileoff,
            filesize=filesize,
            maxprot=Protection.from_raw(maxprot),
            initprot=Protection.from_raw(initprot),
            nsects=nsects,
            flags=map_flags(flags, SEGMENT_FLAG_NAMES),
            sections=tuple(sections),
        )


@dataclass(frozen=True, kw_only=True)
class SymtabCommand(LoadCommand):
    symoff: int
    nsyms: int
    stroff: int
    strsize: int

    @classmethod
    def from_raw(
        cls, raw: RawCommand, order: ByteOrder, _data: Buffer
    ) -> "SymtabCommand":
        check_body_size(raw, 16)
        (symoff, nsyms, stroff, strsize) = unpack("4I", raw.body, 0, order)
        return cls(
            cmd=raw.cmd,
            type=raw.type_name,
            offset=raw.offset,
            symoff=symoff,
            nsyms=nsyms,
            stroff=stroff,
            strsize=strsize,
        )


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True, kw_only=True)
class DysymtabCommand(LoadCommand):
    ilocalsym: int
    nlocalsym: int
    iextdefsym: int
    nextdefsym: int
    iundefsym: int
    nundefsym: int
    tocoff: int
    ntoc: int
    modtaboff: int
    nmodtab: int
    extrefsymoff: int
    nextrefsyms: int
    indirectsymoff: int
    nindirectsyms: int
    extreloff: int
    nextrel: int
    locreloff: int
    nlocrel: int

    @classmethod
    def from_raw(
        cls, raw: RawCommand, order: ByteOrder, _data: Buffer
    ) -> "DysymtabCommand":
        check_body_size(raw, 72)
        # Order is significant!
        fields = unpack("18I", raw.body, 0, order)
        return cls(
            cmd=raw.cmd,
            type=raw.type_name,
            offset=raw.offset,
            ilocalsym=fields[0],
            nlocalsym=fields[1],
            iextdefsym=fields[2],
            nextdefsym=fields[3],
            iundefsym=fields[4],
            nundefsym=fields[5],
            tocoff=fields[6],
            ntoc=fields[7],
            modtaboff=fields[8],
            nmodtab=fields[9],
            extrefsymoff=fields[10],
            nextrefsyms=fields[11],
            indirectsymoff=fields[12],
            nindirectsyms=fields[13],
            extreloff=fields[14],
            nextrel=fields[15],
            locreloff=fields[16],
            nlocrel=fields[17],
        )


@dataclass(frozen=True, kw_only=True)
class SymsegCommand(LoadCommand):
    symseg_offset: int
    size: int

    @classmethod
    def from_raw(
        cls, raw: RawCommand, order: ByteOrder, _data: Buffer
    ) -> "SymsegCommand":
        check_body_size(raw, 8)
        (symseg_offset, size) = unpack("2I", raw.body, 0, order)
        return cls(
            cmd=raw.cmd,
            type=raw.type_name,
            offset=raw.offset,
            symseg_offset=symseg_offset,
            size=size,
        )


@dataclass(frozen=True, kw_only=True)
class EncryptionInfoCommand(LoadCommand):
    cryptoff: int
    cryptsize: int
    cryptid: int

    @classmethod
    def from_raw(
        cls, raw: RawCommand, order: ByteOrder, _data: Buffer
    ) -> "EncryptionInfoCommand":
        if raw.cmd == LoadCommandType.ENCRYPTION_INFO_64:
            # The 64-bit variant only adds padding.
            check_body_size(raw, 16)
            raw = raw._replace(body=raw.body[:12])
        else:
            check_body_size(raw, 12)

        (cryptoff, cryptsize, cryptid) = unpack("3I", raw.body, 0, order)
        return cls(
            cmd=raw.cmd,
            type=raw.type_name,
            offset=raw.offset,
            cryptoff=cryptoff,
            cryptsize=cryptsize,
            cryptid=cryptid,
        )


@dataclass(frozen=True, kw_only=True)
class LinkEditCommand(LoadCommand):
    """Any command that points at a blob in the __LINKEDIT segment."""

    dataoff: int
    datasize: int

    @classmethod
    def from_raw(
        cls, raw: RawCommand, order: ByteOrder, _data: Buffer
    ) -> "LinkEditCommand":
        check_body_size(raw, 8)
        (dataoff, datasize) = unpack("2I", raw.body, 0, order)
        return cls(
            cmd=raw.cmd,
            type=raw.type_name,
            offset=raw.offset,
            dataoff=dataoff,
            datasize=datasize,
        )


@dataclass(frozen=True, kw_only=True)
class FunctionStartsCommand(LoadCommand):
    dataoff: int
    datasize: int
    addresses: tuple[int, ...]

    @classmethod
    def from_raw(
        cls, raw: RawCommand, order: ByteOrder, data: Buffer
    ) -> "FunctionStartsCommand":
        check_body_size(raw, 8)
        (dataoff, datasize) = unpack("2I", raw.body, 0, order)

        if dataoff + datasize > len(data):
            raise FunctionStartsError(
                f"function_starts data 0x{dataoff:x}+0x{datasize:x} is past the end of the file"
            )

        return cls(
            cmd=raw.cmd,
            type=raw.type_name,
            offset=raw.offset,
            dataoff=dataoff,
            datasize=datasize,
            addresses=decode_function_starts(data[dataoff : dataoff + datasize]),
        )


def format_version(value: int) -> str:
    """xxxx.yy.zz packed in a u32"""
    return f"{value >> 16}.{(value >> 8) & 0xFF}.{value & 0xFF}"


@dataclass(frozen=True, kw_only=True)
class VersionMinCommand(LoadCommand):
    version: str
    sdk: str

    @classmethod
    def from_raw(
        cls, raw: RawCommand, order: ByteOrder, _data: Buffer
    ) -> "VersionMinCommand":
        check_body_size(raw, 8)
        (version, sdk) = unpack("2I", raw.body, 0, order)
        return cls(
            cmd=raw.cmd,
            type=raw.type_name,
            offset=raw.offset,
            version=format_version(version),
            sdk=format_version(sdk),
        )


@dataclass(frozen=True, kw_only=True)
class MainCommand(LoadCommand):
    entryoff: int
    stacksize: int

    @classmethod
    def from_raw(
        cls, raw: RawCommand, order: ByteOrder, _data: Buffer
    ) -> "MainCommand":
        check_body_size(raw, 16)
        (entryoff, stacksize) = unpack("2Q", raw.body, 0, order)
        return cls(
            cmd=raw.cmd,
            type=raw.type_name,
            offset=raw.offset,
            entryoff=entryoff,
            stacksize=stacksize,
        )


@dataclass(frozen=True, kw_only=True)
class DylibCommand(LoadCommand):
    name: str
    timestamp: int
    current_version: int
    compatibility_version: int

    @classmethod
    def from_raw(
        cls, raw: RawCommand, order: ByteOrder, _data: Buffer
    ) -> "DylibCommand":
        check_min_body_size(raw, 16)
        (timestamp, current_version, compatibility_version) = unpack(
            "3I", raw.body, 4, order
        )
        return cls(
            cmd=raw.cmd,
            type=raw.type_name,
            offset=raw.offset,
            name=read_lc_str(raw.body, 0, order),
            timestamp=timestamp,
            current_version=current_version,
            compatibility_version=compatibility_version,
        )


@dataclass(frozen=True, kw_only=True)
class DylinkerCommand(LoadCommand):
    name: str

    @classmethod
    def from_raw(
        cls, raw: RawCommand, order: ByteOrder, _data: Buffer
    ) -> "DylinkerCommand":
        return cls(
            cmd=raw.cmd,
            type=raw.type_name,
            offset=raw.offset,
            name=read_lc_str(raw.body, 0, order),
        )


@dataclass(frozen=True, kw_only=True)
class RpathCommand(LoadCommand):
    path: str

    @classmethod
    def from_raw(
        cls, raw: RawCommand, order: ByteOrder, _data: Buffer
    ) -> "RpathCommand":
        check_min_body_size(raw, 8)
        return cls(
            cmd=raw.cmd,
            type=raw.type_name,
            offset=raw.offset,
            path=read_lc_str(raw.body, 0, order),
        )


@dataclass(frozen=True, kw_only=True)
class UuidCommand(LoadCommand):
    uuid: str

    @classmethod
    def from_raw(
        cls, raw: RawCommand, _order: ByteOrder, _data: Buffer
    ) -> "UuidCommand":
        check_body_size(raw, 16)
        return cls(
            cmd=raw.cmd,
            type=raw.type_name,
            offset=raw.offset,
            uuid=str(uuid.UUID(bytes=bytes(raw.body))),
        )


@dataclass(frozen=True, kw_only=True)
class GenericCommand(LoadCommand):
    """A command with no dedicated decoder, or with an opcode we do not know.
    The type is "unknown" for the latter."""

    data: bytes

    @classmethod
    def from_raw(
        cls, raw: RawCommand, _order: ByteOrder, _data: Buffer
    ) -> "GenericCommand":
        return cls(
            cmd=raw.cmd,
            type=raw.type_name,
            offset=raw.offset,
            data=bytes(raw.body),
        )


AnyLoadCommand = (
    SegmentCommand
    | SymtabCommand
    | DysymtabCommand
    | SymsegCommand
    | EncryptionInfoCommand
    | LinkEditCommand
    | FunctionStartsCommand
    | VersionMinCommand
    | MainCommand
    | DylibCommand
    | DylinkerCommand
    | RpathCommand
    | UuidCommand
    | GenericCommand
)

CommandDecoder = Callable[[RawCommand, ByteOrder, Buffer], AnyLoadCommand]

# Every known opcode has an entry.
# Those without a dedicated record keep their raw body.
COMMAND_DECODERS: dict[LoadCommandType, CommandDecoder] = {
    cmd: GenericCommand.from_raw for cmd in LoadCommandType
} | {
    LoadCommandType.SEGMENT: SegmentCommand.from_raw,
    LoadCommandType.SEGMENT_64: SegmentCommand.from_raw,
    LoadCommandType.SYMTAB: SymtabCommand.from_raw,
    LoadCommandType.SYMSEG: SymsegCommand.from_raw,
    LoadCommandType.DYSYMTAB: DysymtabCommand.from_raw,
    LoadCommandType.ENCRYPTION_INFO: EncryptionInfoCommand.from_raw,
    LoadCommandType.ENCRYPTION_INFO_64: EncryptionInfoCommand.from_raw,
    LoadCommandType.RPATH: RpathCommand.from_raw,
    LoadCommandType.LOAD_DYLIB: DylibCommand.from_raw,
    LoadCommandType.ID_DYLIB: DylibCommand.from_raw,
    LoadCommandType.LOAD_WEAK_DYLIB: DylibCommand.from_raw,
    LoadCommandType.REEXPORT_DYLIB: DylibCommand.from_raw,
    LoadCommandType.LAZY_LOAD_DYLIB: DylibCommand.from_raw,
    LoadCommandType.LOAD_UPWARD_DYLIB: DylibCommand.from_raw,
    LoadCommandType.LOAD_DYLINKER: DylinkerCommand.from_raw,
    LoadCommandType.ID_DYLINKER: DylinkerCommand.from_raw,
    LoadCommandType.DYLD_ENVIRONMENT: DylinkerCommand.from_raw,
    LoadCommandType.VERSION_MIN_MACOSX: VersionMinCommand.from_raw,
    LoadCommandType.VERSION_MIN_IPHONEOS: VersionMinCommand.from_raw,
    LoadCommandType.VERSION_MIN_TVOS: VersionMinCommand.from_raw,
    LoadCommandType.VERSION_MIN_WATCHOS: VersionMinCommand.from_raw,
    LoadCommandType.CODE_SIGNATURE: LinkEditCommand.from_raw,
    LoadCommandType.SEGMENT_SPLIT_INFO: LinkEditCommand.from_raw,
    LoadCommandType.DATA_IN_CODE: LinkEditCommand.from_raw,
    LoadCommandType.DYLIB_CODE_SIGN_DRS: LinkEditCommand.from_raw,
    LoadCommandType.LINKER_OPTIMIZATION_HINT: LinkEditCommand.from_raw,
    LoadCommandType.DYLD_EXPORTS_TRIE: LinkEditCommand.from_raw,
    LoadCommandType.DYLD_CHAINED_FIXUPS: LinkEditCommand.from_raw,
    LoadCommandType.FUNCTION_STARTS: FunctionStartsCommand.from_raw,
    LoadCommandType.MAIN: MainCommand.from_raw,
    LoadCommandType.UUID: UuidCommand.from_raw,
}


def decode_command(raw: RawCommand, order: ByteOrder, data: Buffer) -> AnyLoadCommand:
    try:
        cmd = LoadCommandType(raw.cmd)
    except ValueError:
        return GenericCommand.from_raw(raw, order, data)

    return COMMAND_DECODERS[cmd](raw, order, data)
