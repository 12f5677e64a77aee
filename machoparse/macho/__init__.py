from .commands import (
    AnyLoadCommand,
    DylibCommand,
    DylinkerCommand,
    DysymtabCommand,
    EncryptionInfoCommand,
    FunctionStartsCommand,
    GenericCommand,
    LinkEditCommand,
    LoadCommand,
    MainCommand,
    Protection,
    RpathCommand,
    Section,
    SectionAttributes,
    SegmentCommand,
    SymsegCommand,
    SymtabCommand,
    UuidCommand,
    VersionMinCommand,
)
from .exceptions import MachOError, MachOFormatError, MachOParseError
from .header import CpuEndianness, CpuInfo, MachOHeader
from .parser import MachOFile, parse, parse_file, read_header, taste
from .reader import ByteOrder
