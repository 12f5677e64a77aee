import enum
import struct
from dataclasses import dataclass

from .constants import (
    CPU_SUBTYPE_MASK,
    ENDIAN_BE_BIT,
    ENDIAN_MULTIPLE_MASK,
    HEADER_FLAG_NAMES,
    MH_CIGAM,
    MH_CIGAM_64,
    MH_MAGIC,
    MH_MAGIC_64,
    cpu_subtype_name,
    cpu_type_name,
    file_type_name,
)
from .reader import Buffer, ByteOrder, unpack
from .util import FlagNames, map_flags

# Magic read as little-endian u32 -> (bits, byte order of the rest of the file)
MAGICS: dict[int, tuple[int, ByteOrder]] = {
    MH_MAGIC: (32, ByteOrder.LITTLE),
    MH_CIGAM: (32, ByteOrder.BIG),
    MH_MAGIC_64: (64, ByteOrder.LITTLE),
    MH_CIGAM_64: (64, ByteOrder.BIG),
}

# The 64-bit header has an extra reserved word at the end.
HEADER_SIZE = {32: 28, 64: 32}


class CpuEndianness(enum.Enum):
    LE = "le"
    BE = "be"
    MULTIPLE = "multiple"


@dataclass(frozen=True)
class CpuInfo:
    type: str
    subtype: str
    endian: CpuEndianness

    @classmethod
    def from_raw(cls, cputype: int, cpusubtype: int) -> "CpuInfo":
        type_name = cpu_type_name(cputype)

        if (cpusubtype & ENDIAN_MULTIPLE_MASK) == ENDIAN_MULTIPLE_MASK:
            endian = CpuEndianness.MULTIPLE
        elif cpusubtype & ENDIAN_BE_BIT:
            endian = CpuEndianness.BE
        else:
            endian = CpuEndianness.LE

        cpusubtype &= CPU_SUBTYPE_MASK

        if endian == CpuEndianness.MULTIPLE:
            subtype = "all"
        elif cpusubtype == 0:
            subtype = "none"
        else:
            subtype = cpu_subtype_name(type_name, cpusubtype)

        return cls(type=type_name, subtype=subtype, endian=endian)


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True)
class MachOHeader:
    magic: int
    bits: int
    byte_order: ByteOrder
    hsize: int
    cpu: CpuInfo
    filetype: str
    ncmds: int
    sizeofcmds: int
    flags: FlagNames

    @property
    def alignment(self) -> int:
        """Load commands start on a multiple of this many bytes."""
        return self.bits // 8

    @classmethod
    def taste(cls, data: Buffer) -> bool:
        if len(data) < HEADER_SIZE[32]:
            return False

        (magic,) = struct.unpack_from("<I", data, 0)
        if magic not in MAGICS:
            return False

        (bits, _) = MAGICS[magic]
        return len(data) >= HEADER_SIZE[bits]

    @classmethod
    def from_memory(cls, data: Buffer) -> "MachOHeader | None":
        """Decode the header at the start of the file.
        Returns None if the data is not a thin Mach-O file."""
        if not cls.taste(data):
            return None

        (magic,) = struct.unpack_from("<I", data, 0)
        (bits, order) = MAGICS[magic]

        (cputype, cpusubtype, filetype, ncmds, sizeofcmds, flags) = unpack(
            "6I", data, 4, order
        )

        return cls(
            magic=magic,
            bits=bits,
            byte_order=order,
            hsize=HEADER_SIZE[bits],
            cpu=CpuInfo.from_raw(cputype, cpusubtype),
            filetype=file_type_name(filetype),
            ncmds=ncmds,
            sizeofcmds=sizeofcmds,
            flags=map_flags(flags, HEADER_FLAG_NAMES),
        )
