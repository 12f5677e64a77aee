"""Integer reads from a byte buffer.
The byte order is an argument to every read so that nothing about
a particular file is remembered between calls."""

import enum
import struct

# Buffer types accepted by struct.unpack_from
Buffer = bytes | bytearray | memoryview


class ByteOrder(enum.Enum):
    LITTLE = "little"
    BIG = "big"

    @property
    def prefix(self) -> str:
        """struct format prefix for this byte order"""
        return "<" if self is ByteOrder.LITTLE else ">"


def read_u32(data: Buffer, offset: int, order: ByteOrder) -> int:
    (value,) = struct.unpack_from(order.prefix + "I", data, offset)
    return value


def unpack(fmt: str, data: Buffer, offset: int, order: ByteOrder) -> tuple:
    """Read a run of fields described by a struct format without its prefix."""
    return struct.unpack_from(order.prefix + fmt, data, offset)
