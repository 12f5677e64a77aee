import re
from typing import Annotated, Mapping

from pydantic import PlainSerializer

from .reader import Buffer

# Matches 0-to-N non-null bytes.
r_szstring = re.compile(rb"[^\x00]*")


def sorted_names(names: frozenset[str]) -> list[str]:
    return sorted(names)


# Set of flag names. JSON output lists them in sorted order.
FlagNames = Annotated[
    frozenset[str], PlainSerializer(sorted_names, return_type=list[str], when_used="json")
]

# Flags are at most this wide in every Mach-O structure.
FLAG_BITS = 32


def map_flags(value: int, names: Mapping[int, str]) -> frozenset[str]:
    """Return the names of the bits set in value.
    Bits without an entry in the mapping are skipped.
    A negative value is treated as a sign-extended 32-bit field
    so that its top bit can still be matched."""
    result = set()

    bit = 1
    while bit < (1 << FLAG_BITS) and (value < 0 or bit <= value):
        if value & bit and bit in names:
            result.add(names[bit])
        bit <<= 1

    return frozenset(result)


def read_cstring(data: Buffer) -> str:
    """Read a null-terminated string from the start of the buffer.
    If there is no terminator, the whole buffer is the string."""
    match = r_szstring.match(bytes(data))
    assert match is not None
    return match.group(0).decode("utf-8", errors="replace")
