class MachOError(Exception):
    """Base class for everything raised while decoding a Mach-O file."""


class MachOFormatError(MachOError, ValueError):
    """The data is not a thin Mach-O file: too short for a header
    or the magic number is not recognized."""


class MachOParseError(MachOError):
    """The file looks like Mach-O but its structure is malformed.
    Decoding stops at the first such error."""


class CommandOutOfBoundsError(MachOParseError, IndexError):
    """A load command header or body extends past the end of the command area."""


class SegmentOutOfBoundsError(MachOParseError, IndexError):
    """A segment's section table or a section's file range is out of bounds."""


class InvalidCommandSizeError(MachOParseError):
    """The body of a fixed-size load command has the wrong length."""


class FunctionStartsError(MachOParseError):
    """The function starts table is truncated, out of bounds,
    or holds a delta that is too large."""


class LCStrOutOfBoundsError(MachOParseError, IndexError):
    """A load command string offset points outside its command."""
