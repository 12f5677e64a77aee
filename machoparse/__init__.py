from .macho import MachOFile, MachOHeader, parse, parse_file, read_header, taste
from .macho.exceptions import MachOError, MachOFormatError, MachOParseError

VERSION = "0.1.0"
