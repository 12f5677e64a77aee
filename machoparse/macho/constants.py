"""
Based on the following resources:
- mach-o/loader.h
- mach/machine.h
- mach/vm_prot.h
"""

from enum import IntEnum, IntFlag
from typing import Mapping

UNKNOWN = "unknown"

MH_MAGIC = 0xFEEDFACE
MH_CIGAM = 0xCEFAEDFE
MH_MAGIC_64 = 0xFEEDFACF
MH_CIGAM_64 = 0xCFFAEDFE

# Applied to cpusubtype before the subtype table lookup.
CPU_SUBTYPE_MASK = 0x00FFFFFF

# cpusubtype endianness markers.
ENDIAN_MULTIPLE_MASK = 0xFFFFFFFF
ENDIAN_BE_BIT = 0x1

SECTION_TYPE_MASK = 0x000000FF
SECTION_ATTRIBUTES_USR_MASK = 0xFF000000
SECTION_ATTRIBUTES_SYS_MASK = 0x00FFFF00


class CpuType(IntEnum):
    VAX = 0x1
    MC680X0 = 0x6
    I386 = 0x7
    X86_64 = 0x01000007
    MC98000 = 0xA
    HPPA = 0xB
    ARM = 0xC
    ARM64 = 0x0100000C
    ARM64_32 = 0x0200000C
    MC88000 = 0xD
    SPARC = 0xE
    I860 = 0xF
    ALPHA = 0x10
    POWERPC = 0x12
    POWERPC64 = 0x01000012


# Keyed by the lowercase CpuType name.
CPU_SUBTYPES: Mapping[str, Mapping[int, str]] = {
    "vax": {
        1: "vax780",
        2: "vax785",
        3: "vax750",
        4: "vax730",
        5: "uvaxi",
        6: "uvaxii",
        7: "vax8200",
        8: "vax8500",
        9: "vax8600",
        10: "vax8650",
        11: "vax8800",
        12: "uvaxiii",
    },
    "mc680x0": {1: "all", 2: "mc68040", 3: "mc68030_only"},
    "i386": {
        3: "all",
        4: "486",
        0x84: "486sx",
        5: "586",
        0x16: "pentpro",
        0x36: "pentii_m3",
        0x56: "pentii_m5",
        0x67: "celeron",
        0x77: "celeron_mobile",
        8: "pentium_3",
        0x18: "pentium_3_m",
        0x28: "pentium_3_xeon",
        9: "pentium_m",
        10: "pentium_4",
        0x1A: "pentium_4_m",
        11: "itanium",
        0x1B: "itanium_2",
        12: "xeon",
        0x1C: "xeon_mp",
    },
    "x86_64": {3: "all", 4: "arch1", 8: "haswell"},
    "mc98000": {1: "mc98601"},
    "hppa": {1: "7100lc"},
    "arm": {
        5: "v4t",
        6: "v6",
        7: "v5tej",
        8: "xscale",
        9: "v7",
        10: "v7f",
        11: "v7s",
        12: "v7k",
        13: "v8",
        14: "v6m",
        15: "v7m",
        16: "v7em",
    },
    "arm64": {1: "v8", 2: "e"},
    "arm64_32": {1: "v8"},
    "mc88000": {1: "mc88100", 2: "mc88110"},
    "i860": {1: "860"},
    "powerpc": {
        1: "601",
        2: "602",
        3: "603",
        4: "603e",
        5: "603ev",
        6: "604",
        7: "604e",
        8: "620",
        9: "750",
        10: "7400",
        11: "7450",
        100: "970",
    },
    "powerpc64": {100: "970"},
}


class FileType(IntEnum):
    OBJECT = 0x1
    EXECUTE = 0x2
    FVMLIB = 0x3
    CORE = 0x4
    PRELOAD = 0x5
    DYLIB = 0x6
    DYLINKER = 0x7
    BUNDLE = 0x8
    DYLIB_STUB = 0x9
    DSYM = 0xA
    KEXT_BUNDLE = 0xB
    FILESET = 0xC


class HeaderFlags(IntFlag):
    NOUNDEFS = 0x00000001
    INCRLINK = 0x00000002
    DYLDLINK = 0x00000004
    BINDATLOAD = 0x00000008
    PREBOUND = 0x00000010
    SPLIT_SEGS = 0x00000020
    LAZY_INIT = 0x00000040
    TWOLEVEL = 0x00000080
    FORCE_FLAT = 0x00000100
    NOMULTIDEFS = 0x00000200
    NOFIXPREBINDING = 0x00000400
    PREBINDABLE = 0x00000800
    ALLMODSBOUND = 0x00001000
    SUBSECTIONS_VIA_SYMBOLS = 0x00002000
    CANONICAL = 0x00004000
    WEAK_DEFINES = 0x00008000
    BINDS_TO_WEAK = 0x00010000
    ALLOW_STACK_EXECUTION = 0x00020000
    ROOT_SAFE = 0x00040000
    SETUID_SAFE = 0x00080000
    NO_REEXPORTED_DYLIBS = 0x00100000
    PIE = 0x00200000
    DEAD_STRIPPABLE_DYLIB = 0x00400000
    HAS_TLV_DESCRIPTORS = 0x00800000
    NO_HEAP_EXECUTION = 0x01000000
    APP_EXTENSION_SAFE = 0x02000000
    NLIST_OUTOFSYNC_WITH_DYLDINFO = 0x04000000
    SIM_SUPPORT = 0x08000000
    DYLIB_IN_CACHE = 0x80000000


class LoadCommandType(IntEnum):
    SEGMENT = 0x1
    SYMTAB = 0x2
    SYMSEG = 0x3
    THREAD = 0x4
    UNIXTHREAD = 0x5
    LOADFVMLIB = 0x6
    IDFVMLIB = 0x7
    IDENT = 0x8
    FVMFILE = 0x9
    PREPAGE = 0xA
    DYSYMTAB = 0xB
    LOAD_DYLIB = 0xC
    ID_DYLIB = 0xD
    LOAD_DYLINKER = 0xE
    ID_DYLINKER = 0xF
    PREBOUND_DYLIB = 0x10
    ROUTINES = 0x11
    SUB_FRAMEWORK = 0x12
    SUB_UMBRELLA = 0x13
    SUB_CLIENT = 0x14
    SUB_LIBRARY = 0x15
    TWOLEVEL_HINTS = 0x16
    PREBIND_CKSUM = 0x17
    LOAD_WEAK_DYLIB = 0x80000018
    SEGMENT_64 = 0x19
    ROUTINES_64 = 0x1A
    UUID = 0x1B
    RPATH = 0x8000001C
    CODE_SIGNATURE = 0x1D
    SEGMENT_SPLIT_INFO = 0x1E
    REEXPORT_DYLIB = 0x8000001F
    LAZY_LOAD_DYLIB = 0x20
    ENCRYPTION_INFO = 0x21
    DYLD_INFO = 0x22
    DYLD_INFO_ONLY = 0x80000022
    LOAD_UPWARD_DYLIB = 0x80000023
    VERSION_MIN_MACOSX = 0x24
    VERSION_MIN_IPHONEOS = 0x25
    FUNCTION_STARTS = 0x26
    DYLD_ENVIRONMENT = 0x27
    MAIN = 0x80000028
    DATA_IN_CODE = 0x29
    SOURCE_VERSION = 0x2A
    DYLIB_CODE_SIGN_DRS = 0x2B
    ENCRYPTION_INFO_64 = 0x2C
    LINKER_OPTION = 0x2D
    LINKER_OPTIMIZATION_HINT = 0x2E
    VERSION_MIN_TVOS = 0x2F
    VERSION_MIN_WATCHOS = 0x30
    NOTE = 0x31
    BUILD_VERSION = 0x32
    DYLD_EXPORTS_TRIE = 0x80000033
    DYLD_CHAINED_FIXUPS = 0x80000034
    FILESET_ENTRY = 0x80000035


class VmProt(IntFlag):
    NONE = 0x0
    READ = 0x1
    WRITE = 0x2
    EXECUTE = 0x4


class SegmentFlags(IntFlag):
    HIGHVM = 0x1
    FVMLIB = 0x2
    NORELOC = 0x4
    PROTECTED_VERSION_1 = 0x8
    READ_ONLY = 0x10


# Section type names start with digits, so these stay as a plain table.
SECTION_TYPES: Mapping[int, str] = {
    0x0: "regular",
    0x1: "zerofill",
    0x2: "cstring_literals",
    0x3: "4byte_literals",
    0x4: "8byte_literals",
    0x5: "literal_pointers",
    0x6: "non_lazy_symbol_pointers",
    0x7: "lazy_symbol_pointers",
    0x8: "symbol_stubs",
    0x9: "mod_init_func_pointers",
    0xA: "mod_term_func_pointers",
    0xB: "coalesced",
    0xC: "gb_zerofill",
    0xD: "interposing",
    0xE: "16byte_literals",
    0xF: "dtrace_dof",
    0x10: "lazy_dylib_symbol_pointers",
    0x11: "thread_local_regular",
    0x12: "thread_local_zerofill",
    0x13: "thread_local_variables",
    0x14: "thread_local_variable_pointers",
    0x15: "thread_local_init_function_pointers",
    0x16: "init_func_offsets",
}


class SectionUserAttributes(IntFlag):
    PURE_INSTRUCTIONS = 0x80000000
    NO_TOC = 0x40000000
    STRIP_STATIC_SYMS = 0x20000000
    NO_DEAD_STRIP = 0x10000000
    LIVE_SUPPORT = 0x08000000
    SELF_MODIFYING_CODE = 0x04000000
    DEBUG = 0x02000000


class SectionSystemAttributes(IntFlag):
    SOME_INSTRUCTIONS = 0x00000400
    EXT_RELOC = 0x00000200
    LOC_RELOC = 0x00000100


def flag_names(flags: type[IntFlag]) -> dict[int, str]:
    """Single-bit value to display name, for use with map_flags."""
    return {
        member.value: member.name.lower()
        for member in flags.__members__.values()
        if member.value != 0
    }


HEADER_FLAG_NAMES = flag_names(HeaderFlags)
SEGMENT_FLAG_NAMES = flag_names(SegmentFlags)
SECTION_USR_NAMES = flag_names(SectionUserAttributes)
SECTION_SYS_NAMES = flag_names(SectionSystemAttributes)


def enum_name(enum_type: type[IntEnum], value: int) -> str:
    try:
        return enum_type(value).name.lower()
    except ValueError:
        return UNKNOWN


def cpu_type_name(value: int) -> str:
    return enum_name(CpuType, value)


def cpu_subtype_name(cpu_type: str, subtype: int) -> str:
    return CPU_SUBTYPES.get(cpu_type, {}).get(subtype, UNKNOWN)


def file_type_name(value: int) -> str:
    return enum_name(FileType, value)


def command_type_name(value: int) -> str:
    return enum_name(LoadCommandType, value)


def section_type_name(value: int) -> str:
    return SECTION_TYPES.get(value, UNKNOWN)
