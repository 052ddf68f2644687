"""
PE/COFF Constants
==================

Magic values, record sizes, machine types and flag tables for the
Portable Executable format.

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
      https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
"""

from __future__ import annotations

import enum


# ---------------------------------------------------------------------------
# Magic numbers and fixed layout
# ---------------------------------------------------------------------------

MZ_MAGIC: bytes = b"MZ"
DOS_MAGIC: int = 0x5A4D
PE_MAGIC: bytes = b"PE\x00\x00"

PE32_MAGIC: int = 0x10B      # PE32 (32-bit)
PE32PLUS_MAGIC: int = 0x20B  # PE32+ (64-bit)

E_LFANEW_OFFSET: int = 0x3C
DOS_HEADER_SIZE: int = 64
COFF_HEADER_SIZE: int = 20
SECTION_HEADER_SIZE: int = 40
SECTION_NAME_SIZE: int = 8
IMPORT_DESCRIPTOR_SIZE: int = 20
DATA_DIRECTORY_SIZE: int = 8
NUMBER_OF_DATA_DIRECTORIES: int = 16

# Section names starting with '/' index into the COFF string table
STRING_TABLE_NAME_PREFIX: int = 0x2F
EMPTY_SECTION_NAME: str = ""

DEFAULT_MAX_IMPORT_DESCRIPTORS: int = 256

# Import lookup entry decoding
ORDINAL_FLAG_32: int = 1 << 31
ORDINAL_FLAG_64: int = 1 << 63
ORDINAL_MASK: int = 0xFFFF
HINT_NAME_RVA_MASK: int = 0x7FFFFFFF


class DataDirectoryEntry(enum.IntEnum):
    """Index of each slot in the optional header's data directory array."""
    EXPORT = 0
    IMPORT = 1
    RESOURCE = 2
    EXCEPTION = 3
    CERTIFICATE = 4
    BASE_RELOCATION = 5
    DEBUG = 6
    ARCHITECTURE = 7
    GLOBAL_PTR = 8
    TLS = 9
    LOAD_CONFIG = 10
    BOUND_IMPORT = 11
    IAT = 12
    DELAY_IMPORT = 13
    CLR_RUNTIME = 14
    RESERVED = 15


class PEArchitecture(str, enum.Enum):
    """Bitness of an image, as selected by the optional header magic."""
    PE32 = "PE32"
    PE64 = "PE32+"


# ---------------------------------------------------------------------------
# Machine types
# ---------------------------------------------------------------------------

IMAGE_FILE_MACHINE_UNKNOWN: int = 0x0
IMAGE_FILE_MACHINE_I386: int = 0x14C
IMAGE_FILE_MACHINE_AMD64: int = 0x8664
IMAGE_FILE_MACHINE_ARM: int = 0x1C0
IMAGE_FILE_MACHINE_ARM64: int = 0xAA64

MACHINE_NAMES: dict[int, str] = {
    IMAGE_FILE_MACHINE_UNKNOWN: "Unknown",
    0x184: "Alpha AXP",
    0x284: "Alpha 64",
    0x1D3: "Matsushita AM33",
    IMAGE_FILE_MACHINE_AMD64: "x64",
    IMAGE_FILE_MACHINE_ARM: "ARM",
    IMAGE_FILE_MACHINE_ARM64: "ARM64",
    0xA641: "ARM64EC",
    0xA64E: "ARM64X",
    0x1C4: "ARM Thumb-2",
    0xEBC: "EFI byte code",
    IMAGE_FILE_MACHINE_I386: "Intel 386",
    0x200: "Intel Itanium",
    0x6232: "LoongArch 32",
    0x6264: "LoongArch 64",
    0x9041: "Mitsubishi M32R",
    0x266: "MIPS16",
    0x366: "MIPS with FPU",
    0x466: "MIPS16 with FPU",
    0x1F0: "PowerPC",
    0x1F1: "PowerPC with FPU",
    0x160: "MIPS R3000 (big endian)",
    0x162: "MIPS R3000",
    0x166: "MIPS R4000",
    0x168: "MIPS R10000",
    0x5032: "RISC-V 32",
    0x5064: "RISC-V 64",
    0x5128: "RISC-V 128",
    0x1A2: "Hitachi SH3",
    0x1A3: "Hitachi SH3 DSP",
    0x1A6: "Hitachi SH4",
    0x1A8: "Hitachi SH5",
    0x1C2: "Thumb",
    0x169: "MIPS WCE v2",
}


# ---------------------------------------------------------------------------
# COFF characteristics
# ---------------------------------------------------------------------------

IMAGE_FILE_DLL: int = 0x2000

FILE_CHARACTERISTICS: dict[int, str] = {
    0x0001: "RELOCS_STRIPPED",
    0x0002: "EXECUTABLE_IMAGE",
    0x0004: "LINE_NUMS_STRIPPED",
    0x0008: "LOCAL_SYMS_STRIPPED",
    0x0010: "AGGRESSIVE_WS_TRIM",
    0x0020: "LARGE_ADDRESS_AWARE",
    0x0040: "UNUSED_FLAG",
    0x0080: "BYTES_REVERSED_LO",
    0x0100: "32BIT_MACHINE",
    0x0200: "DEBUG_STRIPPED",
    0x0400: "REMOVABLE_RUN_FROM_SWAP",
    0x0800: "NET_RUN_FROM_SWAP",
    0x1000: "SYSTEM",
    IMAGE_FILE_DLL: "DLL",
    0x4000: "UP_SYSTEM_ONLY",
    0x8000: "BYTES_REVERSED_HI",
}


# ---------------------------------------------------------------------------
# Optional header enumerations
# ---------------------------------------------------------------------------

SUBSYSTEM_NAMES: dict[int, str] = {
    0: "Unknown",
    1: "Native",
    2: "Windows GUI",
    3: "Windows Console",
    5: "OS/2 Console",
    7: "POSIX Console",
    8: "Native Win9x driver",
    9: "Windows CE GUI",
    10: "EFI Application",
    11: "EFI Boot Service Driver",
    12: "EFI Runtime Driver",
    13: "EFI ROM",
    14: "Xbox",
    16: "Windows Boot Application",
}

DLL_CHARACTERISTICS: dict[int, str] = {
    0x0020: "HIGH_ENTROPY_VA",
    0x0040: "DYNAMIC_BASE",
    0x0080: "FORCE_INTEGRITY",
    0x0100: "NX_COMPAT",
    0x0200: "NO_ISOLATION",
    0x0400: "NO_SEH",
    0x0800: "NO_BIND",
    0x1000: "APPCONTAINER",
    0x2000: "WDM_DRIVER",
    0x4000: "GUARD_CF",
    0x8000: "TERMINAL_SERVER_AWARE",
}


# ---------------------------------------------------------------------------
# Section characteristics
# ---------------------------------------------------------------------------

IMAGE_SCN_CNT_CODE: int = 0x00000020
IMAGE_SCN_MEM_EXECUTE: int = 0x20000000

SECTION_CHARACTERISTICS: dict[int, str] = {
    0x00000008: "TYPE_NO_PAD",
    IMAGE_SCN_CNT_CODE: "CNT_CODE",
    0x00000040: "CNT_INITIALIZED_DATA",
    0x00000080: "CNT_UNINITIALIZED_DATA",
    0x00000200: "LNK_INFO",
    0x00000800: "LNK_REMOVE",
    0x00001000: "LNK_COMDAT",
    0x00008000: "GPREL",
    0x01000000: "LNK_NRELOC_OVFL",
    0x02000000: "MEM_DISCARDABLE",
    0x04000000: "MEM_NOT_CACHED",
    0x08000000: "MEM_NOT_PAGED",
    0x10000000: "MEM_SHARED",
    IMAGE_SCN_MEM_EXECUTE: "MEM_EXECUTE",
    0x40000000: "MEM_READ",
    0x80000000: "MEM_WRITE",
}


def flag_names(value: int, table: dict[int, str]) -> list[str]:
    """Return the names of every flag in *table* that is set in *value*."""
    return [name for bit, name in table.items() if value & bit]
