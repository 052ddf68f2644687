"""
PE Header Decoder
==================

Decodes the three headers at the front of every PE image:

    - DOS (MZ) header, whose ``e_lfanew`` field at 0x3C locates
    - the NT header (``PE\\0\\0`` signature + 20-byte COFF header), followed by
    - the optional header, PE32 or PE32+ as selected by its 2-byte magic,
      ending in 16 data directories.

The decoder leaves the cursor at the first byte of the section table,
i.e. at the offset declared by ``size_of_optional_header``.  A declared
size larger than the decoded header is skipped over; a smaller one is
rejected with :class:`OptionalHeaderSizeMismatch`, since honouring it
would mean seeking backwards into fields that were already decoded.

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
      https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
"""

from __future__ import annotations

from pedump.core.constants import (
    DOS_MAGIC,
    NUMBER_OF_DATA_DIRECTORIES,
    PE32_MAGIC,
    PE32PLUS_MAGIC,
    PE_MAGIC,
)
from pedump.core.errors import (
    InvalidDosMagic,
    InvalidPeSignature,
    OptionalHeaderSizeMismatch,
    UnknownOptionalHeaderMagic,
)
from pedump.core.models import (
    COFFHeader,
    DOSHeader,
    ImageDataDirectory,
    NTHeader,
    OptionalHeader32,
    OptionalHeader64,
    PEHeader,
)
from pedump.parsers.cursor import ByteCursor


# ---------------------------------------------------------------------------
# Struct layouts (little-endian prefix is supplied by the cursor)
# ---------------------------------------------------------------------------

# DOS header after e_magic: 13 WORDs, e_res[4], e_oemid, e_oeminfo,
# e_res2[10], then e_lfanew landing exactly on 0x3C.
_DOS_REST_FMT = "13H4HHH10HI"

_COFF_FMT = "HHIIIHH"

# Standard fields (magic included)
_PE32_STD_FMT = "HBBIIIIII"
_PE32PLUS_STD_FMT = "HBBIIIII"

# Windows-specific fields
_PE32_WIN_FMT = "IIIHHHHHHIIIIHHIIIIII"
_PE32PLUS_WIN_FMT = "QIIHHHHHHIIIIHHQQQQII"

_WINDOWS_FIELD_NAMES: tuple[str, ...] = (
    "image_base", "section_alignment", "file_alignment",
    "major_operating_system_version", "minor_operating_system_version",
    "major_image_version", "minor_image_version",
    "major_subsystem_version", "minor_subsystem_version",
    "win32_version_value", "size_of_image", "size_of_headers",
    "checksum", "subsystem", "dll_characteristics",
    "size_of_stack_reserve", "size_of_stack_commit",
    "size_of_heap_reserve", "size_of_heap_commit",
    "loader_flags", "number_of_rva_and_sizes",
)


# ---------------------------------------------------------------------------
# DOS header
# ---------------------------------------------------------------------------

def decode_dos_header(cursor: ByteCursor) -> DOSHeader:
    """Decode the 64-byte DOS header at offset 0.

    ``e_magic`` is validated before any other byte is interpreted.

    Raises:
        InvalidDosMagic: If the file does not start with ``MZ``.
        TruncatedInput: If the buffer is shorter than the DOS header.
    """
    cursor.seek(0)
    e_magic = cursor.read_u16()
    if e_magic != DOS_MAGIC:
        raise InvalidDosMagic(e_magic)

    fields = cursor.read_struct(_DOS_REST_FMT)
    return DOSHeader(
        e_magic=e_magic,
        e_cblp=fields[0],
        e_cp=fields[1],
        e_crlc=fields[2],
        e_cparhdr=fields[3],
        e_minalloc=fields[4],
        e_maxalloc=fields[5],
        e_ss=fields[6],
        e_sp=fields[7],
        e_csum=fields[8],
        e_ip=fields[9],
        e_cs=fields[10],
        e_lfarlc=fields[11],
        e_ovno=fields[12],
        e_res=fields[13:17],
        e_oemid=fields[17],
        e_oeminfo=fields[18],
        e_res2=fields[19:29],
        e_lfanew=fields[29],
    )


# ---------------------------------------------------------------------------
# NT header
# ---------------------------------------------------------------------------

def decode_nt_header(cursor: ByteCursor, e_lfanew: int) -> NTHeader:
    """Decode the PE signature and COFF header located at *e_lfanew*."""
    cursor.seek(e_lfanew)
    signature = bytes(cursor.read_bytes(len(PE_MAGIC)))
    if signature != PE_MAGIC:
        raise InvalidPeSignature(e_lfanew, signature)

    (
        machine,
        number_of_sections,
        time_date_stamp,
        pointer_to_symbol_table,
        number_of_symbols,
        size_of_optional_header,
        characteristics,
    ) = cursor.read_struct(_COFF_FMT)

    coff = COFFHeader(
        machine=machine,
        number_of_sections=number_of_sections,
        time_date_stamp=time_date_stamp,
        pointer_to_symbol_table=pointer_to_symbol_table,
        number_of_symbols=number_of_symbols,
        size_of_optional_header=size_of_optional_header,
        characteristics=characteristics,
    )
    return NTHeader(signature=signature, coff_header=coff)


# ---------------------------------------------------------------------------
# Optional header
# ---------------------------------------------------------------------------

def _decode_data_directories(cursor: ByteCursor) -> tuple[ImageDataDirectory, ...]:
    directories: list[ImageDataDirectory] = []
    for _ in range(NUMBER_OF_DATA_DIRECTORIES):
        rva, size = cursor.read_struct("II")
        directories.append(ImageDataDirectory(virtual_address=rva, size=size))
    return tuple(directories)


def _decode_pe32(cursor: ByteCursor) -> OptionalHeader32:
    (
        magic, major_linker, minor_linker,
        size_of_code, size_of_init, size_of_uninit,
        entry_point, base_of_code, base_of_data,
    ) = cursor.read_struct(_PE32_STD_FMT)
    windows = dict(zip(_WINDOWS_FIELD_NAMES, cursor.read_struct(_PE32_WIN_FMT)))

    return OptionalHeader32(
        magic=magic,
        major_linker_version=major_linker,
        minor_linker_version=minor_linker,
        size_of_code=size_of_code,
        size_of_initialized_data=size_of_init,
        size_of_uninitialized_data=size_of_uninit,
        address_of_entry_point=entry_point,
        base_of_code=base_of_code,
        base_of_data=base_of_data,
        data_directories=_decode_data_directories(cursor),
        **windows,
    )


def _decode_pe32plus(cursor: ByteCursor) -> OptionalHeader64:
    (
        magic, major_linker, minor_linker,
        size_of_code, size_of_init, size_of_uninit,
        entry_point, base_of_code,
    ) = cursor.read_struct(_PE32PLUS_STD_FMT)
    windows = dict(zip(_WINDOWS_FIELD_NAMES, cursor.read_struct(_PE32PLUS_WIN_FMT)))

    return OptionalHeader64(
        magic=magic,
        major_linker_version=major_linker,
        minor_linker_version=minor_linker,
        size_of_code=size_of_code,
        size_of_initialized_data=size_of_init,
        size_of_uninitialized_data=size_of_uninit,
        address_of_entry_point=entry_point,
        base_of_code=base_of_code,
        data_directories=_decode_data_directories(cursor),
        **windows,
    )


def decode_optional_header(
    cursor: ByteCursor,
    coff: COFFHeader,
) -> OptionalHeader32 | OptionalHeader64:
    """Decode the optional header at the cursor and align to the section table.

    The magic is peeked first, then the whole matching variant is decoded
    from the same position.

    Raises:
        UnknownOptionalHeaderMagic: For a magic other than 0x10B / 0x20B.
        OptionalHeaderSizeMismatch: If ``size_of_optional_header`` is
            smaller than the decoded variant.
    """
    start = cursor.tell()
    magic = cursor.peek_u16()

    if magic == PE32_MAGIC:
        optional: OptionalHeader32 | OptionalHeader64 = _decode_pe32(cursor)
    elif magic == PE32PLUS_MAGIC:
        optional = _decode_pe32plus(cursor)
    else:
        raise UnknownOptionalHeaderMagic(magic)

    decoded = cursor.tell() - start
    declared = coff.size_of_optional_header
    if declared < decoded:
        raise OptionalHeaderSizeMismatch(declared, decoded)
    cursor.skip(declared - decoded)
    return optional


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def decode_header(source: ByteCursor | bytes | memoryview) -> PEHeader:
    """Decode DOS, NT and optional headers.

    *source* is a cursor or a raw buffer.  On return a given cursor sits at
    the start of the section table.
    """
    cursor = source if isinstance(source, ByteCursor) else ByteCursor(source)
    dos = decode_dos_header(cursor)
    nt = decode_nt_header(cursor, dos.e_lfanew)
    optional = decode_optional_header(cursor, nt.coff_header)
    return PEHeader(dos=dos, nt=nt, optional=optional)
