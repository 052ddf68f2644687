"""
Section Table Decoder
======================

Decodes the array of 40-byte ``IMAGE_SECTION_HEADER`` records that
immediately follows the optional header.

Section names are stored inline in an 8-byte, NUL-padded field.  Two
first-byte values are special:

    - ``0x00`` marks an empty record; the remaining 39 bytes are skipped
      uninterpreted and the record decodes to a sentinel with an empty name.
    - ``'/'`` means the name lives in the COFF string table.  That table
      is not modelled, so such records raise :class:`UnsupportedFeature`
      rather than yielding a made-up name.

Typical section names::

    .text   code                      .rdata  read-only data
    .data   initialized data          .bss    uninitialized data
    .idata  import descriptors        .edata  export descriptors
    .pdata  exception information     .xdata  stack unwinding information
    .reloc  base relocations          .rsrc   resources
    .tls    __declspec(thread) data
"""

from __future__ import annotations

from pedump.core.constants import (
    EMPTY_SECTION_NAME,
    SECTION_HEADER_SIZE,
    SECTION_NAME_SIZE,
    STRING_TABLE_NAME_PREFIX,
)
from pedump.core.errors import UnsupportedFeature
from pedump.core.models import SectionHeader
from pedump.parsers.cursor import ByteCursor


_SECTION_FIELDS_FMT = "IIIIIIHHI"


def decode_section_header(cursor: ByteCursor) -> SectionHeader:
    """Decode one section record; the cursor advances exactly 40 bytes."""
    start = cursor.tell()
    first = cursor.read_u8()

    if first == 0x00:
        cursor.skip(SECTION_HEADER_SIZE - 1)
        return SectionHeader(name=EMPTY_SECTION_NAME)

    if first == STRING_TABLE_NAME_PREFIX:
        raw = bytes([first]) + bytes(cursor.read_bytes(SECTION_NAME_SIZE - 1))
        label = raw.split(b"\x00", 1)[0].decode("ascii", errors="replace")
        raise UnsupportedFeature(
            f"Section at 0x{start:x} uses a string-table name ({label}); "
            f"COFF string table lookup is not supported"
        )

    rest = bytes(cursor.read_bytes(SECTION_NAME_SIZE - 1))
    raw_name = (bytes([first]) + rest).split(b"\x00", 1)[0]
    name = raw_name.decode("ascii", errors="replace")

    (
        virtual_size,
        virtual_address,
        size_of_raw_data,
        ptr_to_raw_data,
        pointer_to_relocations,
        pointer_to_line_numbers,
        number_of_relocations,
        number_of_line_numbers,
        characteristics,
    ) = cursor.read_struct(_SECTION_FIELDS_FMT)

    return SectionHeader(
        name=name,
        virtual_size=virtual_size,
        virtual_address=virtual_address,
        size_of_raw_data=size_of_raw_data,
        ptr_to_raw_data=ptr_to_raw_data,
        pointer_to_relocations=pointer_to_relocations,
        pointer_to_line_numbers=pointer_to_line_numbers,
        number_of_relocations=number_of_relocations,
        number_of_line_numbers=number_of_line_numbers,
        characteristics=characteristics,
    )


def decode_sections(cursor: ByteCursor, count: int) -> tuple[SectionHeader, ...]:
    """Decode *count* consecutive section records starting at the cursor.

    No check is made that a section's raw data lies inside the file;
    consumers that slice the data do that themselves.
    """
    return tuple(decode_section_header(cursor) for _ in range(count))


def index_sections(sections: tuple[SectionHeader, ...]) -> dict[str, SectionHeader]:
    """Map section names to headers; a later duplicate name replaces an earlier one."""
    return {section.name: section for section in sections}
