"""
Import Table Walker
====================

Walks the import directory of a PE image:

    1. the ``IMAGE_IMPORT_DESCRIPTOR`` array (20-byte records, terminated by
       an all-zero record),
    2. for each descriptor, the NUL-terminated DLL name at ``name_rva``,
    3. the import lookup table at ``import_lookup_table_rva`` (falling back
       to the IAT when the lookup RVA is zero), whose 32- or 64-bit entries
       are terminated by zero,
    4. for every by-name entry, the Hint/Name record it points to.

The descriptor scan is capped: after ``max_descriptors`` records one more
is read, and unless it is the terminator the walk fails with
:class:`ResourceLimitExceeded`.  A corrupt or hostile image without a
terminator therefore cannot make the walker run through the whole file.

References:
    - Microsoft. (2024). PE Format -- The .idata Section.
    - Pietrek, M. (2002). An In-Depth Look into the Win32 Portable
      Executable File Format, Part 2. MSDN Magazine.
"""

from __future__ import annotations

from typing import Union

from pedump.core.constants import (
    DEFAULT_MAX_IMPORT_DESCRIPTORS,
    HINT_NAME_RVA_MASK,
    ORDINAL_FLAG_32,
    ORDINAL_FLAG_64,
    ORDINAL_MASK,
    DataDirectoryEntry,
)
from pedump.core.errors import ResourceLimitExceeded
from pedump.core.models import (
    HintNameEntry,
    ImageImportDescriptor,
    ImportedFunction,
    ImportedModule,
    ImportTable,
    NameImport,
    OptionalHeader32,
    OptionalHeader64,
    OrdinalImport,
)
from pedump.parsers.address import AddressTranslator
from pedump.parsers.cursor import ByteCursor


_DESCRIPTOR_FMT = "IIIII"


# ---------------------------------------------------------------------------
# Record decoders
# ---------------------------------------------------------------------------

def decode_import_descriptor(cursor: ByteCursor) -> ImageImportDescriptor:
    """Decode one 20-byte import descriptor at the cursor."""
    (
        import_lookup_table_rva,
        time_date_stamp,
        forwarder_chain,
        name_rva,
        import_address_table_rva,
    ) = cursor.read_struct(_DESCRIPTOR_FMT)
    return ImageImportDescriptor(
        import_lookup_table_rva=import_lookup_table_rva,
        time_date_stamp=time_date_stamp,
        forwarder_chain=forwarder_chain,
        name_rva=name_rva,
        import_address_table_rva=import_address_table_rva,
    )


def decode_import_descriptors(
    cursor: ByteCursor,
    max_descriptors: int = DEFAULT_MAX_IMPORT_DESCRIPTORS,
) -> list[ImageImportDescriptor]:
    """Decode descriptors at the cursor up to (not including) the terminator.

    Raises:
        ResourceLimitExceeded: If *max_descriptors* records are followed
            by anything other than the all-zero terminator.
    """
    descriptors: list[ImageImportDescriptor] = []
    while True:
        descriptor = decode_import_descriptor(cursor)
        if descriptor.is_terminator:
            return descriptors
        if len(descriptors) >= max_descriptors:
            raise ResourceLimitExceeded("Import descriptor table", max_descriptors)
        descriptors.append(descriptor)


def decode_lookup_entry(
    cursor: ByteCursor,
    is_64_bit: bool,
) -> Union[OrdinalImport, NameImport, None]:
    """Decode one import lookup entry; ``None`` marks the end of the table.

    The top bit of the raw field selects ordinal (low 16 bits) versus
    name import (low 31 bits = Hint/Name RVA).
    """
    if is_64_bit:
        raw = cursor.read_u64()
        ordinal_flag = ORDINAL_FLAG_64
    else:
        raw = cursor.read_u32()
        ordinal_flag = ORDINAL_FLAG_32

    if raw == 0:
        return None
    if raw & ordinal_flag:
        return OrdinalImport(ordinal=raw & ORDINAL_MASK)
    return NameImport(hint_name_table_rva=raw & HINT_NAME_RVA_MASK)


def decode_hint_name(cursor: ByteCursor) -> HintNameEntry:
    """Decode a Hint/Name record at the cursor.

    The record is a 16-bit hint followed by a NUL-terminated ASCII name.
    When the name plus its terminator has odd length, one pad byte
    follows to keep the next record 2-byte aligned; it is consumed here.
    """
    hint = cursor.read_u16()
    raw_name = cursor.read_cstring()
    was_padded = (len(raw_name) + 1) % 2 == 1
    if was_padded:
        cursor.read_u8()
    return HintNameEntry(
        hint=hint,
        name=raw_name.decode("ascii", errors="replace"),
        was_padded=was_padded,
    )


def read_ascii_string(cursor: ByteCursor, offset: int) -> str:
    """Read the NUL-terminated ASCII string stored at file *offset*."""
    cursor.seek(offset)
    return cursor.read_cstring().decode("ascii", errors="replace")


# ---------------------------------------------------------------------------
# Walker
# ---------------------------------------------------------------------------

class ImportTableWalker:
    """Walks descriptors, DLL names, lookup tables and Hint/Name records.

    Args:
        cursor: Cursor over the whole image buffer.
        optional_header: Decoded optional header (selects entry width and
            supplies the import data directory).
        translator: RVA translator built from the section table.
        max_descriptors: Cap on the descriptor scan.
    """

    def __init__(
        self,
        cursor: ByteCursor,
        optional_header: OptionalHeader32 | OptionalHeader64,
        translator: AddressTranslator,
        max_descriptors: int = DEFAULT_MAX_IMPORT_DESCRIPTORS,
    ) -> None:
        self._cursor = cursor
        self._optional = optional_header
        self._translator = translator
        self._max_descriptors = max_descriptors
        self._is_64_bit = isinstance(optional_header, OptionalHeader64)

    def walk(self) -> ImportTable:
        """Decode the whole import directory.

        Returns an empty table when the import directory is absent or its
        RVA falls outside every section.
        """
        directory = self._optional.directory(DataDirectoryEntry.IMPORT)
        if not directory.is_present:
            return ImportTable()

        table_offset = self._translator.rva_to_offset(directory.virtual_address)
        if table_offset is None:
            return ImportTable()

        self._cursor.seek(table_offset)
        descriptors = decode_import_descriptors(self._cursor, self._max_descriptors)

        modules = [self._decode_module(descriptor) for descriptor in descriptors]
        return ImportTable(modules=tuple(modules))

    def _decode_module(self, descriptor: ImageImportDescriptor) -> ImportedModule:
        name_offset = self._translator.require_offset(
            descriptor.name_rva, "Import descriptor name"
        )
        dll_name = read_ascii_string(self._cursor, name_offset)
        return ImportedModule(
            dll_name=dll_name,
            descriptor=descriptor,
            functions=tuple(self._decode_functions(descriptor)),
        )

    def _decode_functions(self, descriptor: ImageImportDescriptor) -> list[ImportedFunction]:
        table_rva = descriptor.import_lookup_table_rva or descriptor.import_address_table_rva
        if table_rva == 0:
            return []

        offset = self._translator.require_offset(table_rva, "Import lookup table")
        entries: list[Union[OrdinalImport, NameImport]] = []
        self._cursor.seek(offset)
        while True:
            entry = decode_lookup_entry(self._cursor, self._is_64_bit)
            if entry is None:
                break
            entries.append(entry)

        functions: list[ImportedFunction] = []
        for entry in entries:
            if isinstance(entry, OrdinalImport):
                functions.append(ImportedFunction(entry=entry))
                continue
            hint_offset = self._translator.require_offset(
                entry.hint_name_table_rva, "Hint/Name entry"
            )
            self._cursor.seek(hint_offset)
            functions.append(
                ImportedFunction(entry=entry, hint_name=decode_hint_name(self._cursor))
            )
        return functions


def walk_imports(
    data: bytes | memoryview,
    optional_header: OptionalHeader32 | OptionalHeader64,
    translator: AddressTranslator,
    max_descriptors: int = DEFAULT_MAX_IMPORT_DESCRIPTORS,
) -> ImportTable:
    """Walk the import directory of the image held in *data*."""
    walker = ImportTableWalker(
        ByteCursor(data), optional_header, translator, max_descriptors
    )
    return walker.walk()
