"""
PE Image
=========

:class:`PEImage` owns the raw file bytes and every structure decoded from
them.  It is built in one top-to-bottom pass by :meth:`PEImage.parse`:

    raw bytes -> headers -> section table -> (RVA translation available)
              -> import table (only when the import directory is present)

All decoders read through views of the single buffer held here; the
image never hands out a second owned copy.  Once constructed, nothing on
the image changes.

Usage::

    image = PEImage.parse(Path("notepad.exe").read_bytes())
    print(image.architecture, image.number_of_sections)
    for dll in image.dll_names:
        print(dll)
"""

from __future__ import annotations

from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional

from pedump.core.constants import (
    DEFAULT_MAX_IMPORT_DESCRIPTORS,
    DataDirectoryEntry,
    PEArchitecture,
)
from pedump.core.errors import SectionNotFound, TruncatedInput
from pedump.core.models import (
    COFFHeader,
    DOSHeader,
    ImageDataDirectory,
    ImportTable,
    NTHeader,
    OptionalHeader32,
    OptionalHeader64,
    PEHeader,
    SectionHeader,
)
from pedump.parsers.address import AddressTranslator
from pedump.parsers.cursor import ByteCursor
from pedump.parsers.headers import decode_header
from pedump.parsers.imports import walk_imports
from pedump.parsers.sections import decode_sections, index_sections


class PEImage:
    """A fully decoded, immutable PE image.

    Instances are normally created through :meth:`parse`; the constructor
    only assembles already-decoded parts.
    """

    __slots__ = (
        "_data", "_header", "_section_headers", "_sections",
        "_translator", "_import_table",
    )

    def __init__(
        self,
        data: bytes,
        header: PEHeader,
        section_headers: tuple[SectionHeader, ...],
        import_table: ImportTable,
    ) -> None:
        self._data: bytes = data
        self._header: PEHeader = header
        self._section_headers: tuple[SectionHeader, ...] = section_headers
        self._sections: Mapping[str, SectionHeader] = MappingProxyType(
            index_sections(section_headers)
        )
        self._translator: AddressTranslator = AddressTranslator(section_headers)
        self._import_table: ImportTable = import_table

    # ------------------------------------------------------------------ #
    #  Construction
    # ------------------------------------------------------------------ #

    @classmethod
    def parse(
        cls,
        data: bytes,
        max_import_descriptors: int = DEFAULT_MAX_IMPORT_DESCRIPTORS,
    ) -> PEImage:
        """Decode *data* in a single pass.

        Args:
            data: Complete file contents.
            max_import_descriptors: Cap on the import descriptor scan.

        Raises:
            PEDumpError: Any subclass; decoding is all-or-nothing.
        """
        data = bytes(data)
        cursor = ByteCursor(data)

        header = decode_header(cursor)
        section_headers = decode_sections(
            cursor, header.nt.coff_header.number_of_sections
        )
        translator = AddressTranslator(section_headers)
        import_table = walk_imports(
            data, header.optional, translator, max_import_descriptors
        )

        return cls(data, header, section_headers, import_table)

    # ------------------------------------------------------------------ #
    #  Headers
    # ------------------------------------------------------------------ #

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def header(self) -> PEHeader:
        return self._header

    @property
    def dos_header(self) -> DOSHeader:
        return self._header.dos

    @property
    def nt_header(self) -> NTHeader:
        return self._header.nt

    @property
    def coff_header(self) -> COFFHeader:
        return self._header.nt.coff_header

    @property
    def optional_header(self) -> OptionalHeader32 | OptionalHeader64:
        return self._header.optional

    @property
    def is_32_bit(self) -> bool:
        return isinstance(self._header.optional, OptionalHeader32)

    @property
    def architecture(self) -> PEArchitecture:
        return PEArchitecture.PE32 if self.is_32_bit else PEArchitecture.PE64

    @property
    def size_of_optional_header(self) -> int:
        return self.coff_header.size_of_optional_header

    @property
    def timestamp(self) -> Optional[datetime]:
        return self.coff_header.timestamp

    def data_directory(self, entry: DataDirectoryEntry | int) -> ImageDataDirectory:
        """Return the optional header's data directory in slot *entry*."""
        return self._header.optional.directory(entry)

    # ------------------------------------------------------------------ #
    #  Sections
    # ------------------------------------------------------------------ #

    @property
    def number_of_sections(self) -> int:
        return self.coff_header.number_of_sections

    @property
    def section_headers(self) -> tuple[SectionHeader, ...]:
        """Every section record in table order, duplicates included."""
        return self._section_headers

    @property
    def sections(self) -> Mapping[str, SectionHeader]:
        """Read-only name -> section map (last record wins on a duplicate name)."""
        return self._sections

    def section(self, name: str) -> SectionHeader:
        try:
            return self._sections[name]
        except KeyError:
            raise SectionNotFound(name) from None

    def section_data(self, section: SectionHeader | str) -> memoryview:
        """Return the raw bytes of *section* as a view into the image buffer.

        Raises:
            SectionNotFound: If *section* is a name no section carries.
            TruncatedInput: If the raw data extends past the end of the file.
        """
        if isinstance(section, str):
            section = self.section(section)
        start = section.ptr_to_raw_data
        end = start + section.size_of_raw_data
        if end > len(self._data):
            raise TruncatedInput(start, section.size_of_raw_data, len(self._data))
        return memoryview(self._data)[start:end]

    def rva_to_offset(self, rva: int) -> Optional[int]:
        """Translate *rva* to a file offset; ``None`` when no section holds it."""
        return self._translator.rva_to_offset(rva)

    def section_for_rva(self, rva: int) -> Optional[SectionHeader]:
        return self._translator.section_for_rva(rva)

    # ------------------------------------------------------------------ #
    #  Imports
    # ------------------------------------------------------------------ #

    @property
    def import_table(self) -> ImportTable:
        return self._import_table

    @property
    def dll_names(self) -> list[str]:
        return self._import_table.dll_names

    # ------------------------------------------------------------------ #
    #  Serialisation
    # ------------------------------------------------------------------ #

    def to_dict(self) -> dict[str, Any]:
        """Serialise every decoded structure to JSON-compatible data."""
        return {
            "architecture": self.architecture.value,
            "file_size": len(self._data),
            "header": self._header.model_dump(mode="json"),
            "sections": [
                section.model_dump(mode="json") for section in self._section_headers
            ],
            "imports": self._import_table.model_dump(mode="json")["modules"],
            "dll_names": self.dll_names,
        }

    def __repr__(self) -> str:
        return (
            f"<PEImage {self.architecture.value} "
            f"machine={self.coff_header.machine_name!r} "
            f"sections={self.number_of_sections} "
            f"dlls={len(self.dll_names)}>"
        )
