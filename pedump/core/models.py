"""
PEDump Data Models
===================

Pydantic models for every structure the PE decoder produces.  All models
are frozen: an image is decoded once, top to bottom, and nothing is
mutated afterwards.

The two closed variant sets of the format -- the 32/64-bit optional
header and the ordinal/name import lookup entry -- are expressed as
pydantic discriminated unions rather than a dispatch hierarchy, since
the format fixes the set of variants.

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
    - Pietrek, M. (2002). An In-Depth Look into the Win32 Portable
      Executable File Format. MSDN Magazine.
    - Pydantic v2 documentation. https://docs.pydantic.dev/latest/
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from pedump.core.constants import (
    DLL_CHARACTERISTICS,
    FILE_CHARACTERISTICS,
    IMAGE_FILE_DLL,
    IMAGE_SCN_MEM_EXECUTE,
    MACHINE_NAMES,
    PE32_MAGIC,
    PE32PLUS_MAGIC,
    SECTION_CHARACTERISTICS,
    SUBSYSTEM_NAMES,
    DataDirectoryEntry,
    flag_names,
)


class _Frozen(BaseModel):
    """Common configuration for decoded structures."""
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# DOS / NT headers
# ---------------------------------------------------------------------------

class DOSHeader(_Frozen):
    """Legacy MS-DOS header at offset 0.

    Only ``e_magic`` and ``e_lfanew`` matter to the rest of the decoder;
    the remaining fields are kept so the header can be dumped verbatim.
    """
    e_magic: int
    e_cblp: int = 0
    e_cp: int = 0
    e_crlc: int = 0
    e_cparhdr: int = 0
    e_minalloc: int = 0
    e_maxalloc: int = 0
    e_ss: int = 0
    e_sp: int = 0
    e_csum: int = 0
    e_ip: int = 0
    e_cs: int = 0
    e_lfarlc: int = 0
    e_ovno: int = 0
    e_res: tuple[int, ...] = (0, 0, 0, 0)
    e_oemid: int = 0
    e_oeminfo: int = 0
    e_res2: tuple[int, ...] = (0,) * 10
    e_lfanew: int


class COFFHeader(_Frozen):
    """COFF file header following the ``PE\\0\\0`` signature."""
    machine: int
    number_of_sections: int
    time_date_stamp: int
    pointer_to_symbol_table: int
    number_of_symbols: int
    size_of_optional_header: int
    characteristics: int

    @property
    def machine_name(self) -> str:
        return MACHINE_NAMES.get(self.machine, f"Unknown(0x{self.machine:x})")

    @property
    def characteristic_names(self) -> list[str]:
        return flag_names(self.characteristics, FILE_CHARACTERISTICS)

    @property
    def is_dll(self) -> bool:
        return bool(self.characteristics & IMAGE_FILE_DLL)

    @property
    def timestamp(self) -> Optional[datetime]:
        """Link time as a UTC datetime, or ``None`` when the field is zero."""
        if self.time_date_stamp == 0:
            return None
        return datetime.fromtimestamp(self.time_date_stamp, tz=timezone.utc)


class NTHeader(_Frozen):
    """The ``PE\\0\\0`` signature plus the COFF header."""
    signature: bytes
    coff_header: COFFHeader


# ---------------------------------------------------------------------------
# Optional header
# ---------------------------------------------------------------------------

class ImageDataDirectory(_Frozen):
    """An ``(RVA, size)`` pair; ``(0, 0)`` means the table is absent."""
    virtual_address: int = 0
    size: int = 0

    @property
    def is_present(self) -> bool:
        return self.virtual_address != 0


class _OptionalHeaderFields(_Frozen):
    """Fields shared by both optional header variants."""
    major_linker_version: int
    minor_linker_version: int
    size_of_code: int
    size_of_initialized_data: int
    size_of_uninitialized_data: int
    address_of_entry_point: int
    base_of_code: int
    image_base: int
    section_alignment: int
    file_alignment: int
    major_operating_system_version: int
    minor_operating_system_version: int
    major_image_version: int
    minor_image_version: int
    major_subsystem_version: int
    minor_subsystem_version: int
    win32_version_value: int
    size_of_image: int
    size_of_headers: int
    checksum: int
    subsystem: int
    dll_characteristics: int
    size_of_stack_reserve: int
    size_of_stack_commit: int
    size_of_heap_reserve: int
    size_of_heap_commit: int
    loader_flags: int
    number_of_rva_and_sizes: int
    data_directories: tuple[ImageDataDirectory, ...]

    def directory(self, entry: DataDirectoryEntry | int) -> ImageDataDirectory:
        """Return the data directory stored in slot *entry*."""
        return self.data_directories[int(entry)]

    @property
    def subsystem_name(self) -> str:
        return SUBSYSTEM_NAMES.get(self.subsystem, f"Unknown({self.subsystem})")

    @property
    def dll_characteristic_names(self) -> list[str]:
        return flag_names(self.dll_characteristics, DLL_CHARACTERISTICS)


class OptionalHeader32(_OptionalHeaderFields):
    """PE32 optional header: 4-byte image base and stack/heap sizes."""
    magic: Literal[0x10B] = PE32_MAGIC
    base_of_data: int


class OptionalHeader64(_OptionalHeaderFields):
    """PE32+ optional header: 8-byte image base and stack/heap sizes."""
    magic: Literal[0x20B] = PE32PLUS_MAGIC


OptionalHeader = Annotated[
    Union[OptionalHeader32, OptionalHeader64],
    Field(discriminator="magic"),
]


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

class SectionHeader(_Frozen):
    """One 40-byte record of the section table."""
    name: str
    virtual_size: int = 0
    virtual_address: int = 0
    size_of_raw_data: int = 0
    ptr_to_raw_data: int = 0
    pointer_to_relocations: int = 0
    pointer_to_line_numbers: int = 0
    number_of_relocations: int = 0
    number_of_line_numbers: int = 0
    characteristics: int = 0

    def contains_rva(self, rva: int) -> bool:
        return self.virtual_address <= rva < self.virtual_address + self.virtual_size

    @property
    def is_executable(self) -> bool:
        return bool(self.characteristics & IMAGE_SCN_MEM_EXECUTE)

    @property
    def characteristic_names(self) -> list[str]:
        return flag_names(self.characteristics, SECTION_CHARACTERISTICS)


# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------

class ImageImportDescriptor(_Frozen):
    """One entry of the import directory table."""
    import_lookup_table_rva: int
    time_date_stamp: int
    forwarder_chain: int
    name_rva: int
    import_address_table_rva: int

    @property
    def is_terminator(self) -> bool:
        return not (
            self.import_lookup_table_rva
            or self.time_date_stamp
            or self.forwarder_chain
            or self.name_rva
            or self.import_address_table_rva
        )


class OrdinalImport(_Frozen):
    """Lookup entry importing a function by ordinal."""
    kind: Literal["ordinal"] = "ordinal"
    ordinal: int


class NameImport(_Frozen):
    """Lookup entry importing a function through the Hint/Name table."""
    kind: Literal["name"] = "name"
    hint_name_table_rva: int


ImportLookupEntry = Annotated[
    Union[OrdinalImport, NameImport],
    Field(discriminator="kind"),
]


class HintNameEntry(_Frozen):
    """A Hint/Name table record.

    Attributes:
        hint: Index into the exporting DLL's name pointer table.
        name: ASCII function name.
        was_padded: ``True`` when a trailing pad byte restored 2-byte
            alignment after the name's terminator.
    """
    hint: int
    name: str
    was_padded: bool = False


class ImportedFunction(_Frozen):
    """A lookup entry together with its resolved Hint/Name record."""
    entry: ImportLookupEntry
    hint_name: Optional[HintNameEntry] = None

    @property
    def name(self) -> str:
        if self.hint_name is not None:
            return self.hint_name.name
        return f"Ordinal_{self.entry.ordinal}"

    @property
    def by_ordinal(self) -> bool:
        return isinstance(self.entry, OrdinalImport)


class ImportedModule(_Frozen):
    """Everything one import descriptor pulls in from a single DLL."""
    dll_name: str
    descriptor: ImageImportDescriptor
    functions: tuple[ImportedFunction, ...] = ()


class ImportTable(_Frozen):
    """The decoded import directory; empty when the image imports nothing."""
    modules: tuple[ImportedModule, ...] = ()

    @property
    def dll_names(self) -> list[str]:
        return [module.dll_name for module in self.modules]

    @property
    def descriptors(self) -> list[ImageImportDescriptor]:
        return [module.descriptor for module in self.modules]

    @property
    def is_empty(self) -> bool:
        return not self.modules

    @property
    def function_count(self) -> int:
        return sum(len(module.functions) for module in self.modules)


# ---------------------------------------------------------------------------
# Aggregate header
# ---------------------------------------------------------------------------

class PEHeader(_Frozen):
    """DOS header, NT header and the selected optional header variant."""
    dos: DOSHeader
    nt: NTHeader
    optional: OptionalHeader
