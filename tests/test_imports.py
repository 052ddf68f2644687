"""Import descriptors, lookup entries, Hint/Name records and the walker."""

import struct

import pytest

from conftest import SCN_CODE, SCN_DATA, SectionSpec, build_pe
from pedump.core.errors import DanglingReference, ResourceLimitExceeded
from pedump.core.image import PEImage
from pedump.core.models import NameImport, OrdinalImport
from pedump.parsers.address import AddressTranslator
from pedump.parsers.cursor import ByteCursor
from pedump.parsers.headers import decode_header
from pedump.parsers.imports import (
    decode_hint_name,
    decode_import_descriptors,
    decode_lookup_entry,
    walk_imports,
)
from pedump.parsers.sections import decode_sections

_DESCRIPTOR = struct.pack("<5I", 0x2000, 0, 0, 0x2100, 0x2200)
_TERMINATOR = bytes(20)


class TestDescriptors:
    def test_stops_at_terminator(self):
        cursor = ByteCursor(_DESCRIPTOR * 3 + _TERMINATOR + _DESCRIPTOR)
        descriptors = decode_import_descriptors(cursor)
        assert len(descriptors) == 3
        assert descriptors[0].name_rva == 0x2100
        assert cursor.tell() == 80

    def test_exactly_cap_then_terminator(self):
        cursor = ByteCursor(_DESCRIPTOR * 256 + _TERMINATOR)
        assert len(decode_import_descriptors(cursor)) == 256

    def test_more_than_cap_fails(self):
        cursor = ByteCursor(_DESCRIPTOR * 257 + _TERMINATOR)
        with pytest.raises(ResourceLimitExceeded) as info:
            decode_import_descriptors(cursor)
        assert info.value.limit == 256

    def test_cap_is_configurable(self):
        cursor = ByteCursor(_DESCRIPTOR * 3 + _TERMINATOR)
        with pytest.raises(ResourceLimitExceeded):
            decode_import_descriptors(cursor, max_descriptors=2)

    def test_partial_descriptor_is_not_a_terminator(self):
        only_timestamp = struct.pack("<5I", 0, 1, 0, 0, 0)
        cursor = ByteCursor(only_timestamp + _TERMINATOR)
        assert len(decode_import_descriptors(cursor)) == 1


class TestLookupEntries:
    def test_zero_ends_table(self):
        assert decode_lookup_entry(ByteCursor(bytes(4)), is_64_bit=False) is None
        assert decode_lookup_entry(ByteCursor(bytes(8)), is_64_bit=True) is None

    def test_ordinal_32(self):
        entry = decode_lookup_entry(ByteCursor(struct.pack("<I", 0x8000_0011)), False)
        assert isinstance(entry, OrdinalImport)
        assert entry.ordinal == 0x11

    def test_ordinal_64(self):
        entry = decode_lookup_entry(ByteCursor(struct.pack("<Q", (1 << 63) | 0x1_0042)), True)
        assert isinstance(entry, OrdinalImport)
        assert entry.ordinal == 0x42

    def test_name_32_masks_31_bits(self):
        entry = decode_lookup_entry(ByteCursor(struct.pack("<I", 0x0000_3010)), False)
        assert isinstance(entry, NameImport)
        assert entry.hint_name_table_rva == 0x3010

    def test_name_64_ignores_high_bits(self):
        entry = decode_lookup_entry(ByteCursor(struct.pack("<Q", (1 << 40) | 0x3010)), True)
        assert isinstance(entry, NameImport)
        assert entry.hint_name_table_rva == 0x3010


class TestHintName:
    def test_even_length_has_no_pad(self):
        # "Sleep" + NUL = 6 bytes
        cursor = ByteCursor(struct.pack("<H", 7) + b"Sleep\x00" + b"\xaa")
        entry = decode_hint_name(cursor)
        assert entry.hint == 7
        assert entry.name == "Sleep"
        assert not entry.was_padded
        assert cursor.tell() == 8

    def test_odd_length_consumes_pad(self):
        # "Beep" + NUL = 5 bytes, one pad byte follows
        cursor = ByteCursor(struct.pack("<H", 3) + b"Beep\x00\x00" + b"\xaa")
        entry = decode_hint_name(cursor)
        assert entry.name == "Beep"
        assert entry.was_padded
        assert cursor.tell() == 8

    def test_non_ascii_replaced(self):
        entry = decode_hint_name(ByteCursor(b"\x00\x00" + b"F\xffo\x00"))
        assert entry.name == "F\ufffdo"


class TestWalker:
    def test_pe32_imports(self, pe32_with_imports):
        table = PEImage.parse(pe32_with_imports).import_table
        assert table.dll_names == ["KERNEL32.dll", "USER32.dll"]
        kernel32 = table.modules[0]
        assert [f.name for f in kernel32.functions] == [
            "ExitProcess", "GetLastError", "Ordinal_17",
        ]
        assert [f.hint_name.hint for f in kernel32.functions[:2]] == [0, 1]
        assert kernel32.functions[2].by_ordinal
        assert table.function_count == 4

    def test_pe64_imports(self, pe64_with_imports):
        table = PEImage.parse(pe64_with_imports).import_table
        functions = table.modules[0].functions
        assert functions[0].name == "ExitProcess"
        assert functions[1].entry.ordinal == 42

    def test_absent_directory_gives_empty_table(self, minimal_pe32):
        table = PEImage.parse(minimal_pe32).import_table
        assert table.is_empty
        assert table.dll_names == []

    def test_directory_outside_sections_gives_empty_table(self):
        image = PEImage.parse(
            build_pe(
                sections=[SectionSpec(b".text", b"\xc3", SCN_CODE)],
                import_directory=(0x9000, 40),
            )
        )
        assert image.import_table.is_empty

    def test_no_imports_only_terminator(self):
        image = PEImage.parse(build_pe(imports=[]))
        assert image.import_table.is_empty

    def test_iat_used_when_lookup_rva_is_zero(self):
        data = bytearray(build_pe(imports=[("A.dll", ["Foo"])]))
        image = PEImage.parse(bytes(data))
        offset = image.rva_to_offset(image.data_directory(1).virtual_address)
        struct.pack_into("<I", data, offset, 0)
        table = PEImage.parse(bytes(data)).import_table
        assert [f.name for f in table.modules[0].functions] == ["Foo"]

    def test_no_lookup_and_no_iat_gives_no_functions(self):
        data = bytearray(build_pe(imports=[("A.dll", ["Foo"])]))
        offset = PEImage.parse(bytes(data)).rva_to_offset(0x1000)
        struct.pack_into("<I", data, offset, 0)
        struct.pack_into("<I", data, offset + 16, 0)
        table = PEImage.parse(bytes(data)).import_table
        assert table.modules[0].dll_name == "A.dll"
        assert table.modules[0].functions == ()

    def test_dangling_name_rva(self):
        data = bytearray(build_pe(imports=[("A.dll", ["Foo"])]))
        offset = PEImage.parse(bytes(data)).rva_to_offset(0x1000)
        struct.pack_into("<I", data, offset + 12, 0x80000)
        with pytest.raises(DanglingReference):
            PEImage.parse(bytes(data))

    def test_descriptor_cap_from_parse(self):
        imports = [(f"D{i}.dll", []) for i in range(3)]
        with pytest.raises(ResourceLimitExceeded):
            PEImage.parse(build_pe(imports=imports), max_import_descriptors=2)


class TestWalkImports:
    @staticmethod
    def _decode(data):
        cursor = ByteCursor(data)
        header = decode_header(cursor)
        sections = decode_sections(cursor, header.nt.coff_header.number_of_sections)
        return header.optional, AddressTranslator(sections)

    def test_walks_a_raw_buffer(self, pe32_with_imports):
        optional, translator = self._decode(pe32_with_imports)
        table = walk_imports(pe32_with_imports, optional, translator)
        assert table.dll_names == ["KERNEL32.dll", "USER32.dll"]
        assert table.function_count == 4

    def test_no_import_directory(self, minimal_pe32):
        optional, translator = self._decode(minimal_pe32)
        assert walk_imports(memoryview(minimal_pe32), optional, translator).is_empty

    def test_descriptor_cap(self, pe32_with_imports):
        optional, translator = self._decode(pe32_with_imports)
        with pytest.raises(ResourceLimitExceeded):
            walk_imports(pe32_with_imports, optional, translator, max_descriptors=1)
