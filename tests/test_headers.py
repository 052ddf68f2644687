"""DOS, NT and optional header decoding."""

import pytest

from conftest import IMAGE_BASE_32, IMAGE_BASE_64, build_pe
from pedump.core.constants import PE32_MAGIC, PE32PLUS_MAGIC
from pedump.core.errors import (
    FormatError,
    InvalidDosMagic,
    InvalidPeSignature,
    OptionalHeaderSizeMismatch,
    TruncatedInput,
    UnknownOptionalHeaderMagic,
)
from pedump.core.models import OptionalHeader32, OptionalHeader64
from pedump.parsers.cursor import ByteCursor
from pedump.parsers.headers import decode_dos_header, decode_header


def test_dos_header_fields():
    dos = decode_dos_header(ByteCursor(build_pe()))
    assert dos.e_magic == 0x5A4D
    assert dos.e_lfanew == 0x80
    assert len(dos.e_res) == 4
    assert len(dos.e_res2) == 10


@pytest.mark.parametrize("magic", [b"ZM", b"\x00\x00", b"PE"])
def test_invalid_dos_magic(magic):
    with pytest.raises(InvalidDosMagic):
        decode_header(ByteCursor(build_pe(dos_magic=magic)))


def test_dos_header_truncated():
    with pytest.raises(TruncatedInput):
        decode_header(ByteCursor(b"MZ" + b"\x00" * 20))


def test_invalid_pe_signature():
    with pytest.raises(InvalidPeSignature) as info:
        decode_header(ByteCursor(build_pe(signature=b"NE\x00\x00")))
    assert info.value.offset == 0x80
    assert isinstance(info.value, FormatError)


def test_pe32_variant():
    header = decode_header(ByteCursor(build_pe()))
    optional = header.optional
    assert isinstance(optional, OptionalHeader32)
    assert optional.magic == PE32_MAGIC
    assert optional.image_base == IMAGE_BASE_32
    assert optional.base_of_data == 0x2000
    assert optional.number_of_rva_and_sizes == 16
    assert len(optional.data_directories) == 16
    assert optional.subsystem_name == "Windows Console"


def test_pe32plus_variant():
    header = decode_header(ByteCursor(build_pe(is_64=True)))
    optional = header.optional
    assert isinstance(optional, OptionalHeader64)
    assert optional.magic == PE32PLUS_MAGIC
    assert optional.image_base == IMAGE_BASE_64
    assert not hasattr(optional, "base_of_data")


@pytest.mark.parametrize("magic", [0x0000, 0x107, 0x10C, 0x30B])
def test_unknown_optional_magic(magic):
    with pytest.raises(UnknownOptionalHeaderMagic) as info:
        decode_header(ByteCursor(build_pe(optional_magic=magic)))
    assert info.value.magic == magic


def test_cursor_left_at_section_table():
    cursor = ByteCursor(build_pe())
    decode_header(cursor)
    assert cursor.tell() == 0x80 + 4 + 20 + 224


def test_declared_size_larger_skips_forward():
    cursor = ByteCursor(build_pe(size_of_optional_header=224 + 32))
    decode_header(cursor)
    assert cursor.tell() == 0x80 + 4 + 20 + 256


def test_declared_size_smaller_fails():
    with pytest.raises(OptionalHeaderSizeMismatch) as info:
        decode_header(ByteCursor(build_pe(is_64=True, size_of_optional_header=224)))
    assert info.value.declared == 224
    assert info.value.decoded == 240


def test_coff_header_names():
    header = decode_header(ByteCursor(build_pe(is_64=True, characteristics=0x2022)))
    coff = header.nt.coff_header
    assert coff.machine_name == "x64"
    assert coff.is_dll
    assert "DLL" in coff.characteristic_names


def test_decode_header_from_raw_buffer():
    header = decode_header(build_pe(is_64=True))
    assert header.nt.signature == b"PE\x00\x00"
    assert isinstance(header.optional, OptionalHeader64)
