"""Synthetic PE32 / PE32+ images built in memory with :mod:`struct`."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import pytest


E_LFANEW = 0x80
FILE_ALIGNMENT = 0x200
SECTION_ALIGNMENT = 0x1000
IMAGE_BASE_32 = 0x400000
IMAGE_BASE_64 = 0x140000000

MACHINE_I386 = 0x14C
MACHINE_AMD64 = 0x8664

SCN_CODE = 0x00000020 | 0x20000000 | 0x40000000          # CNT_CODE | EXECUTE | READ
SCN_DATA = 0x00000040 | 0x40000000 | 0x80000000          # INITIALIZED_DATA | READ | WRITE

# push ebp / rbp; mov ebp, esp / rbp, rsp; pop; ret; int3 x 4
CODE_32 = b"\x55\x89\xe5\x5d\xc3" + b"\xcc" * 4
CODE_64 = b"\x55\x48\x89\xe5\x5d\xc3" + b"\xcc" * 4

ImportSpec = Sequence[tuple[str, Sequence[Union[str, int]]]]


def _align(value: int, alignment: int) -> int:
    return (value + alignment - 1) // alignment * alignment


@dataclass
class SectionSpec:
    name: bytes
    data: bytes = b""
    characteristics: int = SCN_DATA
    virtual_size: Optional[int] = None


def build_import_data(rva: int, imports: ImportSpec, is_64: bool) -> bytes:
    """Lay out descriptors, ILTs, IATs, DLL names and Hint/Name records.

    Functions given as ``int`` are imported by ordinal; strings by name,
    with the hint set to the function's position in its list.
    """
    entry_fmt = "<Q" if is_64 else "<I"
    entry_size = 8 if is_64 else 4
    ordinal_flag = 1 << 63 if is_64 else 1 << 31

    blob = bytearray(20 * (len(imports) + 1))
    descriptors = []
    for dll, functions in imports:
        ilt = len(blob)
        blob += bytes(entry_size * (len(functions) + 1))
        iat = len(blob)
        blob += bytes(entry_size * (len(functions) + 1))
        name = len(blob)
        blob += dll.encode("ascii") + b"\x00"
        if len(blob) % 2:
            blob += b"\x00"

        for index, function in enumerate(functions):
            if isinstance(function, int):
                value = ordinal_flag | function
            else:
                value = rva + len(blob)
                blob += struct.pack("<H", index) + function.encode("ascii") + b"\x00"
                if len(blob) % 2:
                    blob += b"\x00"
            struct.pack_into(entry_fmt, blob, ilt + index * entry_size, value)
            struct.pack_into(entry_fmt, blob, iat + index * entry_size, value)

        descriptors.append((rva + ilt, 0, 0, rva + name, rva + iat))

    for index, descriptor in enumerate(descriptors):
        struct.pack_into("<5I", blob, index * 20, *descriptor)
    return bytes(blob)


def _optional_header(
    is_64: bool,
    magic: int,
    size_of_image: int,
    size_of_headers: int,
    entry_point: int,
    directories: dict[int, tuple[int, int]],
) -> bytes:
    if is_64:
        std = struct.pack("<HBBIIIII", magic, 14, 0, 0x200, 0x200, 0, entry_point, 0x1000)
        win = struct.pack(
            "<QIIHHHHHHIIIIHHQQQQII",
            IMAGE_BASE_64, SECTION_ALIGNMENT, FILE_ALIGNMENT,
            6, 0, 0, 0, 6, 0, 0,
            size_of_image, size_of_headers, 0, 3, 0x8160,
            0x100000, 0x1000, 0x100000, 0x1000, 0, 16,
        )
    else:
        std = struct.pack("<HBBIIIIII", magic, 14, 0, 0x200, 0x200, 0, entry_point, 0x1000, 0x2000)
        win = struct.pack(
            "<IIIHHHHHHIIIIHHIIIIII",
            IMAGE_BASE_32, SECTION_ALIGNMENT, FILE_ALIGNMENT,
            6, 0, 0, 0, 6, 0, 0,
            size_of_image, size_of_headers, 0, 3, 0x8140,
            0x100000, 0x1000, 0x100000, 0x1000, 0, 16,
        )
    dirs = b"".join(
        struct.pack("<II", *directories.get(index, (0, 0))) for index in range(16)
    )
    return std + win + dirs


def build_pe(
    *,
    is_64: bool = False,
    sections: Sequence[SectionSpec] = (),
    imports: Optional[ImportSpec] = None,
    import_directory: Optional[tuple[int, int]] = None,
    size_of_optional_header: Optional[int] = None,
    optional_magic: Optional[int] = None,
    dos_magic: bytes = b"MZ",
    signature: bytes = b"PE\x00\x00",
    machine: Optional[int] = None,
    time_date_stamp: int = 0,
    characteristics: int = 0x0002,
) -> bytes:
    """Assemble a complete PE image.

    When *imports* is given an ``.idata`` section holding them is appended
    and the import data directory points at it.  *import_directory*
    overrides that directory entry directly.
    """
    sections = list(sections)
    if imports is not None:
        idata_rva = SECTION_ALIGNMENT * (len(sections) + 1)
        idata = build_import_data(idata_rva, imports, is_64)
        sections.append(SectionSpec(b".idata", idata, SCN_DATA))
        if import_directory is None:
            import_directory = (idata_rva, 20 * (len(imports) + 1))

    modelled_size = 240 if is_64 else 224
    declared = modelled_size if size_of_optional_header is None else size_of_optional_header
    optional_space = max(declared, modelled_size)

    headers_end = E_LFANEW + 4 + 20 + optional_space + 40 * len(sections)
    size_of_headers = _align(headers_end, FILE_ALIGNMENT)

    records = b""
    raw = b""
    pointer = size_of_headers
    for index, spec in enumerate(sections):
        raw_size = _align(len(spec.data), FILE_ALIGNMENT)
        virtual_size = len(spec.data) if spec.virtual_size is None else spec.virtual_size
        records += spec.name.ljust(8, b"\x00")[:8] + struct.pack(
            "<IIIIIIHHI",
            virtual_size,
            SECTION_ALIGNMENT * (index + 1),
            raw_size,
            pointer if raw_size else 0,
            0, 0, 0, 0,
            spec.characteristics,
        )
        raw += spec.data.ljust(raw_size, b"\x00")
        pointer += raw_size

    directories = {1: import_directory} if import_directory is not None else {}
    optional = _optional_header(
        is_64,
        optional_magic if optional_magic is not None else (0x20B if is_64 else 0x10B),
        SECTION_ALIGNMENT * (len(sections) + 1),
        size_of_headers,
        SECTION_ALIGNMENT,
        directories,
    )
    optional = optional.ljust(optional_space, b"\x00")

    dos = bytearray(64)
    dos[0:2] = dos_magic
    struct.pack_into("<I", dos, 0x3C, E_LFANEW)
    stub = bytes(dos).ljust(E_LFANEW, b"\x00")

    coff = struct.pack(
        "<HHIIIHH",
        machine if machine is not None else (MACHINE_AMD64 if is_64 else MACHINE_I386),
        len(sections),
        time_date_stamp,
        0,
        0,
        declared,
        characteristics | (0 if is_64 else 0x0100),
    )

    header = stub + signature + coff + optional + records
    return header.ljust(size_of_headers, b"\x00") + raw


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def minimal_pe32() -> bytes:
    """PE32 image with a single ``.text`` section and no imports."""
    return build_pe(sections=[SectionSpec(b".text", CODE_32, SCN_CODE)])


@pytest.fixture
def pe32_with_imports() -> bytes:
    return build_pe(
        sections=[SectionSpec(b".text", CODE_32, SCN_CODE)],
        imports=[
            ("KERNEL32.dll", ["ExitProcess", "GetLastError", 17]),
            ("USER32.dll", ["MessageBoxA"]),
        ],
    )


@pytest.fixture
def pe64_with_imports() -> bytes:
    return build_pe(
        is_64=True,
        sections=[SectionSpec(b".text", CODE_64, SCN_CODE)],
        imports=[("KERNEL32.dll", ["ExitProcess", 42])],
        time_date_stamp=1600000000,
    )


@pytest.fixture
def pe_file(tmp_path, pe32_with_imports):
    """The PE32 image with imports written to ``app.exe``."""
    path = tmp_path / "app.exe"
    path.write_bytes(pe32_with_imports)
    return path
