"""
PEDump Console Output
======================

Tree-style terminal dump of a decoded :class:`PEImage`.

A dump is a :class:`DumpNode`: a label, aligned ``key: value`` fields with
optional comments, optional raw lines (hex or disassembly) and nested
children.  Nodes are built from the decoded structures by the ``dump_*``
helpers and printed with a configurable indent width::

    Optional Header (PE32+)
        magic                : 0x20b
        address_of_entry_point: 0x1400 (RVA)
        ...
        Data Directories
            import           : rva=0x2000 size=0x28

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from rich.markup import escape

from shared.console import PEDumpConsole

from pedump.analyzers.disasm import disassemble_section
from pedump.core.constants import DataDirectoryEntry
from pedump.core.errors import UnsupportedFeature
from pedump.core.image import PEImage
from pedump.core.models import (
    COFFHeader,
    DOSHeader,
    ImportTable,
    NTHeader,
    OptionalHeader32,
    OptionalHeader64,
    SectionHeader,
)


TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M"


def format_timestamp(value: Optional[datetime]) -> str:
    """Render a link timestamp as ``dd/mm/YYYY HH:MM`` (UTC)."""
    if value is None:
        return "-"
    return value.strftime(TIMESTAMP_FORMAT)


def _hex(value: int) -> str:
    return f"0x{value:x}"


# ---------------------------------------------------------------------------
# Dump tree
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class DumpField:
    key: str
    value: str
    comment: Optional[str] = None


@dataclass(slots=True)
class DumpNode:
    """A labelled block of fields, raw lines and child blocks."""
    label: str
    fields: list[DumpField] = field(default_factory=list)
    lines: list[str] = field(default_factory=list)
    children: list[DumpNode] = field(default_factory=list)
    lines_style: str = "pedump.value"

    def add(self, key: str, value: object, comment: Optional[str] = None) -> DumpNode:
        self.fields.append(DumpField(key, str(value), comment))
        return self

    def child(self, node: DumpNode) -> DumpNode:
        self.children.append(node)
        return node

    @property
    def fields_align(self) -> int:
        return max((len(f.key) for f in self.fields), default=0) + 1

    def render(self, indent_level: int = 0, indent_size: int = 4) -> list[str]:
        """Return Rich-markup lines for this node and its children."""
        pad = " " * (indent_level * indent_size)
        inner = " " * ((indent_level + 1) * indent_size)
        out = [f"{pad}[pedump.label]{escape(self.label)}[/pedump.label]"]

        align = self.fields_align
        for f in self.fields:
            comment = (
                f"  [pedump.comment]({escape(f.comment)})[/pedump.comment]"
                if f.comment else ""
            )
            if not f.key:
                out.append(f"{inner}[pedump.value]{escape(f.value)}[/pedump.value]{comment}")
                continue
            out.append(
                f"{inner}[pedump.key]{escape(f.key):<{align}}[/pedump.key]: "
                f"[pedump.value]{escape(f.value)}[/pedump.value]{comment}"
            )

        for line in self.lines:
            out.append(f"{inner}[{self.lines_style}]{escape(line)}[/{self.lines_style}]")

        for node in self.children:
            out.extend(node.render(indent_level + 1, indent_size))
        return out


# ---------------------------------------------------------------------------
# Node builders
# ---------------------------------------------------------------------------

def dump_dos_header(dos: DOSHeader) -> DumpNode:
    node = DumpNode("DOS Header")
    node.add("e_magic", _hex(dos.e_magic), "MZ")
    for name in (
        "e_cblp", "e_cp", "e_crlc", "e_cparhdr", "e_minalloc", "e_maxalloc",
        "e_ss", "e_sp", "e_csum", "e_ip", "e_cs", "e_lfarlc", "e_ovno",
    ):
        node.add(name, _hex(getattr(dos, name)))
    node.add("e_res", ", ".join(_hex(v) for v in dos.e_res))
    node.add("e_oemid", _hex(dos.e_oemid))
    node.add("e_oeminfo", _hex(dos.e_oeminfo))
    node.add("e_res2", ", ".join(_hex(v) for v in dos.e_res2))
    node.add("e_lfanew", _hex(dos.e_lfanew), "file offset of the NT header")
    return node


def dump_coff_header(coff: COFFHeader) -> DumpNode:
    node = DumpNode("COFF Header")
    node.add("machine", _hex(coff.machine), coff.machine_name)
    node.add("number_of_sections", coff.number_of_sections)
    node.add("time_date_stamp", format_timestamp(coff.timestamp))
    node.add("pointer_to_symbol_table", _hex(coff.pointer_to_symbol_table))
    node.add("number_of_symbols", coff.number_of_symbols)
    node.add("size_of_optional_header", _hex(coff.size_of_optional_header))
    node.add(
        "characteristics",
        _hex(coff.characteristics),
        " | ".join(coff.characteristic_names) or None,
    )
    return node


def dump_nt_header(nt: NTHeader) -> DumpNode:
    node = DumpNode("NT Header")
    node.add("signature", bytes(nt.signature).decode("ascii", errors="replace").rstrip("\x00"))
    node.child(dump_coff_header(nt.coff_header))
    return node


def dump_optional_header(optional: OptionalHeader32 | OptionalHeader64) -> DumpNode:
    variant = "PE32" if isinstance(optional, OptionalHeader32) else "PE32+"
    node = DumpNode(f"Optional Header ({variant})")
    node.add("magic", _hex(optional.magic))
    node.add("linker_version", f"{optional.major_linker_version}.{optional.minor_linker_version}")
    node.add("size_of_code", _hex(optional.size_of_code))
    node.add("size_of_initialized_data", _hex(optional.size_of_initialized_data))
    node.add("size_of_uninitialized_data", _hex(optional.size_of_uninitialized_data))
    node.add("address_of_entry_point", _hex(optional.address_of_entry_point), "RVA")
    node.add("base_of_code", _hex(optional.base_of_code), "RVA")
    if isinstance(optional, OptionalHeader32):
        node.add("base_of_data", _hex(optional.base_of_data), "RVA")
    node.add("image_base", _hex(optional.image_base))
    node.add("section_alignment", _hex(optional.section_alignment))
    node.add("file_alignment", _hex(optional.file_alignment))
    node.add(
        "os_version",
        f"{optional.major_operating_system_version}.{optional.minor_operating_system_version}",
    )
    node.add("image_version", f"{optional.major_image_version}.{optional.minor_image_version}")
    node.add(
        "subsystem_version",
        f"{optional.major_subsystem_version}.{optional.minor_subsystem_version}",
    )
    node.add("win32_version_value", optional.win32_version_value)
    node.add("size_of_image", _hex(optional.size_of_image))
    node.add("size_of_headers", _hex(optional.size_of_headers))
    node.add("checksum", _hex(optional.checksum))
    node.add("subsystem", optional.subsystem, optional.subsystem_name)
    node.add(
        "dll_characteristics",
        _hex(optional.dll_characteristics),
        " | ".join(optional.dll_characteristic_names) or None,
    )
    node.add("size_of_stack_reserve", _hex(optional.size_of_stack_reserve))
    node.add("size_of_stack_commit", _hex(optional.size_of_stack_commit))
    node.add("size_of_heap_reserve", _hex(optional.size_of_heap_reserve))
    node.add("size_of_heap_commit", _hex(optional.size_of_heap_commit))
    node.add("loader_flags", _hex(optional.loader_flags))
    node.add("number_of_rva_and_sizes", optional.number_of_rva_and_sizes)

    directories = node.child(DumpNode("Data Directories"))
    for entry in DataDirectoryEntry:
        directory = optional.directory(entry)
        directories.add(
            entry.name.lower(),
            f"rva={_hex(directory.virtual_address)} size={_hex(directory.size)}",
            None if directory.is_present else "absent",
        )
    return node


def hexdump(data: bytes | memoryview, base: int, width: int = 16) -> list[str]:
    """Format *data* as ``offset  hex bytes  ascii`` lines."""
    raw = bytes(data)
    lines: list[str] = []
    for start in range(0, len(raw), width):
        chunk = raw[start:start + width]
        hex_part = " ".join(f"{b:02x}" for b in chunk)
        ascii_part = "".join(chr(b) if 0x20 <= b < 0x7F else "." for b in chunk)
        lines.append(f"{base + start:08x}  {hex_part:<{width * 3 - 1}}  {ascii_part}")
    return lines


def dump_section(section: SectionHeader) -> DumpNode:
    node = DumpNode(f"Section {section.name or '<empty>'}")
    node.add("virtual_size", _hex(section.virtual_size))
    node.add("virtual_address", _hex(section.virtual_address), "RVA")
    node.add("size_of_raw_data", _hex(section.size_of_raw_data))
    node.add("ptr_to_raw_data", _hex(section.ptr_to_raw_data), "file offset")
    node.add("pointer_to_relocations", _hex(section.pointer_to_relocations))
    node.add("pointer_to_line_numbers", _hex(section.pointer_to_line_numbers))
    node.add("number_of_relocations", section.number_of_relocations)
    node.add("number_of_line_numbers", section.number_of_line_numbers)
    node.add(
        "characteristics",
        _hex(section.characteristics),
        " | ".join(section.characteristic_names) or None,
    )
    return node


def dump_imports(table: ImportTable) -> DumpNode:
    node = DumpNode(f"Imports ({len(table.modules)} DLLs, {table.function_count} functions)")
    for module in table.modules:
        dll = node.child(DumpNode(module.dll_name))
        d = module.descriptor
        dll.add("import_lookup_table_rva", _hex(d.import_lookup_table_rva))
        dll.add("time_date_stamp", d.time_date_stamp)
        dll.add("forwarder_chain", _hex(d.forwarder_chain))
        dll.add("name_rva", _hex(d.name_rva))
        dll.add("import_address_table_rva", _hex(d.import_address_table_rva))
        for function in module.functions:
            if function.hint_name is None:
                dll.lines.append(f"ordinal {function.entry.ordinal}")
            else:
                dll.lines.append(f"[{function.hint_name.hint:>5}] {function.hint_name.name}")
    return node


# ---------------------------------------------------------------------------
# PEDumpConsoleOutput
# ---------------------------------------------------------------------------

class PEDumpConsoleOutput:
    """Flag-driven report mode over a decoded image.

    Usage::

        output = PEDumpConsoleOutput(padding_size=4)
        output.display(image, dos_header=True, sections=True)
    """

    def __init__(
        self,
        console: PEDumpConsole | None = None,
        padding_size: int = 4,
        hexdump_width: int = 16,
    ) -> None:
        self._console = console or PEDumpConsole()
        self._padding_size = padding_size
        self._hexdump_width = hexdump_width

    def print_node(self, node: DumpNode) -> None:
        for line in node.render(0, self._padding_size):
            self._console.print(line)

    def display(
        self,
        image: PEImage,
        *,
        dos_header: bool = False,
        nt_header: bool = False,
        optional_header: bool = False,
        sections: bool = False,
        sections_filter: str = ".*",
        sections_data: bool = False,
        disasm: bool = False,
        imports: bool = False,
        strip_padding: bool = True,
    ) -> None:
        """Print the parts of *image* selected by the keyword flags."""
        self._console.info(escape(repr(image)))
        self._console.blank()

        if dos_header:
            self.print_node(dump_dos_header(image.dos_header))
        if nt_header:
            self.print_node(dump_nt_header(image.nt_header))
        if optional_header:
            self.print_node(dump_optional_header(image.optional_header))
        if sections or sections_data or disasm:
            self._display_sections(
                image, re.compile(sections_filter), sections_data, disasm, strip_padding
            )
        if imports:
            self.print_node(dump_imports(image.import_table))

    def _display_sections(
        self,
        image: PEImage,
        pattern: re.Pattern[str],
        with_data: bool,
        with_disasm: bool,
        strip_padding: bool,
    ) -> None:
        root = DumpNode(f"Sections ({image.number_of_sections})")
        for section in image.section_headers:
            if not pattern.search(section.name):
                continue
            node = root.child(dump_section(section))
            if with_data:
                data_node = node.child(DumpNode("Data"))
                data_node.lines.extend(
                    hexdump(
                        image.section_data(section),
                        section.ptr_to_raw_data,
                        self._hexdump_width,
                    )
                )
            if with_disasm and section.is_executable:
                node.child(self._disasm_node(image, section, strip_padding))
        self.print_node(root)

    def _disasm_node(
        self,
        image: PEImage,
        section: SectionHeader,
        strip_padding: bool,
    ) -> DumpNode:
        node = DumpNode("Code")
        try:
            instructions = disassemble_section(image, section, strip_padding)
        except UnsupportedFeature as exc:
            node.add("", str(exc))
            return node
        node.lines.extend(str(insn) for insn in instructions)
        return node
