"""
Section Disassembly
====================

Bridges raw section bytes to the Capstone disassembly engine and
classifies the alignment filler compilers and linkers leave between and
after functions.

Instruction decoding itself belongs entirely to Capstone.  The only
logic here is choosing the engine mode from the COFF machine type and a
fixed lookup of ``(mnemonic, operands)`` pairs that count as padding.

References:
    - Capstone disassembly engine: https://www.capstone-engine.org/
    - Intel. (2024). Intel 64 and IA-32 Architectures Software
      Developer's Manual.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

import capstone

from pedump.core.constants import IMAGE_FILE_MACHINE_AMD64, IMAGE_FILE_MACHINE_I386
from pedump.core.errors import UnsupportedFeature
from pedump.core.image import PEImage
from pedump.core.models import SectionHeader


# ---------------------------------------------------------------------------
# Padding classification
# ---------------------------------------------------------------------------

# Mnemonics that are padding whatever their operands
_PADDING_MNEMONICS: frozenset[str] = frozenset({"nop", "int3", "ud2", "hlt"})

# Exact (mnemonic, operands) pairs that do nothing useful
_PADDING_INSTRUCTIONS: frozenset[tuple[str, str]] = frozenset({
    ("add", "byte ptr [rax], al"),   # 00 00 -- zero fill decoded on x64
    ("mov", "eax, eax"),
    ("sub", "rsp, 0"),
})

_CAPSTONE_MODES: dict[int, int] = {
    IMAGE_FILE_MACHINE_I386: capstone.CS_MODE_32,
    IMAGE_FILE_MACHINE_AMD64: capstone.CS_MODE_64,
}


@dataclass(frozen=True, slots=True)
class Instruction:
    """One decoded instruction as returned by the disassembler."""
    address: int
    size: int
    mnemonic: str
    op_str: str

    @property
    def is_padding(self) -> bool:
        return is_padding_instruction(self.mnemonic, self.op_str)

    def __str__(self) -> str:
        text = f"{self.mnemonic} {self.op_str}".rstrip()
        return f"0x{self.address:08x}: {text}"


def is_padding_instruction(mnemonic: str, op_str: str) -> bool:
    """Return ``True`` if the instruction is alignment filler."""
    if mnemonic in _PADDING_MNEMONICS:
        return True
    return (mnemonic, op_str) in _PADDING_INSTRUCTIONS


def strip_trailing_padding(instructions: Sequence[Instruction]) -> list[Instruction]:
    """Drop the run of padding instructions at the end of *instructions*."""
    end = len(instructions)
    while end > 0 and instructions[end - 1].is_padding:
        end -= 1
    return list(instructions[:end])


# ---------------------------------------------------------------------------
# Disassembly
# ---------------------------------------------------------------------------

def create_engine(machine: int) -> capstone.Cs:
    """Create a Capstone engine for a COFF *machine* type.

    Raises:
        UnsupportedFeature: For machine types other than i386 and AMD64.
    """
    mode = _CAPSTONE_MODES.get(machine)
    if mode is None:
        raise UnsupportedFeature(
            f"Disassembly is not supported for machine type 0x{machine:x}"
        )
    engine = capstone.Cs(capstone.CS_ARCH_X86, mode)
    engine.detail = False
    return engine


def disassemble(
    data: bytes | memoryview,
    address: int,
    machine: int,
) -> list[Instruction]:
    """Disassemble *data* as code loaded at *address*.

    Decoding stops at the first byte sequence Capstone cannot decode.
    """
    engine = create_engine(machine)
    return [
        Instruction(insn.address, insn.size, insn.mnemonic, insn.op_str)
        for insn in engine.disasm(bytes(data), address)
    ]


def disassemble_section(
    image: PEImage,
    section: SectionHeader | str,
    strip_padding: bool = True,
) -> list[Instruction]:
    """Disassemble the raw bytes of one section of *image*.

    Addresses are virtual addresses (image base + section RVA).
    """
    if isinstance(section, str):
        section = image.section(section)
    address = image.optional_header.image_base + section.virtual_address
    instructions = disassemble(
        image.section_data(section), address, image.coff_header.machine
    )
    if strip_padding:
        instructions = strip_trailing_padding(instructions)
    return instructions


def executable_sections(image: PEImage) -> Iterable[SectionHeader]:
    """Yield the sections flagged ``IMAGE_SCN_MEM_EXECUTE``, in table order."""
    return (section for section in image.section_headers if section.is_executable)
