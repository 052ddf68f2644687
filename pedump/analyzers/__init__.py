"""
PEDump Analyzers
=================

Disassembly of executable sections.
"""

from pedump.analyzers.disasm import (
    Instruction,
    disassemble_section,
    is_padding_instruction,
)

__all__ = [
    "Instruction",
    "disassemble_section",
    "is_padding_instruction",
]
