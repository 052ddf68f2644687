"""
RVA Address Translator
=======================

Maps a relative virtual address to a file offset through the section
table.  A section covers ``[virtual_address, virtual_address +
virtual_size)``; sections are assumed not to overlap, and the first one
in table order that covers an RVA wins.

An RVA outside every section is not an error here: a data directory
with ``virtual_address == 0`` legitimately means "not present".  Callers
for whom the format requires resolution use :meth:`require_offset`.
"""

from __future__ import annotations

from typing import Iterable, Optional

from pedump.core.errors import DanglingReference
from pedump.core.models import SectionHeader


class AddressTranslator:
    """RVA -> file offset lookup over a decoded section table."""

    def __init__(self, sections: Iterable[SectionHeader]) -> None:
        self._sections: tuple[SectionHeader, ...] = tuple(sections)

    def section_for_rva(self, rva: int) -> Optional[SectionHeader]:
        """Return the section whose virtual range contains *rva*."""
        for section in self._sections:
            if section.contains_rva(rva):
                return section
        return None

    def rva_to_offset(self, rva: int) -> Optional[int]:
        """Translate *rva* to a file offset, or ``None`` if no section holds it."""
        section = self.section_for_rva(rva)
        if section is None:
            return None
        return section.ptr_to_raw_data + (rva - section.virtual_address)

    def require_offset(self, rva: int, what: str) -> int:
        """Translate *rva*, raising :class:`DanglingReference` when it cannot."""
        offset = self.rva_to_offset(rva)
        if offset is None:
            raise DanglingReference(rva, what)
        return offset
