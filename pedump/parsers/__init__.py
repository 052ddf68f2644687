"""
PEDump Parsers
===============

Bounds-checked byte cursor, RVA translation and the decoders for
headers, section records and the import directory.
"""

from pedump.parsers.address import AddressTranslator
from pedump.parsers.cursor import ByteCursor
from pedump.parsers.headers import decode_header
from pedump.parsers.imports import ImportTableWalker, walk_imports
from pedump.parsers.sections import decode_sections

__all__ = [
    "AddressTranslator",
    "ByteCursor",
    "ImportTableWalker",
    "decode_header",
    "decode_sections",
    "walk_imports",
]
