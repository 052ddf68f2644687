"""
PEDump -- Portable Executable Inspector
=========================================

Decodes Windows PE/COFF images (PE32 and PE32+) into immutable, typed
structures and renders them as a terminal tree or a JSON report.

Modules:
    - pedump.core.image: Decoded image and section/address queries
    - pedump.core.engine: Path validation, file reading and logging
    - pedump.core.models: Pydantic header, section and import models
    - pedump.parsers: Byte cursor and per-structure decoders
    - pedump.analyzers.disasm: Capstone bridge and padding classification
    - pedump.output: Console tree dump and JSON report
    - pedump.cli: Click-based command-line interface

References:
    - Microsoft. (2024). PE Format.
      https://learn.microsoft.com/windows/win32/debug/pe-format
    - Pietrek, M. (2002). An In-Depth Look into the Win32 Portable
      Executable File Format. MSDN Magazine.
"""

__version__ = "0.1.0"
