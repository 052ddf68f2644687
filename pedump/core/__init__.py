"""
PEDump Core Module
===================

Error hierarchy, format constants and the immutable data models shared
by every decoder.  The image and engine live in :mod:`pedump.core.image`
and :mod:`pedump.core.engine`.
"""

from pedump.core.errors import (
    DanglingReference,
    FileNotFound,
    FormatError,
    InputError,
    NotAPeFile,
    PEDumpError,
    ResourceLimitExceeded,
    SectionNotFound,
    TruncatedInput,
    UnsupportedFeature,
)
from pedump.core.models import (
    ImportTable,
    OptionalHeader32,
    OptionalHeader64,
    PEHeader,
    SectionHeader,
)

__all__ = [
    "DanglingReference",
    "FileNotFound",
    "FormatError",
    "ImportTable",
    "InputError",
    "NotAPeFile",
    "OptionalHeader32",
    "OptionalHeader64",
    "PEDumpError",
    "PEHeader",
    "ResourceLimitExceeded",
    "SectionHeader",
    "SectionNotFound",
    "TruncatedInput",
    "UnsupportedFeature",
]
