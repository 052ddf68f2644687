"""
PEDump Exception Taxonomy
==========================

Every failure the decoder can report is a subclass of :class:`PEDumpError`.
Decoding is all-or-nothing: the first failing field read raises one of
these exceptions and aborts the whole parse, so callers never observe a
partially decoded image.

Hierarchy::

    PEDumpError
      InputError                 -- the path itself is unusable
        FileNotFound
        NotAPeFile
      FormatError                -- bytes are present but wrong
        InvalidDosMagic
        InvalidPeSignature
        UnknownOptionalHeaderMagic
        OptionalHeaderSizeMismatch
      TruncatedInput             -- a read ran past the end of the buffer
      UnsupportedFeature         -- valid format the decoder does not handle
      DanglingReference          -- a mandatory RVA maps to no section
      ResourceLimitExceeded      -- a bounded scan hit its cap
      SectionNotFound            -- lookup of an unknown section name
"""

from __future__ import annotations


class PEDumpError(Exception):
    """Base class for all PEDump errors."""


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------

class InputError(PEDumpError):
    """The input path cannot be handed to the decoder."""


class FileNotFound(InputError, FileNotFoundError):
    """The input path does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"File does not exist: {path}")
        self.path = path


class NotAPeFile(InputError):
    """The input path does not carry a ``.exe`` or ``.dll`` extension."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"File is not a Portable Executable (.exe | .dll): {path}"
        )
        self.path = path


# ---------------------------------------------------------------------------
# Format errors
# ---------------------------------------------------------------------------

class FormatError(PEDumpError, ValueError):
    """A magic value or signature does not match the PE layout."""


class InvalidDosMagic(FormatError):
    """The first two bytes are not ``MZ``."""

    def __init__(self, found: int) -> None:
        super().__init__(f"Invalid DOS magic number: 0x{found:04x}")
        self.found = found


class InvalidPeSignature(FormatError):
    """The four bytes at ``e_lfanew`` are not ``PE\\0\\0``."""

    def __init__(self, offset: int, found: bytes) -> None:
        super().__init__(
            f"Invalid PE signature at 0x{offset:x}: {bytes(found)!r}"
        )
        self.offset = offset
        self.found = bytes(found)


class UnknownOptionalHeaderMagic(FormatError):
    """The optional header magic is neither 0x10B nor 0x20B."""

    def __init__(self, magic: int) -> None:
        super().__init__(f"Invalid PE optional header magic: 0x{magic:x}")
        self.magic = magic


class OptionalHeaderSizeMismatch(FormatError):
    """``size_of_optional_header`` is smaller than the decoded header."""

    def __init__(self, declared: int, decoded: int) -> None:
        super().__init__(
            f"Optional header declares {declared} bytes but "
            f"{decoded} bytes were decoded"
        )
        self.declared = declared
        self.decoded = decoded


# ---------------------------------------------------------------------------
# Structural errors
# ---------------------------------------------------------------------------

class TruncatedInput(PEDumpError, ValueError):
    """A read or seek went past the end of the buffer."""

    def __init__(self, offset: int, size: int, length: int) -> None:
        super().__init__(
            f"Truncated input: need {size} byte(s) at 0x{offset:x}, "
            f"buffer is {length} byte(s)"
        )
        self.offset = offset
        self.size = size
        self.length = length


class UnsupportedFeature(PEDumpError):
    """The input uses a valid feature the decoder does not implement."""


class DanglingReference(PEDumpError):
    """An RVA the format requires to resolve lies outside every section."""

    def __init__(self, rva: int, what: str) -> None:
        super().__init__(f"{what} RVA 0x{rva:x} does not map to any section")
        self.rva = rva
        self.what = what


class ResourceLimitExceeded(PEDumpError):
    """A bounded scan reached its cap without finding a terminator."""

    def __init__(self, what: str, limit: int) -> None:
        super().__init__(f"{what}: no terminator within {limit} entries")
        self.what = what
        self.limit = limit


class SectionNotFound(PEDumpError, KeyError):
    """No section with the requested name exists."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Section not found: {self.name!r}"
