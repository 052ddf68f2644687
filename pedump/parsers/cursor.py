"""
Byte Cursor
============

Sequential fixed-width reader over an immutable in-memory buffer.

The cursor never copies the buffer it reads: it keeps a
:class:`memoryview` of the bytes owned by the caller and an independent
position, so any number of cursors can walk the same image at once.
Every read is bounds-checked and raises
:class:`~pedump.core.errors.TruncatedInput` instead of returning short
data.

Usage::

    cursor = ByteCursor(data)
    magic = cursor.read_u16()
    cursor.seek(0x3C)
    e_lfanew = cursor.read_u32()
"""

from __future__ import annotations

import struct
from typing import Literal, Union

from pedump.core.errors import TruncatedInput


Buffer = Union[bytes, bytearray, memoryview]

_BYTEORDER_PREFIX: dict[str, str] = {"little": "<", "big": ">"}

# NUL search window; strings are scanned without copying the whole tail
_CSTRING_CHUNK: int = 256


class ByteCursor:
    """Little- or big-endian reader with absolute seek and position query.

    Args:
        data: Buffer to read.  It is wrapped in a read-only memoryview.
        byteorder: ``"little"`` (the PE layout) or ``"big"``.
        offset: Initial position.
    """

    def __init__(
        self,
        data: Buffer,
        byteorder: Literal["little", "big"] = "little",
        offset: int = 0,
    ) -> None:
        view = data if isinstance(data, memoryview) else memoryview(data)
        self._view: memoryview = view.toreadonly()
        self._prefix: str = _BYTEORDER_PREFIX[byteorder]
        self._pos: int = 0
        self.seek(offset)

    # ------------------------------------------------------------------ #
    #  Positioning
    # ------------------------------------------------------------------ #

    def tell(self) -> int:
        """Return the current absolute position."""
        return self._pos

    def seek(self, offset: int) -> None:
        """Move to absolute *offset*; the end of the buffer is a valid target."""
        if offset < 0 or offset > len(self._view):
            raise TruncatedInput(offset, 0, len(self._view))
        self._pos = offset

    def skip(self, count: int) -> None:
        """Move *count* bytes forward (or backward when negative)."""
        self.seek(self._pos + count)

    @property
    def remaining(self) -> int:
        return len(self._view) - self._pos

    def __len__(self) -> int:
        return len(self._view)

    # ------------------------------------------------------------------ #
    #  Raw reads
    # ------------------------------------------------------------------ #

    def _take(self, size: int) -> int:
        """Reserve *size* bytes at the cursor and return their start."""
        start = self._pos
        if size < 0 or start + size > len(self._view):
            raise TruncatedInput(start, size, len(self._view))
        self._pos = start + size
        return start

    def read_bytes(self, size: int) -> memoryview:
        """Read *size* bytes as a view into the underlying buffer."""
        start = self._take(size)
        return self._view[start:start + size]

    def read_cstring(self) -> bytes:
        """Read bytes up to a NUL terminator and consume the terminator.

        Raises:
            TruncatedInput: If the buffer ends before a terminator.
        """
        start = self._pos
        length = len(self._view)
        scan = start
        while scan < length:
            chunk = bytes(self._view[scan:scan + _CSTRING_CHUNK])
            nul = chunk.find(b"\x00")
            if nul != -1:
                end = scan + nul
                self._pos = end + 1
                return bytes(self._view[start:end])
            scan += len(chunk)
        raise TruncatedInput(length, 1, length)

    def _unpack(self, code: str, size: int) -> int:
        start = self._take(size)
        return struct.unpack_from(self._prefix + code, self._view, start)[0]

    # ------------------------------------------------------------------ #
    #  Fixed-width integers
    # ------------------------------------------------------------------ #

    def read_u8(self) -> int:
        return self._unpack("B", 1)

    def read_i8(self) -> int:
        return self._unpack("b", 1)

    def read_u16(self) -> int:
        return self._unpack("H", 2)

    def read_i16(self) -> int:
        return self._unpack("h", 2)

    def read_u32(self) -> int:
        return self._unpack("I", 4)

    def read_i32(self) -> int:
        return self._unpack("i", 4)

    def read_u64(self) -> int:
        return self._unpack("Q", 8)

    def read_i64(self) -> int:
        return self._unpack("q", 8)

    def read_struct(self, fmt: str) -> tuple[int, ...]:
        """Unpack a whole :mod:`struct` format (without byte-order prefix)."""
        full = self._prefix + fmt
        start = self._take(struct.calcsize(full))
        return struct.unpack_from(full, self._view, start)

    # ------------------------------------------------------------------ #
    #  Look-ahead
    # ------------------------------------------------------------------ #

    def peek_u16(self) -> int:
        """Read a 16-bit value without advancing the cursor."""
        start = self._pos
        value = self.read_u16()
        self._pos = start
        return value


class BigEndianCursor(ByteCursor):
    """A :class:`ByteCursor` preset to big-endian byte order."""

    def __init__(self, data: Buffer, offset: int = 0) -> None:
        super().__init__(data, byteorder="big", offset=offset)
