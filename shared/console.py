"""
PEDump Console
===============

Rich console facade shared by the CLI and the dump renderer.

Everything PEDump prints for a human goes through :class:`PEDumpConsole`,
so the palette and the status-line format live in one place.  Log
records do not: they go to stderr through :mod:`shared.logger`.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import IO, Any

from rich.console import Console
from rich.theme import Theme


PEDUMP_THEME = Theme(
    {
        "pedump.success": "green",
        "pedump.warning": "yellow",
        "pedump.error": "bold red",
        "pedump.info": "blue",
        "pedump.label": "bold cyan",
        "pedump.key": "white",
        "pedump.value": "green",
        "pedump.comment": "dim italic",
    }
)

# (style, tag) per status line kind
_STATUS: dict[str, tuple[str, str]] = {
    "success": ("pedump.success", "ok"),
    "warning": ("pedump.warning", "warning"),
    "error": ("pedump.error", "error"),
    "info": ("pedump.info", "info"),
}


class PEDumpConsole:
    """Themed wrapper around :class:`rich.console.Console`.

    Args:
        quiet: Discard all output.
        file: Write to this stream instead of stdout.
        stderr: Write to stderr.

    Soft wrapping is on, so long dump lines are never folded.
    """

    def __init__(
        self,
        *,
        quiet: bool = False,
        file: IO[str] | None = None,
        stderr: bool = False,
    ) -> None:
        self._console = Console(
            theme=PEDUMP_THEME,
            quiet=quiet,
            file=file,
            stderr=stderr,
            highlight=False,
            soft_wrap=True,
        )

    def _status(self, kind: str, message: str) -> None:
        style, tag = _STATUS[kind]
        self._console.print(f"[{style}]{tag}:[/{style}] {message}")

    def success(self, message: str) -> None:
        self._status("success", message)

    def warning(self, message: str) -> None:
        self._status("warning", message)

    def error(self, message: str) -> None:
        self._status("error", message)

    def info(self, message: str) -> None:
        self._status("info", message)

    def print(self, *args: Any, **kwargs: Any) -> None:
        self._console.print(*args, **kwargs)

    def blank(self) -> None:
        self._console.print()
