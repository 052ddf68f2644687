"""
PEDump Structured Logger
=========================

Thin layer over :mod:`logging` used by every PEDump component.

A :class:`PEDumpLogger` is bound to one component (``"engine"``,
``"cli"``, ...) and writes to up to two sinks:

    - stderr, through :class:`rich.logging.RichHandler`, so that stdout
      stays free for the dump or the JSON report;
    - an optional size-rotated file, as plain text or one JSON object
      per line.

Records carry the component name, the active decode stage set with
:meth:`PEDumpLogger.operation`, and any extra keyword arguments passed
to the log call.

References:
    - Python logging cookbook.
      https://docs.python.org/3/howto/logging-cookbook.html
    - Rich logging handler. https://rich.readthedocs.io/en/stable/logging.html
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme


_STDERR_THEME = Theme(
    {
        "logging.level.debug": "dim",
        "logging.level.info": "bright_blue",
        "logging.level.warning": "yellow",
        "logging.level.error": "bold red",
        "logging.level.critical": "bold white on red",
    }
)

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [%(operation)s] %(message)s"

# LogRecord attributes that are passed through to logging rather than
# collected as structured context
_LOGGING_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel"})


class _JSONLineFormatter(logging.Formatter):
    """One JSON object per record::

        {"time": ..., "level": ..., "logger": ..., "message": ...,
         "tool_name": ..., "operation": ..., "extra": {...}, "exc_info": ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "tool_name": getattr(record, "tool_name", None),
            "operation": getattr(record, "operation", None),
        }
        context = getattr(record, "pedump_extra", None)
        if context:
            payload["extra"] = context
        if record.exc_info and record.exc_info[1] is not None:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _stderr_handler(level: int) -> logging.Handler:
    return RichHandler(
        console=Console(stderr=True, theme=_STDERR_THEME),
        level=level,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )


def _file_handler(
    path: Path,
    level: int,
    json_lines: bool,
    max_bytes: int,
    backup_count: int,
) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(
        _JSONLineFormatter() if json_lines else logging.Formatter(_TEXT_FORMAT)
    )
    return handler


class PEDumpLogger:
    """Component logger with stage context and timing.

    Usage::

        log = PEDumpLogger("engine", log_file="pedump.log", json_logs=True)
        with log.timed("parse app.exe"), log.operation("imports"):
            log.debug("walking %d descriptors", count, directory_rva=rva)

    Args:
        tool_name: Component name; the stdlib logger is ``pedump.<tool_name>``.
        log_level: Minimum level name for both sinks.
        log_file: Rotating log file; ``None`` disables the file sink.
        json_logs: Write the file sink as JSON lines.
        max_bytes: Rotation threshold of the file sink.
        backup_count: Rotated files kept.
        console_output: Attach the stderr sink.
    """

    def __init__(
        self,
        tool_name: str,
        *,
        log_level: str = "INFO",
        log_file: str | Path | None = None,
        json_logs: bool = False,
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 3,
        console_output: bool = True,
    ) -> None:
        self._tool_name = tool_name
        self._operation: str | None = None

        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO

        logger = logging.getLogger(f"pedump.{tool_name}")
        logger.setLevel(level)
        logger.propagate = False
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        if console_output:
            logger.addHandler(_stderr_handler(level))
        if log_file is not None:
            logger.addHandler(
                _file_handler(Path(log_file), level, json_logs, max_bytes, backup_count)
            )
        self._logger = logger

    @property
    def tool_name(self) -> str:
        return self._tool_name

    @property
    def underlying(self) -> logging.Logger:
        return self._logger

    # ------------------------------------------------------------------ #
    #  Context
    # ------------------------------------------------------------------ #

    @contextmanager
    def operation(self, name: str) -> Iterator[PEDumpLogger]:
        """Tag records emitted inside the block with decode stage *name*."""
        previous, self._operation = self._operation, name
        try:
            yield self
        finally:
            self._operation = previous

    @contextmanager
    def timed(self, label: str) -> Iterator[PEDumpLogger]:
        """Log *label* with its elapsed time when the block completes.

        A block that raises is logged at DEBUG as aborted and the
        exception propagates.
        """
        start = time.perf_counter()
        self.debug("Started: %s", label)
        try:
            yield self
        except BaseException:
            self.debug("Aborted: %s (%.3f sec)", label, time.perf_counter() - start)
            raise
        self.info("Completed: %s (%.3f sec)", label, time.perf_counter() - start)

    # ------------------------------------------------------------------ #
    #  Emitting
    # ------------------------------------------------------------------ #

    def _log(self, level: int, msg: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        passthrough = {k: kwargs.pop(k) for k in list(kwargs) if k in _LOGGING_KWARGS}
        extra = {
            "tool_name": self._tool_name,
            "operation": self._operation or "-",
            "pedump_extra": kwargs,
        }
        passthrough.setdefault("stacklevel", 3)
        self._logger.log(level, msg, *args, extra=extra, **passthrough)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, args, kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, args, kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, args, kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, args, kwargs)

