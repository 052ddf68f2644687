"""
PEDump Engine
==============

Entry point from a filesystem path to a decoded :class:`PEImage`.

The engine performs the input checks that precede any byte-level
parsing, reads the file exactly once, runs the single decode pass and
logs what was found.  Any :class:`~pedump.core.errors.PEDumpError`
raised by the decoders is logged and re-raised unchanged; there is no
partial result.

Pipeline:
    1. Path exists                       (``FileNotFound``)
    2. Extension is ``.exe`` / ``.dll``  (``NotAPeFile``)
    3. File size within configured cap   (``InputError``)
    4. Read bytes                        (``InputError`` on OSError)
    5. Decode headers, sections and imports
"""

from __future__ import annotations

from pathlib import Path

from shared.config import PEDumpConfig
from shared.logger import PEDumpLogger

from pedump.core.errors import FileNotFound, InputError, NotAPeFile, PEDumpError
from pedump.core.image import PEImage


PE_EXTENSIONS: frozenset[str] = frozenset({".exe", ".dll"})


def validate_path(file_path: str | Path) -> Path:
    """Check that *file_path* exists and names a PE file.

    Raises:
        FileNotFound: If the path does not exist.
        NotAPeFile: If the extension is not ``.exe`` or ``.dll``.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFound(str(path))
    if path.suffix.lower() not in PE_EXTENSIONS:
        raise NotAPeFile(str(path))
    return path


class PEDumpEngine:
    """Validates, reads and decodes PE files.

    Usage::

        engine = PEDumpEngine()
        image = engine.parse("C:/Windows/System32/kernel32.dll")
        print(image.dll_names)
    """

    def __init__(
        self,
        config: PEDumpConfig | None = None,
        logger: PEDumpLogger | None = None,
    ) -> None:
        self._config: PEDumpConfig = config or PEDumpConfig()
        self._logger: PEDumpLogger = logger or PEDumpLogger(
            "engine", console_output=False
        )

    @property
    def config(self) -> PEDumpConfig:
        return self._config

    def read(self, file_path: str | Path) -> bytes:
        """Validate *file_path* and return its contents."""
        with self._logger.operation("input"):
            path = validate_path(file_path)
            try:
                size = path.stat().st_size
                max_size = self._config.pedump.max_file_size
                if size > max_size:
                    raise InputError(
                        f"File too large: {size:,} bytes (max: {max_size:,} bytes)"
                    )
                self._logger.debug("Reading %s (%d bytes)", path, size)
                return path.read_bytes()
            except OSError as exc:
                raise InputError(
                    f"Cannot read {path}: {exc.strerror or exc}"
                ) from exc

    def parse(self, file_path: str | Path) -> PEImage:
        """Decode the PE file at *file_path*.

        Raises:
            PEDumpError: Any input or decoding failure.
        """
        try:
            with self._logger.timed(f"parse {file_path}"):
                data = self.read(file_path)
                with self._logger.operation("decode"):
                    image = PEImage.parse(
                        data,
                        max_import_descriptors=self._config.pedump.max_import_descriptors,
                    )
        except PEDumpError as exc:
            self._logger.error("Failed to parse %s: %s", file_path, exc)
            raise

        self._log_summary(image)
        return image

    def parse_bytes(self, data: bytes) -> PEImage:
        """Decode an in-memory image, skipping the path checks."""
        image = PEImage.parse(
            data,
            max_import_descriptors=self._config.pedump.max_import_descriptors,
        )
        self._log_summary(image)
        return image

    def _log_summary(self, image: PEImage) -> None:
        coff = image.coff_header
        self._logger.debug(
            "%s image, machine %s, %d section(s)",
            image.architecture.value,
            coff.machine_name,
            image.number_of_sections,
        )
        self._logger.debug(
            "%d imported DLL(s), %d function(s)",
            len(image.dll_names),
            image.import_table.function_count,
        )
