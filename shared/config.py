"""
PEDump Configuration
=====================

Settings for the decoder and the report mode, read from a TOML file
into dataclasses.

Two tables are recognised::

    [global]
    log_level = "INFO"
    log_file = "pedump.log"
    log_json = false

    [pedump]
    max_import_descriptors = 256
    padding_size = 4

Missing keys keep their defaults and unknown keys are ignored.  Each
table is validated by pydantic in strict mode: a value of the wrong TOML
type, or a size or count outside its range, is an error.

References:
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
    - Pydantic dataclasses. https://docs.pydantic.dev/latest/concepts/dataclasses/
"""

from __future__ import annotations

import re
import sys
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, ConfigDict, Field
from pydantic.dataclasses import dataclass as validated_dataclass

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


# config.toml at the project root, used when no path is given
DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "config.toml"


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

_STRICT = ConfigDict(strict=True)


def _compiles(pattern: str) -> str:
    try:
        re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"invalid regular expression: {exc}") from exc
    return pattern


@validated_dataclass(config=_STRICT)
class DumpConfig:
    """``[pedump]``: decoder limits and tree dump layout.

    ``max_import_descriptors`` bounds the import descriptor scan so an
    image without a terminator record cannot drive the walker through
    the whole file.
    """

    max_file_size: Annotated[int, Field(gt=0)] = 52_428_800  # 50 MiB
    max_import_descriptors: Annotated[int, Field(gt=0)] = 256
    padding_size: Annotated[int, Field(ge=0)] = 4
    sections_filter: Annotated[str, AfterValidator(_compiles)] = ".*"
    strip_padding: bool = True
    hexdump_width: Annotated[int, Field(gt=0)] = 16


@validated_dataclass(config=_STRICT)
class GlobalConfig:
    """``[global]``: logging."""

    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_json: bool = False


def _table(kind: type, name: str, data: Any) -> Any:
    """Instantiate *kind* from TOML table *name*.

    Raises:
        ValueError: *data* is not a table, or pydantic rejects a value.
    """
    if not isinstance(data, dict):
        raise ValueError(f"[{name}] must be a table")
    known = {entry.name for entry in fields(kind)}
    return kind(**{key: value for key, value in data.items() if key in known})


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@dataclass
class PEDumpConfig:
    """Both tables together.

    Usage:
        >>> config = PEDumpConfig.load()                  # project config.toml
        >>> config = PEDumpConfig.load("custom.toml")
        >>> config.pedump.max_import_descriptors
        256
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    pedump: DumpConfig = field(default_factory=DumpConfig)

    @classmethod
    def load(cls, path: str | Path | None = None) -> PEDumpConfig:
        """Read *path*, or the project ``config.toml`` when *path* is ``None``.

        The project file is optional: without it the defaults apply.

        Raises:
            FileNotFoundError: *path* was given and does not exist.
            tomllib.TOMLDecodeError: The file is not valid TOML.
            ValueError: A table or a key has the wrong type or range
                (``pydantic.ValidationError`` is a ``ValueError``).
        """
        if path is None:
            if not DEFAULT_CONFIG_PATH.is_file():
                return cls()
            config_path = DEFAULT_CONFIG_PATH
        else:
            config_path = Path(path)
            if not config_path.is_file():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")

        raw = tomllib.loads(config_path.read_text(encoding="utf-8"))
        return cls(
            global_settings=_table(GlobalConfig, "global", raw.get("global", {})),
            pedump=_table(DumpConfig, "pedump", raw.get("pedump", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
