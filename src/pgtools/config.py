"""PgToolsConfig: optional project-local settings for pgtools.

Looked up by walking upward from the working directory:

    pgtools.toml          # project config (git-tracked)
    data/
        graph.gfa
        graph.gfa.pgi     # index written by `pgtools index` (<gfa><suffix>)

pgtools.toml example:

    [index]
    default_type = "full"          # segment | path | position | full
    suffix = ".pgi"
    undefined_segments = "error"   # error | warn
    skip_invalid = false           # skip unparsable lines instead of aborting

    [logging]
    level = "WARNING"
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pgtools.builder import UNDEFINED_POLICIES
from pgtools.models import IndexType

_CONFIG_FILENAME = "pgtools.toml"
_DEFAULT_SUFFIX = ".pgi"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class IndexConfig:
    default_type: IndexType = IndexType.FULL
    suffix: str = _DEFAULT_SUFFIX
    undefined_segments: str = "error"
    skip_invalid: bool = False

    def index_path_for(self, gfa_path: Path | str) -> Path:
        gfa = Path(gfa_path)
        return gfa.with_name(gfa.name + self.suffix)


@dataclass
class LoggingConfig:
    level: str = "WARNING"

    @property
    def level_no(self) -> int:
        return logging.getLevelName(self.level)  # type: ignore[no-any-return]


@dataclass
class PgToolsConfig:
    """Resolved configuration."""

    root: Path                      # directory that contains pgtools.toml (or cwd)
    path: Path | None = None        # the pgtools.toml that was read, if any
    index: IndexConfig = field(default_factory=IndexConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(root: Path | str | None = None) -> PgToolsConfig:
    """Load pgtools.toml from root (or search upward from cwd if root is None).

    Missing file means defaults. Invalid values raise ValueError.
    """
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    idx_section = raw.get("index", {})
    log_section = raw.get("logging", {})

    default_type = IndexType.parse(str(idx_section.get("default_type", "full")))

    undefined = str(idx_section.get("undefined_segments", "error")).lower()
    if undefined not in UNDEFINED_POLICIES:
        msg = f"{config_path}: [index] undefined_segments must be one of {UNDEFINED_POLICIES}, got {undefined!r}"
        raise ValueError(msg)

    suffix = str(idx_section.get("suffix", _DEFAULT_SUFFIX))
    if not suffix:
        msg = f"{config_path}: [index] suffix must not be empty"
        raise ValueError(msg)

    level = str(log_section.get("level", "WARNING")).upper()
    if level not in _LOG_LEVELS:
        msg = f"{config_path}: [logging] level must be one of {_LOG_LEVELS}, got {level!r}"
        raise ValueError(msg)

    return PgToolsConfig(
        root=root_path,
        path=config_path if config_path.exists() else None,
        index=IndexConfig(
            default_type=default_type,
            suffix=suffix,
            undefined_segments=undefined,
            skip_invalid=bool(idx_section.get("skip_invalid", False)),
        ),
        logging=LoggingConfig(level=level),
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for pgtools.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path) -> Path:
    """Write a default pgtools.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"pgtools.toml already exists at {config_path}"
        raise FileExistsError(msg)

    content = """\
[index]
default_type = "full"          # segment | path | position | full
suffix = ".pgi"                # index file = <gfa><suffix>
undefined_segments = "error"   # error | warn (warn: length 0 + warning)
skip_invalid = false           # skip unparsable lines instead of aborting

[logging]
level = "WARNING"              # DEBUG | INFO | WARNING | ERROR
"""
    config_path.write_text(content)
    return config_path
