"""FlatKVConfig: project-local settings for flatkv stores.

Default layout (all relative to the project root):

    flatkv.toml           # project config (optional)
    .flatkv/
        <name>.tinydb     # one file per store
        <name>.tmp        # transient, only while a save is in flight

flatkv.toml example:

    [store]
    data_dir = ".flatkv"      # default; FLATKV_DATA_DIR overrides it
    suffix = ".tinydb"
    temp_suffix = ".tmp"
    auto_save = true
    line_ending = "platform"  # platform | lf | crlf

    [logging]
    level = "WARNING"
"""

from __future__ import annotations

import logging as _logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from flatkv.errors import ConfigError

_CONFIG_FILENAME = "flatkv.toml"
_DEFAULT_DATA_DIR = ".flatkv"
_ENV_DATA_DIR = "FLATKV_DATA_DIR"

LINE_ENDINGS: dict[str, str] = {
    "platform": os.linesep,
    "lf": "\n",
    "crlf": "\r\n",
}


@dataclass
class StoreConfig:
    """The [store] table."""
    data_dir: str = _DEFAULT_DATA_DIR   # relative to the config root
    suffix: str = ".tinydb"
    temp_suffix: str = ".tmp"
    auto_save: bool = True
    line_ending: str = "platform"


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class FlatKVConfig:
    """Resolved configuration for a flatkv project."""

    root: Path                      # directory that contains flatkv.toml
    store: StoreConfig = field(default_factory=StoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def data_dir(self) -> Path:
        return self.root / self.store.data_dir

    @property
    def line_terminator(self) -> str:
        return LINE_ENDINGS[self.store.line_ending]

    def data_path(self, name: str) -> Path:
        """Full path of the data file for store *name*."""
        return self.data_dir / f"{name}{self.store.suffix}"


def _require(section: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = section.get(key, default)
    if not isinstance(value, kind):
        msg = f"{_CONFIG_FILENAME}: {key} must be {kind.__name__}, got {value!r}"
        raise ConfigError(msg)
    return value


def _validate(cfg: FlatKVConfig) -> None:
    store = cfg.store
    if store.line_ending not in LINE_ENDINGS:
        msg = f"store.line_ending must be one of {', '.join(LINE_ENDINGS)}, got {store.line_ending!r}"
        raise ConfigError(msg)
    if not store.suffix or not store.temp_suffix:
        msg = "store.suffix and store.temp_suffix must be non-empty"
        raise ConfigError(msg)
    if store.suffix == store.temp_suffix:
        msg = f"store.suffix and store.temp_suffix are both {store.suffix!r}"
        raise ConfigError(msg)
    if cfg.logging.level.upper() not in _logging.getLevelNamesMapping():
        msg = f"logging.level: unknown level {cfg.logging.level!r}"
        raise ConfigError(msg)


def load_config(root: Path | str | None = None) -> FlatKVConfig:
    """Load flatkv.toml from root (or search upward from cwd if root is None).

    A missing file yields the defaults rooted at the start directory.
    """
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        try:
            with config_path.open("rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            msg = f"{config_path}: {exc}"
            raise ConfigError(msg) from exc

    store_section = raw.get("store", {})
    log_section = raw.get("logging", {})
    defaults = StoreConfig()

    data_dir = _require(store_section, "data_dir", str, defaults.data_dir)
    # Environment wins over the file
    data_dir = os.environ.get(_ENV_DATA_DIR) or data_dir

    cfg = FlatKVConfig(
        root=root_path,
        store=StoreConfig(
            data_dir=data_dir,
            suffix=_require(store_section, "suffix", str, defaults.suffix),
            temp_suffix=_require(store_section, "temp_suffix", str, defaults.temp_suffix),
            auto_save=_require(store_section, "auto_save", bool, defaults.auto_save),
            line_ending=_require(store_section, "line_ending", str, defaults.line_ending),
        ),
        logging=LoggingConfig(
            level=_require(log_section, "level", str, LoggingConfig.level),
        ),
    )
    _validate(cfg)
    return cfg


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for flatkv.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, data_dir: str | None = None) -> Path:
    """Write a default flatkv.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"flatkv.toml already exists at {config_path}"
        raise FileExistsError(msg)

    content = f"""\
[store]
data_dir = "{data_dir or _DEFAULT_DATA_DIR}"
# suffix = ".tinydb"
# temp_suffix = ".tmp"        # written next to the data file, then renamed over it
# auto_save = true            # false: call save() yourself
# line_ending = "platform"    # platform | lf | crlf

# [logging]
# level = "WARNING"           # used by the flatkv CLI
"""
    root.mkdir(parents=True, exist_ok=True)
    config_path.write_text(content)
    return config_path
