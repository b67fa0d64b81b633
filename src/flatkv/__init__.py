"""Flat-file key-value store for small application settings and state.

    from flatkv import Store
    store = Store("/path/to/data", "settings")   # reads settings.tinydb if present
    store.set("theme", "dark")
    store.get("theme")                           # "dark"

One ``key=value`` line per entry, values escaped so ``=``, CR, LF and commas
round-trip. Saves go through a temp file and an atomic rename.
"""

from flatkv.codec import BOOL, BYTE, DOUBLE, FLOAT, INT, LONG, SHORT, TEXT, Kind
from flatkv.config import FlatKVConfig, init_config, load_config
from flatkv.errors import (
    ConfigError,
    FlatKVError,
    FormatError,
    ParseError,
    StoreIOError,
    ValidationError,
)
from flatkv.fs import FileSystem, LocalFileSystem, MemoryFileSystem
from flatkv.store import Store, open_store, store_paths

__all__ = [
    "BOOL",
    "BYTE",
    "DOUBLE",
    "FLOAT",
    "INT",
    "LONG",
    "SHORT",
    "TEXT",
    "ConfigError",
    "FileSystem",
    "FlatKVConfig",
    "FlatKVError",
    "FormatError",
    "Kind",
    "LocalFileSystem",
    "MemoryFileSystem",
    "ParseError",
    "Store",
    "StoreIOError",
    "ValidationError",
    "init_config",
    "load_config",
    "open_store",
    "store_paths",
]
