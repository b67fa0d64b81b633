"""Store: a flat-file key-value store with auto-save and transactions.

    store = Store("/path/to/data", "settings")
    store.set("window.width", 1280)
    store.get_int("window.width")            # 1280
    store.get_int_or_default("retries", 3)   # stores retries=3 if absent
    with store.batch():                      # one save for the whole block
        store.set("a", True)
        store.set_array("recent", ["x.txt", "y,z.txt"])

File format (``<name>.tinydb``): one ``key=escaped-value`` per line, keys
sorted, platform line terminator, UTF-8. See flatkv.codec for escaping.

Every mutation marks the store dirty. With auto_save on (the default) the
mutation is written immediately unless a transaction is open; the outermost
transaction writes once when it exits. A save writes ``<name>.tmp`` next to
the data file and renames it over the data file.

Not thread-safe. Several processes may open the same file, but nothing
coordinates them: each save is atomic and the last one wins.
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
from pathlib import Path, PurePath
from typing import TYPE_CHECKING, Any

import numpy as np

from flatkv import codec
from flatkv.codec import BOOL, BYTE, DOUBLE, FLOAT, INT, LONG, SHORT, TEXT, Kind
from flatkv.errors import ParseError, StoreIOError, ValidationError
from flatkv.fs import LocalFileSystem

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence

    from flatkv.config import FlatKVConfig
    from flatkv.fs import FileSystem

logger = logging.getLogger("flatkv.store")

DEFAULT_SUFFIX = ".tinydb"
DEFAULT_TEMP_SUFFIX = ".tmp"

_LINE_SPLIT = re.compile(r"\r\n|\r|\n")
_KEY_FORBIDDEN = ("=", "\r", "\n")
_LINE_TERMINATORS = ("\n", "\r\n", "\r")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def store_paths(
    base_dir: PurePath | str,
    name: str,
    suffix: str = DEFAULT_SUFFIX,
    temp_suffix: str = DEFAULT_TEMP_SUFFIX,
) -> tuple[Path, Path]:
    """Return (data file, temp file) for store *name* under *base_dir*."""
    base = Path(base_dir)
    return base / f"{name}{suffix}", base / f"{name}{temp_suffix}"


def validate_key(key: Any) -> str:
    """Return *key* if it can be stored, else raise ValidationError."""
    if key is None:
        msg = "key can't be None"
        raise ValidationError(msg)
    if not isinstance(key, str):
        msg = f"key must be str, got {type(key).__name__}"
        raise ValidationError(msg)
    if any(ch in key for ch in _KEY_FORBIDDEN):
        msg = f"invalid key {key!r}: must not contain '=', CR or LF"
        raise ValidationError(msg)
    return key


def parse_text(text: str, path: PurePath | None = None) -> dict[str, str]:
    """Parse file content into key -> encoded value.

    Lines end in CRLF, CR or LF; the last terminator is optional. Any line
    without '=', including a blank one, raises ParseError. Later duplicates
    win.
    """
    lines = _LINE_SPLIT.split(text)
    if not lines[-1]:
        lines.pop()
    entries: dict[str, str] = {}
    for line_no, line in enumerate(lines, start=1):
        key, sep, value = line.partition("=")
        if not sep:
            raise ParseError(line_no, line, path)
        entries[key] = value
    return entries


def _check_encodable(*texts: str) -> None:
    for text in texts:
        try:
            text.encode("utf-8")
        except UnicodeEncodeError as exc:
            msg = f"{text!r} can't be written as UTF-8: {exc.reason}"
            raise ValidationError(msg) from exc


def serialize(entries: Mapping[str, str], line_ending: str = os.linesep) -> str:
    """Render entries as file content, sorted by key."""
    return "".join(f"{key}={entries[key]}{line_ending}" for key in sorted(entries))


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple, np.ndarray))


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class Store:
    """Flat-file key-value store. See the module docstring."""

    def __init__(
        self,
        base_dir: PurePath | str,
        name: str,
        *,
        fs: FileSystem | None = None,
        auto_save: bool = True,
        suffix: str = DEFAULT_SUFFIX,
        temp_suffix: str = DEFAULT_TEMP_SUFFIX,
        line_ending: str = os.linesep,
    ) -> None:
        if not name or not isinstance(name, str):
            msg = f"store name must be a non-empty str, got {name!r}"
            raise ValidationError(msg)
        if suffix == temp_suffix:
            msg = f"suffix and temp_suffix must differ, both are {suffix!r}"
            raise ValidationError(msg)
        if line_ending not in _LINE_TERMINATORS:
            msg = f"unsupported line ending {line_ending!r}"
            raise ValidationError(msg)

        self._path, self._temp_path = store_paths(base_dir, name, suffix, temp_suffix)
        self._fs: FileSystem = fs if fs is not None else LocalFileSystem()
        self._data: dict[str, str] = {}
        self._dirty = False
        self._auto_save = auto_save
        self._depth = 0
        self.line_ending = line_ending

        if self._fs.exists(self._path):
            self.reload()

    def __repr__(self) -> str:
        return (
            f"Store(path={str(self._path)!r}, entries={len(self._data)}, "
            f"dirty={self._dirty}, auto_save={self._auto_save})"
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def path(self) -> Path:
        return self._path

    @property
    def temp_path(self) -> Path:
        return self._temp_path

    @property
    def dirty(self) -> bool:
        """True when the in-memory map has changes not yet on disk."""
        return self._dirty

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @property
    def auto_save(self) -> bool:
        return self._auto_save

    @auto_save.setter
    def auto_save(self, enabled: bool) -> None:
        self._auto_save = bool(enabled)
        # Turning auto-save back on flushes pending changes
        if self._auto_save and self._depth == 0:
            self.save()

    def set_auto_save(self, enabled: bool) -> None:
        self.auto_save = enabled

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def reload(self) -> None:
        """Replace the in-memory map with the file's content.

        Unsaved changes are discarded. If the file can't be read or parsed
        the in-memory map is left as it was.
        """
        if self._fs.exists(self._path):
            try:
                text = self._fs.read_text(self._path)
            except (OSError, UnicodeDecodeError) as exc:
                msg = f"cannot read {self._path}: {exc}"
                raise StoreIOError(msg) from exc
            entries = parse_text(text, self._path)
        else:
            entries = {}
        self._data = entries
        self._dirty = False
        logger.debug("loaded %d entries from %s", len(entries), self._path)

    def save(self) -> None:
        """Write the map to disk if dirty: temp file, then atomic replace."""
        if not self._dirty:
            return
        text = self.to_text()
        try:
            self._fs.mkdir(self._path.parent)
            self._fs.write_text(self._temp_path, text)
            self._fs.replace(self._temp_path, self._path)
        except (OSError, UnicodeError) as exc:
            self._discard_temp()
            msg = f"cannot save {self._path}: {exc}"
            raise StoreIOError(msg) from exc
        self._dirty = False
        logger.debug("saved %d entries to %s", len(self._data), self._path)

    def _discard_temp(self) -> None:
        try:
            self._fs.unlink(self._temp_path)
        except OSError:
            logger.warning("could not remove temp file %s", self._temp_path, exc_info=True)

    def to_text(self) -> str:
        """The exact content save() would write."""
        return serialize(self._data, self.line_ending)

    def _touched(self) -> None:
        self._dirty = True
        if self._auto_save and self._depth == 0:
            self.save()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def batch(self) -> Iterator[Store]:
        """Defer auto-save until the outermost batch exits.

        If the block raises, nothing is saved; changes made so far stay in
        memory and the store stays dirty.
        """
        self._depth += 1
        logger.debug("transaction enter depth=%d", self._depth)
        try:
            yield self
        finally:
            self._depth -= 1
        if self._depth == 0 and self._auto_save:
            self.save()

    def transaction(self, action: Callable[[Store], Any]) -> Any:
        """Run ``action(store)`` as one batch and return its result."""
        with self.batch():
            return action(self)

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def raw(self, key: str) -> str | None:
        """The encoded value for *key*, or None."""
        return self._data.get(key)

    def set_raw(self, key: str, encoded: str) -> None:
        """Store an already encoded value."""
        validate_key(key)
        if encoded is None:
            msg = "value can't be None"
            raise ValidationError(msg)
        if not isinstance(encoded, str):
            msg = f"encoded value must be str, got {type(encoded).__name__}"
            raise ValidationError(msg)
        _check_encodable(key, encoded)
        self._data[key] = encoded
        self._touched()

    def update_from_text(self, text: str) -> None:
        """Merge ``key=value`` lines (values already encoded) in one transaction.

        The whole text is parsed before anything is applied.
        """
        entries = parse_text(text)
        with self.batch():
            for key, value in entries.items():
                self.set_raw(key, value)

    def keys(self) -> list[str]:
        return sorted(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove(self, *keys: str) -> None:
        """Remove keys; missing keys are ignored. Several keys save once."""
        if len(keys) == 1:
            key = validate_key(keys[0])
            self._data.pop(key, None)
            self._touched()
        else:
            self.remove_all(keys)

    def remove_all(self, keys: Iterable[str]) -> None:
        keys = [validate_key(k) for k in keys]
        with self.batch():
            for key in keys:
                self.remove(key)

    def clear(self) -> None:
        self._data.clear()
        self._touched()

    # ------------------------------------------------------------------
    # Generic typed access
    # ------------------------------------------------------------------

    def _lookup(self, key: str) -> str | None:
        if not isinstance(key, str):
            msg = f"key must be str, got {type(key).__name__}"
            raise ValidationError(msg)
        return self._data.get(key)

    def get(self, key: str, kind: Kind = TEXT) -> Any:
        """Decoded value of *key* as *kind*; None if absent.

        Raises FormatError if the stored text isn't a valid *kind*.
        """
        raw = self._lookup(key)
        return None if raw is None else codec.decode(raw, kind, key)

    def set(self, key: str, value: Any, kind: Kind | None = None) -> None:
        """Store a scalar or, for list/tuple/ndarray, an array.

        Without *kind* it is inferred: bool, int -> long, float -> double, str.
        """
        if value is None:
            msg = f"value for {key!r} can't be None"
            raise ValidationError(msg)
        if _is_array(value):
            self.set_array(key, value, kind)
            return
        kind = kind or codec.infer_kind(value)
        self.set_raw(key, codec.encode(value, kind))

    def get_or_default(self, key: str, default: Any, kind: Kind | None = None) -> Any:
        """Like get(), but stores and returns *default* when *key* is absent."""
        if default is None:
            msg = f"default for {key!r} can't be None"
            raise ValidationError(msg)
        if _is_array(default):
            return self.get_array_or_default(key, default, kind)
        kind = kind or codec.infer_kind(default)
        value = self.get(key, kind)
        if value is None:
            self.set(key, default, kind)
            return self.get(key, kind)
        return value

    def get_array(self, key: str, kind: Kind = TEXT) -> list[Any] | None:
        raw = self._lookup(key)
        return None if raw is None else codec.decode_array(raw, kind, key)

    def set_array(self, key: str, values: Sequence[Any], kind: Kind | None = None) -> None:
        if values is None:
            msg = f"value for {key!r} can't be None"
            raise ValidationError(msg)
        if isinstance(values, str):
            msg = f"array value for {key!r} must be a sequence, not str"
            raise ValidationError(msg)
        if not isinstance(values, np.ndarray):
            values = list(values)
        kind = kind or codec.infer_array_kind(values)
        self.set_raw(key, codec.encode_array(values, kind))

    def get_array_or_default(
        self, key: str, default: Sequence[Any], kind: Kind | None = None,
    ) -> list[Any]:
        if default is None:
            msg = f"default for {key!r} can't be None"
            raise ValidationError(msg)
        if not isinstance(default, np.ndarray):
            default = list(default)
        kind = kind or codec.infer_array_kind(default)
        values = self.get_array(key, kind)
        if values is None:
            self.set_array(key, default, kind)
            return self.get_array(key, kind)
        return values

    # ------------------------------------------------------------------
    # Typed wrappers: scalars
    # ------------------------------------------------------------------

    def get_bool(self, key: str) -> bool | None:
        return self.get(key, BOOL)

    def get_byte(self, key: str) -> int | None:
        return self.get(key, BYTE)

    def get_short(self, key: str) -> int | None:
        return self.get(key, SHORT)

    def get_int(self, key: str) -> int | None:
        return self.get(key, INT)

    def get_long(self, key: str) -> int | None:
        return self.get(key, LONG)

    def get_float(self, key: str) -> float | None:
        return self.get(key, FLOAT)

    def get_double(self, key: str) -> float | None:
        return self.get(key, DOUBLE)

    def set_text(self, key: str, value: str) -> None:
        self.set(key, value, TEXT)

    def set_bool(self, key: str, value: bool) -> None:
        self.set(key, value, BOOL)

    def set_byte(self, key: str, value: int) -> None:
        self.set(key, value, BYTE)

    def set_short(self, key: str, value: int) -> None:
        self.set(key, value, SHORT)

    def set_int(self, key: str, value: int) -> None:
        self.set(key, value, INT)

    def set_long(self, key: str, value: int) -> None:
        self.set(key, value, LONG)

    def set_float(self, key: str, value: float) -> None:
        self.set(key, value, FLOAT)

    def set_double(self, key: str, value: float) -> None:
        self.set(key, value, DOUBLE)

    def get_text_or_default(self, key: str, default: str) -> str:
        return self.get_or_default(key, default, TEXT)

    def get_bool_or_default(self, key: str, default: bool) -> bool:
        return self.get_or_default(key, default, BOOL)

    def get_byte_or_default(self, key: str, default: int) -> int:
        return self.get_or_default(key, default, BYTE)

    def get_short_or_default(self, key: str, default: int) -> int:
        return self.get_or_default(key, default, SHORT)

    def get_int_or_default(self, key: str, default: int) -> int:
        return self.get_or_default(key, default, INT)

    def get_long_or_default(self, key: str, default: int) -> int:
        return self.get_or_default(key, default, LONG)

    def get_float_or_default(self, key: str, default: float) -> float:
        return self.get_or_default(key, default, FLOAT)

    def get_double_or_default(self, key: str, default: float) -> float:
        return self.get_or_default(key, default, DOUBLE)

    # ------------------------------------------------------------------
    # Typed wrappers: arrays
    # ------------------------------------------------------------------

    def get_bool_array(self, key: str) -> list[bool] | None:
        return self.get_array(key, BOOL)

    def get_byte_array(self, key: str) -> list[int] | None:
        return self.get_array(key, BYTE)

    def get_short_array(self, key: str) -> list[int] | None:
        return self.get_array(key, SHORT)

    def get_int_array(self, key: str) -> list[int] | None:
        return self.get_array(key, INT)

    def get_long_array(self, key: str) -> list[int] | None:
        return self.get_array(key, LONG)

    def get_float_array(self, key: str) -> list[float] | None:
        return self.get_array(key, FLOAT)

    def get_double_array(self, key: str) -> list[float] | None:
        return self.get_array(key, DOUBLE)

    def set_text_array(self, key: str, values: Sequence[str]) -> None:
        self.set_array(key, values, TEXT)

    def set_bool_array(self, key: str, values: Sequence[bool]) -> None:
        self.set_array(key, values, BOOL)

    def set_byte_array(self, key: str, values: Sequence[int]) -> None:
        self.set_array(key, values, BYTE)

    def set_short_array(self, key: str, values: Sequence[int]) -> None:
        self.set_array(key, values, SHORT)

    def set_int_array(self, key: str, values: Sequence[int]) -> None:
        self.set_array(key, values, INT)

    def set_long_array(self, key: str, values: Sequence[int]) -> None:
        self.set_array(key, values, LONG)

    def set_float_array(self, key: str, values: Sequence[float]) -> None:
        self.set_array(key, values, FLOAT)

    def set_double_array(self, key: str, values: Sequence[float]) -> None:
        self.set_array(key, values, DOUBLE)

    def get_text_array_or_default(self, key: str, default: Sequence[str]) -> list[str]:
        return self.get_array_or_default(key, default, TEXT)

    def get_bool_array_or_default(self, key: str, default: Sequence[bool]) -> list[bool]:
        return self.get_array_or_default(key, default, BOOL)

    def get_byte_array_or_default(self, key: str, default: Sequence[int]) -> list[int]:
        return self.get_array_or_default(key, default, BYTE)

    def get_short_array_or_default(self, key: str, default: Sequence[int]) -> list[int]:
        return self.get_array_or_default(key, default, SHORT)

    def get_int_array_or_default(self, key: str, default: Sequence[int]) -> list[int]:
        return self.get_array_or_default(key, default, INT)

    def get_long_array_or_default(self, key: str, default: Sequence[int]) -> list[int]:
        return self.get_array_or_default(key, default, LONG)

    def get_float_array_or_default(self, key: str, default: Sequence[float]) -> list[float]:
        return self.get_array_or_default(key, default, FLOAT)

    def get_double_array_or_default(self, key: str, default: Sequence[float]) -> list[float]:
        return self.get_array_or_default(key, default, DOUBLE)


# ---------------------------------------------------------------------------
# Config-driven entry point
# ---------------------------------------------------------------------------

def open_store(
    name: str,
    config: FlatKVConfig | None = None,
    *,
    fs: FileSystem | None = None,
    **overrides: Any,
) -> Store:
    """Open store *name* in the configured data directory.

    Keyword overrides (auto_save, suffix, temp_suffix, line_ending) win over
    the config.
    """
    if config is None:
        from flatkv.config import load_config
        config = load_config()
    options: dict[str, Any] = {
        "auto_save": config.store.auto_save,
        "suffix": config.store.suffix,
        "temp_suffix": config.store.temp_suffix,
        "line_ending": config.line_terminator,
    }
    options.update(overrides)
    return Store(config.data_dir, name, fs=fs, **options)
