"""Error taxonomy for flatkv.

Every error derives from FlatKVError and also from the closest builtin, so
callers can catch either ``FlatKVError`` or the usual ``ValueError`` /
``OSError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import PurePath


class FlatKVError(Exception):
    """Base class for all flatkv errors."""


class ValidationError(FlatKVError, ValueError):
    """Invalid key, missing argument, or a value the requested kind can't hold."""


class ParseError(FlatKVError, ValueError):
    """A stored line has no ``=`` separator."""

    def __init__(self, line_no: int, line: str, path: PurePath | None = None) -> None:
        self.line_no = line_no
        self.line = line
        self.path = path
        where = f"{path}:{line_no}" if path is not None else f"line {line_no}"
        super().__init__(f"{where}: missing '=' separator in {line!r}")


class FormatError(FlatKVError, ValueError):
    """A stored value is present but can't be parsed as the requested kind."""

    def __init__(self, key: str | None, raw: str, kind: str) -> None:
        self.key = key
        self.raw = raw
        self.kind = kind
        if key is None:
            super().__init__(f"cannot parse {raw!r} as {kind}")
        else:
            super().__init__(f"key {key!r}: cannot parse {raw!r} as {kind}")


class StoreIOError(FlatKVError, OSError):
    """Filesystem failure during save or reload."""


class ConfigError(FlatKVError, ValueError):
    """Invalid flatkv.toml contents."""
