"""Filesystem boundary used by Store.

Store only needs whole-file reads and writes, an atomic replace, mkdir and
unlink. LocalFileSystem does these on disk; MemoryFileSystem keeps files in
a dict and records every operation, for tests and throwaway stores.
"""

from __future__ import annotations

import os
from pathlib import Path, PurePath
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping


class FileSystem(Protocol):
    def exists(self, path: PurePath) -> bool: ...

    def read_text(self, path: PurePath) -> str: ...

    def write_text(self, path: PurePath, text: str) -> None: ...

    def replace(self, src: PurePath, dst: PurePath) -> None: ...

    def mkdir(self, path: PurePath) -> None: ...

    def unlink(self, path: PurePath) -> None: ...


class LocalFileSystem:
    """UTF-8 files on the local disk. Line endings are passed through untouched."""

    def exists(self, path: PurePath) -> bool:
        return Path(path).is_file()

    def read_text(self, path: PurePath) -> str:
        with Path(path).open(encoding="utf-8", newline="") as f:
            return f.read()

    def write_text(self, path: PurePath, text: str) -> None:
        with Path(path).open("w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())

    def replace(self, src: PurePath, dst: PurePath) -> None:
        Path(src).replace(dst)

    def mkdir(self, path: PurePath) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def unlink(self, path: PurePath) -> None:
        Path(path).unlink(missing_ok=True)


class MemoryFileSystem:
    """In-memory filesystem.

    ``files`` maps path -> text, ``ops`` logs ``(operation, path)`` for every
    call except exists(), in call order. Put an exception in
    ``faults[operation]`` to make the next call of that operation raise it,
    e.g. ``fs.faults["replace"] = OSError()``.
    """

    def __init__(self, files: Mapping[PurePath | str, str] | None = None) -> None:
        self.files: dict[PurePath, str] = {}
        self.dirs: set[PurePath] = set()
        self.ops: list[tuple[str, PurePath]] = []
        self.faults: dict[str, Exception] = {}
        self._writes = 0
        for path, text in (files or {}).items():
            p = PurePath(path)
            self.files[p] = text
            self.dirs.update(p.parents)

    def _op(self, name: str, path: PurePath) -> PurePath:
        p = PurePath(path)
        self.ops.append((name, p))
        fault = self.faults.pop(name, None)
        if fault is not None:
            raise fault
        return p

    @property
    def writes(self) -> int:
        """Number of write_text calls that completed."""
        return self._writes

    def exists(self, path: PurePath) -> bool:
        return PurePath(path) in self.files

    def read_text(self, path: PurePath) -> str:
        p = self._op("read", path)
        try:
            return self.files[p]
        except KeyError:
            raise FileNotFoundError(str(p)) from None

    def write_text(self, path: PurePath, text: str) -> None:
        p = self._op("write", path)
        if p.parent not in self.dirs:
            raise FileNotFoundError(str(p.parent))
        self.files[p] = text
        self._writes += 1

    def replace(self, src: PurePath, dst: PurePath) -> None:
        s = self._op("replace", src)
        try:
            self.files[PurePath(dst)] = self.files.pop(s)
        except KeyError:
            raise FileNotFoundError(str(s)) from None

    def mkdir(self, path: PurePath) -> None:
        p = self._op("mkdir", path)
        self.dirs.add(p)
        self.dirs.update(p.parents)

    def unlink(self, path: PurePath) -> None:
        p = self._op("unlink", path)
        self.files.pop(p, None)
