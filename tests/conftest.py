"""Shared fixtures: in-memory stores for engine tests, tmp_path stores for disk tests."""

from __future__ import annotations

from pathlib import PurePath

import pytest

from flatkv.fs import MemoryFileSystem
from flatkv.store import Store

BASE = PurePath("/data")


@pytest.fixture(autouse=True)
def _no_env_override(monkeypatch):
    monkeypatch.delenv("FLATKV_DATA_DIR", raising=False)


@pytest.fixture
def mem_fs() -> MemoryFileSystem:
    return MemoryFileSystem()


@pytest.fixture
def store(mem_fs) -> Store:
    """Auto-saving store over an empty in-memory filesystem, LF line endings."""
    return Store(BASE, "app", fs=mem_fs, line_ending="\n")


@pytest.fixture
def manual_store(mem_fs) -> Store:
    """Same as ``store`` with auto-save off."""
    return Store(BASE, "app", fs=mem_fs, line_ending="\n", auto_save=False)


@pytest.fixture
def disk_store(tmp_path) -> Store:
    return Store(tmp_path / "state", "app")
