"""Filesystem implementations."""

from __future__ import annotations

from pathlib import PurePath

import pytest

from flatkv.fs import LocalFileSystem, MemoryFileSystem


class TestLocalFileSystem:
    def test_write_read_keeps_line_endings(self, tmp_path):
        fs = LocalFileSystem()
        path = tmp_path / "f.txt"
        fs.write_text(path, "a\r\nb\rc\n")
        assert fs.read_text(path) == "a\r\nb\rc\n"
        assert path.read_bytes() == b"a\r\nb\rc\n"

    def test_utf8(self, tmp_path):
        fs = LocalFileSystem()
        path = tmp_path / "f.txt"
        fs.write_text(path, "ü✓")
        assert path.read_bytes() == "ü✓".encode()

    def test_replace_overwrites(self, tmp_path):
        fs = LocalFileSystem()
        src, dst = tmp_path / "a.tmp", tmp_path / "a.dat"
        dst.write_text("old")
        fs.write_text(src, "new")
        fs.replace(src, dst)
        assert dst.read_text() == "new"
        assert not src.exists()

    def test_exists_ignores_directories(self, tmp_path):
        fs = LocalFileSystem()
        (tmp_path / "d").mkdir()
        assert not fs.exists(tmp_path / "d")
        assert not fs.exists(tmp_path / "missing")

    def test_mkdir_and_unlink(self, tmp_path):
        fs = LocalFileSystem()
        nested = tmp_path / "a" / "b"
        fs.mkdir(nested)
        fs.mkdir(nested)
        assert nested.is_dir()
        fs.unlink(nested / "missing")


class TestMemoryFileSystem:
    def test_seeded_files(self):
        fs = MemoryFileSystem({"/d/x.txt": "hi"})
        assert fs.exists(PurePath("/d/x.txt"))
        assert fs.read_text(PurePath("/d/x.txt")) == "hi"
        fs.write_text(PurePath("/d/y.txt"), "ok")

    def test_write_needs_parent(self):
        fs = MemoryFileSystem()
        with pytest.raises(FileNotFoundError):
            fs.write_text(PurePath("/nope/x.txt"), "x")
        fs.mkdir(PurePath("/nope"))
        fs.write_text(PurePath("/nope/x.txt"), "x")
        assert fs.writes == 1
        assert [name for name, _ in fs.ops].count("write") == 2

    def test_replace_missing_source(self):
        fs = MemoryFileSystem()
        with pytest.raises(FileNotFoundError):
            fs.replace(PurePath("/a"), PurePath("/b"))

    def test_read_missing(self):
        with pytest.raises(FileNotFoundError):
            MemoryFileSystem().read_text(PurePath("/a"))

    def test_faults_fire_once(self):
        fs = MemoryFileSystem({"/d/x": "1"})
        fs.faults["read"] = OSError("bad sector")
        with pytest.raises(OSError, match="bad sector"):
            fs.read_text(PurePath("/d/x"))
        assert fs.read_text(PurePath("/d/x")) == "1"

    def test_ops_log(self):
        fs = MemoryFileSystem()
        fs.mkdir(PurePath("/d"))
        fs.write_text(PurePath("/d/t"), "x")
        fs.replace(PurePath("/d/t"), PurePath("/d/f"))
        fs.unlink(PurePath("/d/gone"))
        assert fs.ops == [
            ("mkdir", PurePath("/d")),
            ("write", PurePath("/d/t")),
            ("replace", PurePath("/d/t")),
            ("unlink", PurePath("/d/gone")),
        ]
        assert fs.files == {PurePath("/d/f"): "x"}
