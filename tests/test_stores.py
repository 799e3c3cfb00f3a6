"""
tests/test_stores.py
Unit tests for apiscaffold.stores.FileSystemStore.
"""

from __future__ import annotations

import hashlib
import pathlib

from apiscaffold.stores import FileSystemStore, sha256_hex


class TestFileSystemStore:
    """Reads, writes and records against a temporary directory."""

    def test_write_creates_parents(self, tmp_path: pathlib.Path) -> None:
        store = FileSystemStore(tmp_path)
        store.write("app/Http/Requests/StoreStudentRequest.php", "<?php\n")
        target = tmp_path / "app" / "Http" / "Requests" / "StoreStudentRequest.php"
        assert target.read_text(encoding="utf-8") == "<?php\n"
        assert store.exists("app/Http/Requests/StoreStudentRequest.php")
        assert store.is_dir("app/Http/Requests")

    def test_write_leaves_no_temp_files(self, tmp_path: pathlib.Path) -> None:
        store = FileSystemStore(tmp_path)
        store.write("routes/api.php", "<?php\n")
        store.write("routes/api.php", "<?php\n// v2\n")
        assert [p.name for p in (tmp_path / "routes").iterdir()] == ["api.php"]
        assert store.read("routes/api.php") == "<?php\n// v2\n"

    def test_non_atomic_write(self, tmp_path: pathlib.Path) -> None:
        store = FileSystemStore(tmp_path, atomic_writes=False)
        store.write("a.txt", "x")
        assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "x"

    def test_records(self, tmp_path: pathlib.Path) -> None:
        store = FileSystemStore(tmp_path)
        store.write("notes/readme.md", "one\ntwo\n")
        (record,) = store.records
        assert record.relative_path == "notes/readme.md"
        assert record.line_count == 2
        assert record.size_bytes == 8
        assert record.sha256 == hashlib.sha256(b"one\ntwo\n").hexdigest()
        assert record.dry_run is False

    def test_dry_run_writes_nothing(self, tmp_path: pathlib.Path) -> None:
        store = FileSystemStore(tmp_path, dry_run=True)
        store.make_dirs("app/Http")
        store.write("app/Http/x.php", "<?php\n")
        assert not (tmp_path / "app").exists()
        assert store.records[0].dry_run is True

    def test_append(self, tmp_path: pathlib.Path) -> None:
        store = FileSystemStore(tmp_path)
        store.append("log.txt", "a\n")
        store.append("log.txt", "b\n")
        assert store.read("log.txt") == "a\nb\n"

    def test_list_files_sorted_and_relative(self, tmp_path: pathlib.Path) -> None:
        migrations = tmp_path / "database" / "migrations"
        migrations.mkdir(parents=True)
        for name in ("2024_02_b.php", "2024_01_a.php", "notes.txt"):
            (migrations / name).write_text("", encoding="utf-8")
        (migrations / "sub.php").mkdir()
        store = FileSystemStore(tmp_path)
        assert store.list_files("database/migrations", "*.php") == [
            "database/migrations/2024_01_a.php",
            "database/migrations/2024_02_b.php",
        ]

    def test_list_files_missing_dir(self, tmp_path: pathlib.Path) -> None:
        assert FileSystemStore(tmp_path).list_files("nope") == []

    def test_absolute_paths_used_as_is(self, tmp_path: pathlib.Path) -> None:
        store = FileSystemStore(tmp_path / "root")
        outside = tmp_path / "outside.txt"
        store.write(outside, "x")
        assert outside.read_text(encoding="utf-8") == "x"
        assert store.relative(outside) == outside.as_posix()


def test_sha256_hex() -> None:
    assert sha256_hex("abc") == hashlib.sha256(b"abc").hexdigest()
