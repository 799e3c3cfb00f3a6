# File: apiscaffold/stores.py
"""
apiscaffold - Document Store
==============================
The file-system capability the rest of the pipeline talks to.  Everything
that reads migrations, model classes or the route registry, and everything
that writes generated artifacts, goes through a ``DocumentStore`` so tests
and alternative back-ends can substitute their own.

``FileSystemStore`` resolves paths against a project root and:

    1. Writes files atomically (write-to-temp then ``os.replace``).
    2. Creates parent directories on demand.
    3. Records every write as a ``FileRecord`` with a checksum.
    4. In dry-run mode, logs what it would write and touches nothing.

Concurrent runs against the same project are not coordinated; the last
writer wins for any one path.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Protocol, Union

from apiscaffold.utils import count_lines

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiscaffold.stores")

PathLike = Union[str, Path]


class DocumentStore(Protocol):
    """Minimal document-store capability."""

    def exists(self, path: PathLike) -> bool:
        ...

    def is_dir(self, path: PathLike) -> bool:
        ...

    def read(self, path: PathLike) -> str:
        ...

    def write(self, path: PathLike, content: str) -> None:
        ...

    def append(self, path: PathLike, content: str) -> None:
        ...

    def make_dirs(self, path: PathLike) -> None:
        ...

    def list_files(self, directory: PathLike, pattern: str = "*") -> List[str]:
        ...


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Immutable record of a single written file."""

    relative_path: str
    size_bytes: int
    line_count: int
    sha256: str
    dry_run: bool = False


def sha256_hex(content: str) -> str:
    """Return SHA-256 hex digest of a string. O(n)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class FileSystemStore:
    """
    ``DocumentStore`` over a directory tree.

    Relative paths are resolved against *root*; absolute paths are used
    as-is.  ``list_files`` returns root-relative POSIX paths in sorted order.
    """

    def __init__(
        self,
        root: PathLike,
        *,
        atomic_writes: bool = True,
        dry_run: bool = False,
    ) -> None:
        self.root: Path = Path(root)
        self.atomic_writes: bool = atomic_writes
        self.dry_run: bool = dry_run
        self.records: List[FileRecord] = []

    # -- path helpers -------------------------------------------------------

    def resolve(self, path: PathLike) -> Path:
        candidate: Path = Path(path)
        return candidate if candidate.is_absolute() else self.root / candidate

    def relative(self, path: PathLike) -> str:
        full: Path = self.resolve(path)
        try:
            return full.relative_to(self.root).as_posix()
        except ValueError:
            return full.as_posix()

    # -- reads --------------------------------------------------------------

    def exists(self, path: PathLike) -> bool:
        return self.resolve(path).exists()

    def is_dir(self, path: PathLike) -> bool:
        return self.resolve(path).is_dir()

    def read(self, path: PathLike) -> str:
        return self.resolve(path).read_text(encoding="utf-8")

    def list_files(self, directory: PathLike, pattern: str = "*") -> List[str]:
        base: Path = self.resolve(directory)
        if not base.is_dir():
            return []
        return sorted(
            self.relative(p) for p in base.glob(pattern) if p.is_file()
        )

    # -- writes -------------------------------------------------------------

    def make_dirs(self, path: PathLike) -> None:
        if self.dry_run:
            logger.debug("[dry-run] Would create directory: %s", self.relative(path))
            return
        self.resolve(path).mkdir(parents=True, exist_ok=True)
        logger.debug("Ensured directory exists: %s", self.relative(path))

    def write(self, path: PathLike, content: str) -> None:
        """Create or overwrite *path* with *content*."""
        full: Path = self.resolve(path)
        record: FileRecord = self._record(path, content)
        if self.dry_run:
            logger.info("[dry-run] Would write %s (%d bytes).", record.relative_path, record.size_bytes)
            return
        full.parent.mkdir(parents=True, exist_ok=True)
        encoded: bytes = content.encode("utf-8")
        if self.atomic_writes:
            self._atomic_write(full, encoded)
        else:
            full.write_bytes(encoded)
        logger.debug(
            "Wrote file: %s (%d bytes, %d lines).",
            record.relative_path,
            record.size_bytes,
            record.line_count,
        )

    def append(self, path: PathLike, content: str) -> None:
        """Append *content* to *path*, creating it when missing."""
        existing: str = self.read(path) if self.exists(path) else ""
        self.write(path, existing + content)

    def _record(self, path: PathLike, content: str) -> FileRecord:
        record: FileRecord = FileRecord(
            relative_path=self.relative(path),
            size_bytes=len(content.encode("utf-8")),
            line_count=count_lines(content),
            sha256=sha256_hex(content),
            dry_run=self.dry_run,
        )
        self.records.append(record)
        return record

    @staticmethod
    def _atomic_write(target_path: Path, data: bytes) -> None:
        """
        Write data to target_path atomically using a temporary file.

        The temp file is created in the target's directory so that
        ``os.replace`` never crosses a filesystem boundary.
        """
        fd: int = -1
        tmp_path: str = ""
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=str(target_path.parent),
                prefix=f".{target_path.name}.",
                suffix=".tmp",
            )
            os.write(fd, data)
            os.fsync(fd)
            os.close(fd)
            fd = -1

            os.replace(tmp_path, str(target_path))

        except OSError as exc:
            if fd >= 0:
                try:
                    os.close(fd)
                except OSError:
                    pass
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
            logger.warning(
                "Atomic write of %s failed (%s); writing directly.", target_path, exc
            )
            target_path.write_bytes(data)

    def __repr__(self) -> str:
        mode: str = " dry-run" if self.dry_run else ""
        return f"<FileSystemStore {self.root}{mode}>"


__all__: List[str] = [
    "PathLike",
    "DocumentStore",
    "FileRecord",
    "FileSystemStore",
    "sha256_hex",
]
