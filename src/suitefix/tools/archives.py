"""Discovery, extraction and rewriting of generated test suite archives.

Archives follow the ``<project>-<version>-<source>[.<test id>].tar.bz2``
naming convention, e.g. ``Lang-11f-randoop.1.tar.bz2`` or
``Lang-12b-evosuite-branch.tar.bz2`` (test id defaults to ``1``).
"""

from __future__ import annotations

import os
import re
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..errors import ArchiveError

ARCHIVE_RE = re.compile(
    r"^(?P<project>[^-]+)-(?P<version>\d+[bf])-(?P<source>[^.]+)(?:\.(?P<test_id>\d+))?\.tar\.bz2$"
)
BACKUP_SUFFIX = ".bak"


@dataclass(frozen=True, slots=True)
class SuiteArchive:
    """One test suite archive and the identity encoded in its file name."""

    path: Path
    project_id: str
    version_id: str
    source: str
    test_id: str = "1"

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + BACKUP_SUFFIX)

    @classmethod
    def from_path(cls, path: Path) -> "SuiteArchive | None":
        match = ARCHIVE_RE.match(path.name)
        if match is None:
            return None
        return cls(
            path=path,
            project_id=match.group("project"),
            version_id=match.group("version"),
            source=match.group("source"),
            test_id=match.group("test_id") or "1",
        )


def discover_archives(
    suite_dir: Path,
    project_id: str,
    *,
    version_id: str | None = None,
    source: str | None = None,
) -> List[SuiteArchive]:
    """List archives in ``suite_dir`` matching the project and optional filters."""

    if not suite_dir.is_dir():
        raise ArchiveError(f"Suite directory not found: {suite_dir}")
    archives: List[SuiteArchive] = []
    for entry in sorted(suite_dir.iterdir()):
        if not entry.is_file():
            continue
        archive = SuiteArchive.from_path(entry)
        if archive is None or archive.project_id != project_id:
            continue
        if source is not None and archive.source != source:
            continue
        if version_id is not None and archive.version_id != version_id:
            continue
        archives.append(archive)
    return archives


def _safe_members(handle: tarfile.TarFile, destination: Path) -> List[tarfile.TarInfo]:
    root = destination.resolve()
    members = handle.getmembers()
    for member in members:
        if member.issym() or member.islnk():
            raise ArchiveError(f"Refusing to extract link member {member.name}")
        target = (root / member.name).resolve()
        if target != root and root not in target.parents:
            raise ArchiveError(f"Refusing to extract {member.name} outside {root}")
    return members


def extract_archive(archive: SuiteArchive, destination: Path) -> Path:
    """Extract the suite into ``destination`` (created if needed)."""

    destination.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive.path, "r:bz2") as handle:
            handle.extractall(destination, members=_safe_members(handle, destination))
    except (tarfile.TarError, OSError) as error:
        raise ArchiveError(
            f"Cannot extract test suite {archive.name}: {error}",
            suite=archive.name,
        ) from error
    return destination


def write_archive(source_dir: Path, target: Path) -> None:
    """Pack the contents of ``source_dir`` (not the directory itself) into ``target``."""

    partial = target.with_name(target.name + ".partial")
    try:
        with tarfile.open(partial, "w:bz2") as handle:
            for entry in sorted(source_dir.iterdir()):
                handle.add(entry, arcname=entry.name)
        os.replace(partial, target)
    except (tarfile.TarError, OSError) as error:
        if partial.exists():
            partial.unlink()
        raise ArchiveError(f"Cannot write archive {target}: {error}") from error


def replace_archive(archive: SuiteArchive, source_dir: Path) -> Path | None:
    """Back up the pristine archive once, then rewrite it from ``source_dir``.

    Returns the backup path when a backup was created by this call.
    """

    created: Path | None = None
    backup = archive.backup_path
    if not backup.exists():
        try:
            os.replace(archive.path, backup)
        except OSError as error:
            raise ArchiveError(f"Cannot back up {archive.name}: {error}", suite=archive.name) from error
        created = backup
    try:
        write_archive(source_dir, archive.path)
    except ArchiveError as error:
        raise error.with_suite(archive.name)
    return created


__all__ = [
    "ARCHIVE_RE",
    "BACKUP_SUFFIX",
    "SuiteArchive",
    "discover_archives",
    "extract_archive",
    "replace_archive",
    "write_archive",
]
