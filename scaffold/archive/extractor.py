"""All-or-nothing extraction of txtar archives into a directory."""
from __future__ import annotations

import os
from pathlib import Path, PurePosixPath
from typing import List, Optional, Set, Tuple

import structlog

from scaffold.archive.txtar import Archive, ArchiveFile, parse_file
from scaffold.errors import CollisionError, DuplicateEntryError, FilesystemError, ParseError, UnsafeEntryError
from scaffold.observability.metrics import MetricsRegistry

LOGGER = structlog.get_logger(__name__)


def entry_target(destination: Path, name: str) -> Path:
    """Join ``name`` onto ``destination``, refusing names that escape it."""
    if PurePosixPath(name).is_absolute() or Path(name).is_absolute():
        raise UnsafeEntryError(name)
    root = os.path.abspath(destination)
    joined = os.path.normpath(os.path.join(root, name))
    if os.path.commonpath([root, joined]) != root or joined == root:
        raise UnsafeEntryError(name)
    return Path(joined)


def plan_extraction(
    archive: Archive,
    destination: Path,
    *,
    reject_duplicates: bool = False,
) -> List[Tuple[Path, ArchiveFile]]:
    """Check every entry against the destination before anything is written."""
    planned: List[Tuple[Path, ArchiveFile]] = []
    seen: Set[Path] = set()
    for entry in archive.files:
        target = entry_target(destination, entry.name)
        if os.path.lexists(target):
            kind = "directory" if target.is_dir() else "file"
            raise CollisionError(target, kind=kind)
        if target in seen and reject_duplicates:
            raise DuplicateEntryError(target)
        seen.add(target)
        planned.append((target, entry))
    return planned


def _write_entry(target: Path, entry: ArchiveFile, *, truncate: bool) -> None:
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemError(target.parent, exc.strerror or str(exc)) from exc
    # A path's first write must create it, never replace content made since the check.
    mode = "wb" if truncate else "xb"
    try:
        with target.open(mode) as handle:
            handle.write(entry.data)
    except FileExistsError as exc:
        raise CollisionError(target, kind="file") from exc
    except OSError as exc:
        raise FilesystemError(target, exc.strerror or str(exc)) from exc


def extract_archive(
    archive: Archive,
    destination: Path,
    *,
    reject_duplicates: bool = False,
    metrics: Optional[MetricsRegistry] = None,
) -> List[Path]:
    """Write every archive entry under ``destination`` in archive order.

    No file is written when any entry collides with existing content. A
    failure during the write phase stops the loop; entries already written
    stay on disk.
    """
    try:
        planned = plan_extraction(archive, destination, reject_duplicates=reject_duplicates)
    except (CollisionError, UnsafeEntryError) as exc:
        if metrics is not None:
            metrics.incr("extract_aborts")
        LOGGER.warning("extract_collision", destination=str(destination), error=str(exc))
        raise

    written: List[Path] = []
    created: Set[Path] = set()
    for target, entry in planned:
        try:
            _write_entry(target, entry, truncate=target in created)
        except (CollisionError, FilesystemError) as exc:
            if metrics is not None:
                metrics.incr("extract_aborts")
            LOGGER.error("entry_write_failed", path=str(target), error=str(exc))
            raise
        if target not in created:
            created.add(target)
            written.append(target)
        if metrics is not None:
            metrics.incr("files_written")
        LOGGER.debug("entry_written", path=str(target), bytes=len(entry.data))
    return written


def extract(
    archive_path: Path,
    destination: Path,
    *,
    reject_duplicates: bool = False,
    metrics: Optional[MetricsRegistry] = None,
) -> List[Path]:
    """Parse ``archive_path`` and extract it into ``destination``."""
    try:
        archive = parse_file(archive_path)
    except ParseError as exc:
        LOGGER.error("parse_failed", archive=str(archive_path), error=str(exc))
        raise
    if metrics is not None:
        metrics.incr("entries_parsed", len(archive.files))
    return extract_archive(
        archive,
        destination,
        reject_duplicates=reject_duplicates,
        metrics=metrics,
    )


def list_entries(archive_path: Path) -> List[Tuple[str, int]]:
    """Return ``(name, size)`` for each entry of the archive."""
    archive = parse_file(archive_path)
    return [(entry.name, len(entry.data)) for entry in archive.files]
