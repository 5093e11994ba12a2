"""Error types raised by the fetch cache and archive extractor."""
from __future__ import annotations

from pathlib import Path
from typing import Optional


class ScaffoldError(Exception):
    """Base class for all recoverable scaffold failures."""


class FetchError(ScaffoldError):
    """Network failure or response-body copy failure during a download."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"fetching {url} failed: {reason}")
        self.url = url
        self.reason = reason


class FilesystemError(ScaffoldError):
    """Directory creation or file creation/write failure."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class ArchiveError(ScaffoldError):
    """Base class for archive parsing and extraction failures."""


class ParseError(ArchiveError):
    """Archive file missing or syntactically invalid."""

    def __init__(self, path: Optional[Path], reason: str) -> None:
        location = str(path) if path is not None else "<bytes>"
        super().__init__(f"cannot parse archive {location}: {reason}")
        self.path = path
        self.reason = reason


class CollisionError(ArchiveError):
    """Destination path already occupied by a file or directory."""

    def __init__(self, path: Path, kind: str = "path") -> None:
        super().__init__(f"{kind} {path} exists already, aborting")
        self.path = path
        self.kind = kind


class DuplicateEntryError(CollisionError):
    """Two archive entries resolve to the same destination path."""

    def __init__(self, path: Path) -> None:
        super().__init__(path, kind="duplicate entry")


class UnsafeEntryError(ArchiveError):
    """Archive entry name points outside the destination directory."""

    def __init__(self, name: str) -> None:
        super().__init__(f"unsafe archive entry name {name!r}")
        self.name = name
