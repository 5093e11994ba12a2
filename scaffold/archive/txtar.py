"""Parser and formatter for txtar text archives.

A txtar archive is an optional free-form comment followed by zero or more
files. Each file starts with a marker line of the form ``-- NAME --`` and its
content runs until the next marker line or the end of the input.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from scaffold.errors import ParseError

_MARKER = b"-- "
_MARKER_END = b" --"
_NEWLINE_MARKER = b"\n-- "


@dataclass(frozen=True, slots=True)
class ArchiveFile:
    """A single named entry inside an archive."""

    name: str
    data: bytes


@dataclass(frozen=True, slots=True)
class Archive:
    """Ordered entries parsed from one txtar file."""

    files: Tuple[ArchiveFile, ...]
    comment: bytes = b""

    @property
    def names(self) -> List[str]:
        return [entry.name for entry in self.files]


def _fix_newline(data: bytes) -> bytes:
    if not data or data.endswith(b"\n"):
        return data
    return data + b"\n"


def _marker_at(data: bytes, start: int) -> Tuple[Optional[bytes], int]:
    """Return the marker name starting at ``start`` and the offset after its line."""
    if not data.startswith(_MARKER, start):
        return None, start
    newline = data.find(b"\n", start)
    if newline < 0:
        line, after = data[start:], len(data)
    else:
        line, after = data[start:newline], newline + 1
    if len(line) < len(_MARKER) + len(_MARKER_END) or not line.endswith(_MARKER_END):
        return None, start
    name = line[len(_MARKER) : len(line) - len(_MARKER_END)].strip()
    if not name:
        return None, start
    return name, after


def _next_marker(data: bytes, start: int) -> Tuple[int, Optional[bytes], int]:
    """Find the first marker line at or after ``start``.

    Returns the offset where the marker line begins, its name and the offset of
    the first byte after it. When no marker remains the name is ``None`` and
    both offsets point at the end of ``data``.
    """
    position = start
    while True:
        name, after = _marker_at(data, position)
        if name is not None:
            return position, name, after
        found = data.find(_NEWLINE_MARKER, position)
        if found < 0:
            return len(data), None, len(data)
        position = found + 1


def parse(data: bytes, *, source: Optional[Path] = None) -> Archive:
    """Parse txtar bytes into an :class:`Archive`.

    Raises :class:`ParseError` when the input holds no file markers or when an
    entry name is not valid UTF-8.
    """
    end, name, after = _next_marker(data, 0)
    if name is None:
        raise ParseError(source, "no file markers found")
    comment = data[:end]

    files: List[ArchiveFile] = []
    while name is not None:
        try:
            decoded = name.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(source, f"entry name is not valid UTF-8: {name!r}") from exc
        end, next_name, next_after = _next_marker(data, after)
        files.append(ArchiveFile(name=decoded, data=_fix_newline(data[after:end])))
        name, after = next_name, next_after
    return Archive(files=tuple(files), comment=comment)


def parse_file(path: Path) -> Archive:
    """Read and parse the archive stored at ``path``."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ParseError(path, exc.strerror or str(exc)) from exc
    return parse(data, source=path)


def format_archive(archive: Archive) -> bytes:
    """Serialise an archive back into txtar bytes."""
    chunks = [_fix_newline(archive.comment)]
    for entry in archive.files:
        chunks.append(_MARKER + entry.name.encode("utf-8") + _MARKER_END + b"\n")
        chunks.append(_fix_newline(entry.data))
    return b"".join(chunks)
