"""Descriptor tying a remote template to its local raw and rendered copies."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import urlparse

DEFAULT_BASE_DIR_NAME = "scaffold"


@dataclass(frozen=True)
class TemplateDescriptor:
    remote_url: str
    raw_path: Path
    rendered_path: Path

    def __post_init__(self) -> None:
        # fetch() writes to the URL's base name, so the raw copy must carry it.
        expected = url_basename(self.remote_url)
        if self.raw_path.name != expected:
            raise ValueError(
                f"raw file name {self.raw_path.name!r} must match the URL file name {expected!r}"
            )

    @property
    def raw_dir(self) -> Path:
        return self.raw_path.parent

    @property
    def rendered_dir(self) -> Path:
        return self.rendered_path.parent


def url_basename(url: str) -> str:
    """Return the final path segment of ``url`` or an empty string."""
    return PurePosixPath(urlparse(url).path).name


def build_descriptor(
    remote_url: str,
    base_dir: Path,
    *,
    raw_filename: Optional[str] = None,
    rendered_filename: Optional[str] = None,
) -> TemplateDescriptor:
    """Build a descriptor whose local paths live directly under ``base_dir``.

    The raw file is named after the URL's base name so that it lines up with the
    path :func:`scaffold.fetch.fetcher.fetch` writes to; any other
    ``raw_filename`` raises ``ValueError``. The rendered file
    defaults to ``<stem>-rendered.txt``.
    """
    raw_name = raw_filename or url_basename(remote_url)
    if not raw_name:
        raise ValueError(f"cannot derive a file name from {remote_url!r}")
    rendered_name = rendered_filename or f"{PurePosixPath(raw_name).stem}-rendered.txt"
    return TemplateDescriptor(
        remote_url=remote_url,
        raw_path=base_dir / raw_name,
        rendered_path=base_dir / rendered_name,
    )
