"""Age-gated refresh of the locally cached raw template."""
from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

import structlog

from scaffold.errors import FetchError, FilesystemError, ScaffoldError
from scaffold.fetch.descriptor import TemplateDescriptor
from scaffold.fetch.fetcher import fetch
from scaffold.fetch.session import FetchSession
from scaffold.observability.metrics import MetricsRegistry

LOGGER = structlog.get_logger(__name__)


class RefreshStatus(str, Enum):
    SKIPPED = "skipped"
    FETCHED = "fetched"
    FAILED = "failed"


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of :func:`ensure_fresh`; failures are reported, not raised."""

    status: RefreshStatus
    path: Path
    age: Optional[timedelta] = None
    error: Optional[ScaffoldError] = None

    @property
    def ok(self) -> bool:
        return self.status is not RefreshStatus.FAILED

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self.status.value,
            "path": str(self.path),
            "age_seconds": int(self.age.total_seconds()) if self.age is not None else None,
            "error": str(self.error) if self.error is not None else None,
        }


def file_age(path: Path, *, now: Optional[float] = None) -> Optional[timedelta]:
    """Return time since ``path`` was last modified, truncated to seconds.

    Returns ``None`` when the file cannot be inspected.
    """
    try:
        modified = path.stat().st_mtime
    except FileNotFoundError:
        return None
    except OSError as exc:
        LOGGER.error("stat_failed", path=str(path), error=str(exc))
        return None
    current = time.time() if now is None else now
    age = timedelta(seconds=max(0, int(current - modified)))
    LOGGER.debug("duration_since_modified", path=str(path), seconds=int(age.total_seconds()))
    return age


def ensure_fresh(
    descriptor: TemplateDescriptor,
    max_age: timedelta,
    *,
    session: FetchSession,
    metrics: Optional[MetricsRegistry] = None,
) -> RefreshResult:
    """Fetch the raw template unless a copy younger than ``max_age`` exists.

    A ``max_age`` of zero disables caching, so every call downloads again. A
    stale copy is replaced by the new download.
    """
    path = descriptor.raw_path
    age = file_age(path)
    if age is not None and age < max_age:
        LOGGER.debug(
            "fetch_skipped_fresh",
            url=descriptor.remote_url,
            path=str(path),
            age_seconds=int(age.total_seconds()),
            max_age_seconds=int(max_age.total_seconds()),
        )
        if metrics is not None:
            metrics.incr("cache_hits")
        return RefreshResult(status=RefreshStatus.SKIPPED, path=path, age=age)

    if metrics is not None:
        metrics.incr("cache_misses")
    LOGGER.debug("fetch_started", url=descriptor.remote_url, path=str(path))
    try:
        fetch(
            descriptor.remote_url,
            path,
            session=session,
            overwrite=age is not None,
            metrics=metrics,
        )
    except (FetchError, FilesystemError) as exc:
        if metrics is not None:
            metrics.incr("fetch_failures")
        LOGGER.error(
            "fetch_failed",
            url=descriptor.remote_url,
            path=str(path),
            error=str(exc),
        )
        return RefreshResult(status=RefreshStatus.FAILED, path=path, age=age, error=exc)
    return RefreshResult(status=RefreshStatus.FETCHED, path=path, age=timedelta(0))
