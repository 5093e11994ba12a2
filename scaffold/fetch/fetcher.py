"""Idempotent download of a remote resource into a local directory."""
from __future__ import annotations

import os
import tempfile
import time
from pathlib import Path
from typing import BinaryIO, Optional

import httpx
import structlog

from scaffold.errors import FetchError, FilesystemError
from scaffold.fetch.descriptor import url_basename
from scaffold.fetch.session import FetchSession
from scaffold.observability.metrics import MetricsRegistry
from scaffold.observability.tracing import log_fetch_result, span

LOGGER = structlog.get_logger(__name__)


def destination_for(url: str, local_path: Path) -> Path:
    """Return the file ``fetch`` writes: the URL's base name beside ``local_path``."""
    name = url_basename(url)
    if not name:
        raise FetchError(url, "URL path has no file name")
    return local_path.parent / name


def ensure_directory(directory: Path) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemError(directory, exc.strerror or str(exc)) from exc


def _default_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def _copy_body(session: FetchSession, url: str, handle: BinaryIO) -> int:
    written = 0
    try:
        with span(name="fetch", url=url):
            with session.stream(url) as chunks:
                for chunk in chunks:
                    handle.write(chunk)
                    written += len(chunk)
    except httpx.HTTPStatusError as exc:
        raise FetchError(url, f"server responded with HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise FetchError(url, str(exc) or type(exc).__name__) from exc
    except OSError as exc:
        raise FilesystemError(Path(handle.name), exc.strerror or str(exc)) from exc
    return written


def fetch(
    url: str,
    local_path: Path,
    *,
    session: FetchSession,
    overwrite: bool = False,
    metrics: Optional[MetricsRegistry] = None,
) -> Path:
    """Download ``url`` next to ``local_path`` unless the file is already there.

    The body is streamed into a temporary sibling and moved into place only
    once the transfer completes, so a failed download leaves nothing behind.
    With ``overwrite`` the existing file is replaced instead of kept.
    """
    target = destination_for(url, local_path)
    ensure_directory(target.parent)

    if target.exists() and not overwrite:
        LOGGER.debug("file_exists_not_refetching", path=str(target.resolve()))
        if metrics is not None:
            metrics.incr("fetch_skips")
        return target

    if metrics is not None:
        metrics.incr("fetch_requests")
    try:
        handle = tempfile.NamedTemporaryFile(
            dir=target.parent,
            prefix=f".{target.name}.",
            suffix=".part",
            delete=False,
        )
    except OSError as exc:
        raise FilesystemError(target.parent, exc.strerror or str(exc)) from exc

    partial = Path(handle.name)
    start = time.perf_counter()
    try:
        with handle:
            written = _copy_body(session, url, handle)
        try:
            # NamedTemporaryFile creates 0600; give the cached copy a regular file mode.
            os.chmod(partial, _default_file_mode())
            os.replace(partial, target)
        except OSError as exc:
            raise FilesystemError(target, exc.strerror or str(exc)) from exc
    except BaseException:
        partial.unlink(missing_ok=True)
        raise

    if metrics is not None:
        metrics.incr("bytes_downloaded", written)
    log_fetch_result(
        url=url,
        path=str(target.resolve()),
        bytes_written=written,
        elapsed_ms=int((time.perf_counter() - start) * 1000),
    )
    return target
