"""Factories for blocking httpx-backed fetch sessions."""
from __future__ import annotations

import contextlib
from pathlib import Path
from typing import Iterator, Optional
from urllib.parse import urlparse

import httpx

from scaffold.errors import FetchError

CHUNK_SIZE = 64 * 1024


class FetchSession:
    """Streams remote bodies over httpx, reading ``file://`` URLs from disk."""

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    @contextlib.contextmanager
    def stream(self, url: str) -> Iterator[Iterator[bytes]]:
        """Yield an iterator over the response body of a single GET."""
        parsed = urlparse(url)
        if parsed.scheme == "file":
            location = (parsed.netloc + parsed.path) or parsed.path
            target = Path(location)
            if not target.is_absolute():
                target = Path.cwd() / target
            try:
                handle = target.open("rb")
            except OSError as exc:
                raise FetchError(url, exc.strerror or str(exc)) from exc
            with handle:
                yield iter(lambda: handle.read(CHUNK_SIZE), b"")
            return
        with self._client.stream("GET", url) as response:
            response.raise_for_status()
            yield response.iter_bytes(CHUNK_SIZE)


@contextlib.contextmanager
def create_fetch_session(
    *,
    user_agent: str,
    timeout: float,
    transport: Optional[httpx.BaseTransport] = None,
) -> Iterator[FetchSession]:
    """Yield a configured `FetchSession` for the duration of the context."""
    headers = {"User-Agent": user_agent}
    with httpx.Client(
        headers=headers,
        timeout=timeout,
        follow_redirects=True,
        transport=transport,
    ) as client:
        yield FetchSession(client)
