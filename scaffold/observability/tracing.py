"""Tracing helpers for fetch and extract stages."""
from __future__ import annotations

import contextlib
import time
from typing import Iterator, Optional

import structlog


def _logger() -> structlog.stdlib.BoundLogger:
    return structlog.get_logger("scaffold.trace")


@contextlib.contextmanager
def span(*, name: str, url: Optional[str] = None) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        _logger().debug("trace_span", span=name, url=url, elapsed_ms=elapsed_ms)


def log_fetch_result(*, url: str, path: str, bytes_written: int, elapsed_ms: int) -> None:
    _logger().info(
        "fetch_result",
        url=url,
        path=path,
        bytes=bytes_written,
        elapsed_ms=elapsed_ms,
    )
