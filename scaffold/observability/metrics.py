"""Run counters for template downloads, cache decisions and extraction."""
from __future__ import annotations

import contextlib
import json
import time
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterator

import structlog

LOGGER = structlog.get_logger(__name__)


class MetricsRegistry:
    """Counters for one CLI run, exported with ``--metrics``.

    The fetch side counts downloads, skips, cache hits and misses, and bytes;
    the archive side counts parsed entries, written files and aborted runs.
    """

    def __init__(self) -> None:
        self._counters: Dict[str, int] = defaultdict(int)
        self._register_defaults()

    def _register_defaults(self) -> None:
        defaults = [
            "fetch_requests",
            "fetch_skips",
            "cache_hits",
            "cache_misses",
            "fetch_failures",
            "bytes_downloaded",
            "entries_parsed",
            "files_written",
            "extract_aborts",
            "extract_duration_ms",
        ]
        for key in defaults:
            self._counters[key] = 0

    def incr(self, name: str, value: int = 1) -> None:
        """Add ``value`` to ``name``; unknown names start at zero."""
        self._counters[name] += value

    def get(self, name: str) -> int:
        """Return the count for ``name``, or zero if it was never touched."""
        return self._counters.get(name, 0)

    def snapshot(self) -> Dict[str, int]:
        """Return a copy of every counter keyed by name."""
        return dict(self._counters)

    def export(self, *, path: Path, run_id: str) -> Path:
        """Write ``{run_id, counters, generated_at}`` as JSON to ``path``."""
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "run_id": run_id,
            "counters": self.snapshot(),
            "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return path


@contextlib.contextmanager
def record_duration(registry: MetricsRegistry, metric_name: str) -> Iterator[None]:
    """Add the block's wall time in milliseconds to ``metric_name``, e.g. ``extract_duration_ms``."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        registry.incr(metric_name, elapsed_ms)
        LOGGER.info("duration_recorded", metric=metric_name, duration_ms=elapsed_ms)
