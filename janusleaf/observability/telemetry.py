"""
In-process telemetry for the enrichment workers.

Nothing is shipped to an external backend: events become structured log lines
and counters live in memory, which lets tests assert that the queue and the
quote scheduler report rate limits, failures and exhaustion.
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Iterator
from threading import Lock
from typing import Any

logger = logging.getLogger("janusleaf.telemetry")

_COUNTERS: dict[str, int] = {}
_LOCK = Lock()


def log_event(event_name: str, **fields: Any) -> None:
    """
    Structured log event. Callers pass ids, never journal text.

    Side Effects:
        - Writes to logger (info level)
    """
    logger.info("event=%s %s", event_name, fields)


def counter(name: str, increment: int = 1) -> int:
    """
    Increment an in-memory counter and emit a debug log.

    Side Effects:
        - Modifies _COUNTERS (guarded by a lock, tickers run on their own threads)
        - Writes to logger (debug level)
    """
    with _LOCK:
        value = _COUNTERS.get(name, 0) + increment
        _COUNTERS[name] = value
    logger.debug("counter=%s value=%s", name, value)
    return value


def get_counter(name: str) -> int:
    return _COUNTERS.get(name, 0)


def reset() -> None:
    """Clear all counters (test helper)."""
    with _LOCK:
        _COUNTERS.clear()


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """Log how long the wrapped block took, in milliseconds."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("timing=%s ms=%.1f", metric_name, elapsed_ms)
