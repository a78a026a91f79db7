"""
Cron-driven background tickers.

Each job kind (mood queue, quote scheduler) gets one daemon thread that
sleeps until the next cron fire time and then runs its job synchronously, so
a slow run delays the next one instead of overlapping it.

Expressions are parsed at construction time with croniter. Six-field
expressions are read seconds-first (``*/3 * * * * *`` = every 3 seconds) and
rotated into croniter's seconds-last form.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime

from croniter import croniter

from janusleaf.observability.logging import get_logger
from janusleaf.observability.telemetry import counter
from janusleaf.utils.clock import Clock, utc_now

logger = get_logger(__name__)


def to_croniter_expression(expression: str) -> str:
    """
    Normalize a 5- or 6-field cron expression for croniter.

    Raises:
        ValueError: If the expression has the wrong shape or does not parse
    """
    fields = expression.split()
    if len(fields) == 6:
        fields = fields[1:] + fields[:1]
    elif len(fields) != 5:
        raise ValueError(f"Cron expression must have 5 or 6 fields: {expression!r}")

    normalized = " ".join(fields)
    if not croniter.is_valid(normalized):
        raise ValueError(f"Invalid cron expression: {expression!r}")
    return normalized


class CronTicker:
    """Runs ``job`` on a cron schedule in a daemon thread."""

    def __init__(
        self,
        name: str,
        expression: str,
        job: Callable[[], object],
        clock: Clock = utc_now,
    ):
        self.name = name
        self.expression = expression
        self._cron = to_croniter_expression(expression)
        self._job = job
        self._clock = clock
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def next_fire_after(self, moment: datetime) -> datetime:
        return croniter(self._cron, moment).get_next(datetime)

    def run_once(self) -> None:
        """Run the job, logging instead of raising so the thread survives."""
        try:
            self._job()
        except Exception as e:
            counter(f"ticker.{self.name}.errors")
            logger.error("Ticker %s job failed: %s", self.name, e, exc_info=True)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=f"ticker-{self.name}", daemon=True)
        self._thread.start()
        logger.info("Ticker %s started (cron %r)", self.name, self.expression)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Ticker %s stopped", self.name)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.is_set():
            now = self._clock()
            wait_seconds = (self.next_fire_after(now) - now).total_seconds()
            if self._stop.wait(max(wait_seconds, 0.0)):
                break
            self.run_once()
