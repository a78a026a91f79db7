"""
Enrichment Queue - debounced, retryable mood analysis.

Orchestrates between:
- MoodQueueRepository (pending jobs, one per entry)
- JournalEntryRepository (score write-back)
- AIGateway (mood scoring, with fallback on rate limit)

Every body edit pushes the entry's job ``debounce_delay`` into the future, so
a burst of edits produces one AI call with the last body. The mood ticker
calls ``drain_ready`` which claims and processes a single job per call; with
a fixed tick rate this caps upstream traffic, at the price of a backlog that
can grow under sustained load.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from janusleaf.config import Settings
from janusleaf.enrichment.models import EnrichmentJob
from janusleaf.enrichment.repository import MoodQueueRepository
from janusleaf.infrastructure.database import Database
from janusleaf.journal.repository import JournalEntryRepository
from janusleaf.llm.gateway import AIGateway, Failed, MoodResult, MoodScored, RateLimited
from janusleaf.observability.logging import get_logger
from janusleaf.observability.telemetry import counter, log_event
from janusleaf.utils.clock import Clock, utc_now

logger = get_logger(__name__)


@dataclass(frozen=True)
class DrainOutcome:
    """What happened to the job processed by one drain_ready call."""

    entry_id: str
    status: str  # scored | rescheduled | exhausted | superseded
    score: int | None = None
    retry_count: int = 0
    scheduled_for: datetime | None = None


class EnrichmentQueue:
    """Persistent mood analysis queue driven by a periodic ticker."""

    def __init__(
        self,
        db: Database,
        jobs: MoodQueueRepository,
        entries: JournalEntryRepository,
        gateway: AIGateway,
        settings: Settings,
        clock: Clock = utc_now,
    ):
        self.db = db
        self.jobs = jobs
        self.entries = entries
        self.gateway = gateway
        self.clock = clock
        self.debounce_delay = timedelta(milliseconds=settings.mood_debounce_delay_ms)
        self.backoff_base = timedelta(milliseconds=settings.mood_backoff_base_ms)
        self.max_retries = settings.mood_max_retries
        self.min_body_length = settings.mood_min_body_length
        self.claim_timeout = timedelta(seconds=settings.mood_claim_timeout_seconds)

    def enqueue(self, entry_id: str, body: str) -> None:
        """
        Queue (or re-debounce) mood analysis for an entry.

        Bodies shorter than the minimum length are never analysed; any job
        left over from a longer body is removed instead.

        Side Effects:
            - Upserts or deletes the entry's row in mood_analysis_queue
        """
        if len(body) < self.min_body_length:
            if self.jobs.delete_by_entry(entry_id):
                logger.debug("Removed pending mood analysis for %s: body now too short", entry_id)
            else:
                logger.debug(
                    "Skipping mood analysis for %s: body too short (%d chars)", entry_id, len(body)
                )
            return

        now = self.clock()
        scheduled_for = now + self.debounce_delay
        debounced = self.jobs.upsert(entry_id, body, scheduled_for, now)

        if debounced:
            logger.debug("Rescheduled mood analysis for %s to %s", entry_id, scheduled_for)
        else:
            logger.debug("Queued mood analysis for %s at %s", entry_id, scheduled_for)

    def cancel(self, entry_id: str) -> bool:
        """Drop the entry's pending job, if any."""
        return self.jobs.delete_by_entry(entry_id)

    def drain_ready(self, now: datetime | None = None) -> DrainOutcome | None:
        """
        Claim and process at most one due job.

        Returns:
            Outcome for the processed job, or None if nothing was due (or no
            API key is configured)
        """
        if not self.gateway.is_configured:
            logger.debug("No AI API key configured, skipping mood analysis")
            return None

        now = now or self.clock()
        ready = self.jobs.count_ready(now)
        if ready == 0:
            return None
        if ready > 1:
            logger.info("Mood queue backlog: %d due jobs, processing one this tick", ready)

        job = self.jobs.claim_next(now, lease_until=now + self.claim_timeout)
        if job is None:
            # Another worker holds every due job
            return None

        return self._process(job, now)

    def _process(self, job: EnrichmentJob, now: datetime) -> DrainOutcome:
        result = self._analyze(job)

        if isinstance(result, MoodScored):
            return self._record_score(job, result)

        if isinstance(result, RateLimited):
            counter("mood.rate_limited")
            delay = self.backoff_base * (2 ** job.retry_count)
            return self._retry_later(job, now, delay, reason="rate limited")

        counter("mood.failed")
        delay = self.debounce_delay * (job.retry_count + 2)
        return self._retry_later(job, now, delay, reason=result.reason)

    def _analyze(self, job: EnrichmentJob) -> MoodResult:
        result = self.gateway.analyze_mood(job.body_snapshot)
        if isinstance(result, RateLimited) and self.gateway.fallback_enabled:
            logger.info("Primary provider rate limited, trying fallback for %s", job.journal_entry_id)
            counter("mood.fallback_used")
            fallback_result = self.gateway.analyze_mood(job.body_snapshot, use_fallback=True)
            if isinstance(fallback_result, Failed):
                # The primary's rate limit decides the backoff curve
                return result
            return fallback_result
        return result

    def _record_score(self, job: EnrichmentJob, result: MoodScored) -> DrainOutcome:
        entry_id = job.journal_entry_id
        with self.db.transaction():
            written = self.entries.set_mood_score(entry_id, job.body_snapshot, result.score)
            completed = self.jobs.complete(job)

        if not completed:
            logger.info("Mood job for %s was superseded by a newer edit", entry_id)
            return DrainOutcome(entry_id=entry_id, status="superseded", score=result.score)

        if written:
            counter("mood.scored")
            log_event("mood.scored", entry_id=entry_id, score=result.score, provider=result.provider)
        else:
            logger.debug("Entry %s deleted or changed before its score arrived", entry_id)
        return DrainOutcome(entry_id=entry_id, status="scored", score=result.score)

    def _retry_later(
        self, job: EnrichmentJob, now: datetime, delay: timedelta, reason: str
    ) -> DrainOutcome:
        entry_id = job.journal_entry_id
        retry_count = job.retry_count + 1

        if retry_count >= self.max_retries:
            self.jobs.complete(job)
            counter("mood.exhausted")
            log_event("mood.exhausted", entry_id=entry_id, attempts=retry_count, reason=reason)
            logger.warning(
                "Giving up on mood analysis for %s after %d attempts (%s)",
                entry_id,
                retry_count,
                reason,
            )
            return DrainOutcome(entry_id=entry_id, status="exhausted", retry_count=retry_count)

        scheduled_for = now + delay
        if not self.jobs.reschedule(job, retry_count, scheduled_for, now):
            return DrainOutcome(entry_id=entry_id, status="superseded", retry_count=job.retry_count)

        logger.info(
            "Mood analysis for %s failed (%s), retry %d/%d at %s",
            entry_id,
            reason,
            retry_count,
            self.max_retries,
            scheduled_for,
        )
        return DrainOutcome(
            entry_id=entry_id,
            status="rescheduled",
            retry_count=retry_count,
            scheduled_for=scheduled_for,
        )
