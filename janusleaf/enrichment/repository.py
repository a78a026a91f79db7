"""
Mood Queue Repository - persistence for the mood_analysis_queue table.

Claims are taken with a single conditional UPDATE, so two workers sharing the
database file can never hold the same job. Follow-up writes (complete,
reschedule) are guarded by the claim token; an edit that re-enqueues the
entry clears the token and thereby voids the in-flight worker's writes.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from janusleaf.enrichment.models import EnrichmentJob
from janusleaf.infrastructure.database import Database, retry_on_db_lock
from janusleaf.observability.logging import get_logger
from janusleaf.utils.clock import to_db_timestamp

logger = get_logger(__name__)


class MoodQueueRepository:
    """Repository for mood analysis jobs."""

    def __init__(self, db: Database):
        self.db = db

    def get_by_entry(self, entry_id: str) -> EnrichmentJob | None:
        with self.db.connection() as conn:
            row = conn.execute(
                "SELECT * FROM mood_analysis_queue WHERE journal_entry_id = ?",
                (entry_id,),
            ).fetchone()

        if not row:
            return None
        return EnrichmentJob.from_db_row(dict(row))

    def count(self) -> int:
        with self.db.connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM mood_analysis_queue").fetchone()[0]

    def count_ready(self, now: datetime) -> int:
        with self.db.connection() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM mood_analysis_queue WHERE scheduled_for <= ?",
                (to_db_timestamp(now),),
            ).fetchone()[0]

    @retry_on_db_lock()
    def upsert(self, entry_id: str, body: str, scheduled_for: datetime, now: datetime) -> bool:
        """
        Insert a job for the entry, or overwrite snapshot and schedule of the existing one.

        Any claim on an existing row is released. ``retry_count`` is kept.

        Returns:
            True if a job already existed (debounced), False if inserted

        Side Effects:
            - Inserts or updates one row in mood_analysis_queue
        """
        with self.db.transaction() as conn:
            existed = (
                conn.execute(
                    "SELECT 1 FROM mood_analysis_queue WHERE journal_entry_id = ?",
                    (entry_id,),
                ).fetchone()
                is not None
            )
            conn.execute(
                """
                INSERT INTO mood_analysis_queue (
                    id, journal_entry_id, body_snapshot, scheduled_for, retry_count,
                    claim_token, claimed_until, created_at, updated_at
                ) VALUES (?, ?, ?, ?, 0, NULL, NULL, ?, ?)
                ON CONFLICT(journal_entry_id) DO UPDATE SET
                    body_snapshot = excluded.body_snapshot,
                    scheduled_for = excluded.scheduled_for,
                    claim_token = NULL,
                    claimed_until = NULL,
                    updated_at = excluded.updated_at
                """,
                (
                    str(uuid.uuid4()),
                    entry_id,
                    body,
                    to_db_timestamp(scheduled_for),
                    to_db_timestamp(now),
                    to_db_timestamp(now),
                ),
            )
        return existed

    @retry_on_db_lock()
    def delete_by_entry(self, entry_id: str) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM mood_analysis_queue WHERE journal_entry_id = ?",
                (entry_id,),
            )
            return cursor.rowcount > 0

    @retry_on_db_lock()
    def claim_next(self, now: datetime, lease_until: datetime) -> EnrichmentJob | None:
        """
        Atomically claim the ready job with the earliest scheduled_for.

        A job is ready when it is due and either unclaimed or its lease has
        expired.

        Returns:
            The claimed job (carrying its new claim token), or None
        """
        token = str(uuid.uuid4())
        now_ts = to_db_timestamp(now)

        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE mood_analysis_queue
                SET claim_token = :token, claimed_until = :lease_until
                WHERE id = (
                    SELECT id FROM mood_analysis_queue
                    WHERE scheduled_for <= :now
                      AND (claimed_until IS NULL OR claimed_until <= :now)
                    ORDER BY scheduled_for ASC
                    LIMIT 1
                )
                AND (claimed_until IS NULL OR claimed_until <= :now)
                """,
                {"token": token, "lease_until": to_db_timestamp(lease_until), "now": now_ts},
            )
            if cursor.rowcount != 1:
                return None

            row = conn.execute(
                "SELECT * FROM mood_analysis_queue WHERE claim_token = ?",
                (token,),
            ).fetchone()

        return EnrichmentJob.from_db_row(dict(row))

    @retry_on_db_lock()
    def complete(self, job: EnrichmentJob) -> bool:
        """Delete a claimed job; no-op if its claim was voided by a newer edit."""
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM mood_analysis_queue WHERE id = ? AND claim_token = ?",
                (job.id, job.claim_token),
            )
            return cursor.rowcount == 1

    @retry_on_db_lock()
    def reschedule(
        self,
        job: EnrichmentJob,
        retry_count: int,
        scheduled_for: datetime,
        now: datetime,
    ) -> bool:
        """Release the claim and push the job back with a new retry count."""
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE mood_analysis_queue
                SET retry_count = ?, scheduled_for = ?, claim_token = NULL,
                    claimed_until = NULL, updated_at = ?
                WHERE id = ? AND claim_token = ?
                """,
                (
                    retry_count,
                    to_db_timestamp(scheduled_for),
                    to_db_timestamp(now),
                    job.id,
                    job.claim_token,
                ),
            )
            return cursor.rowcount == 1
