"""
Quote Repository - persistence for the inspirational_quotes table.
"""

from __future__ import annotations

import json
from datetime import datetime

from janusleaf.infrastructure.database import Database, retry_on_db_lock
from janusleaf.inspiration.models import InspirationalQuote
from janusleaf.observability.logging import get_logger
from janusleaf.utils.clock import to_db_timestamp

logger = get_logger(__name__)


class QuoteRepository:
    """Repository for per-user inspirational quotes."""

    def __init__(self, db: Database):
        self.db = db

    def get_by_user(self, user_id: str) -> InspirationalQuote | None:
        with self.db.connection() as conn:
            row = conn.execute(
                "SELECT * FROM inspirational_quotes WHERE user_id = ?",
                (user_id,),
            ).fetchone()

        if not row:
            return None
        return InspirationalQuote.from_db_row(dict(row))

    @retry_on_db_lock()
    def insert(self, quote: InspirationalQuote) -> bool:
        """
        Insert the user's first quote.

        Returns:
            False if another worker created the user's quote first
        """
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO inspirational_quotes (
                    id, user_id, quote, tags, needs_regeneration,
                    last_generated_at, created_at, updated_at
                ) VALUES (
                    :id, :user_id, :quote, :tags, :needs_regeneration,
                    :last_generated_at, :created_at, :updated_at
                )
                ON CONFLICT(user_id) DO NOTHING
                """,
                quote.to_db_dict(),
            )
            return cursor.rowcount == 1

    @retry_on_db_lock()
    def mark_for_regeneration(self, user_id: str, now: datetime) -> bool:
        """Flag the user's quote dirty; no-op when the user has none yet."""
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE inspirational_quotes
                SET needs_regeneration = 1, updated_at = ?
                WHERE user_id = ?
                """,
                (to_db_timestamp(now), user_id),
            )
            return cursor.rowcount == 1

    def first_user_without_quote(self) -> str | None:
        """User with at least one entry and no quote, earliest first entry first."""
        with self.db.connection() as conn:
            row = conn.execute(
                """
                SELECT je.user_id
                FROM journal_entries je
                WHERE NOT EXISTS (
                    SELECT 1 FROM inspirational_quotes q WHERE q.user_id = je.user_id
                )
                GROUP BY je.user_id
                ORDER BY MIN(je.created_at) ASC, je.user_id ASC
                LIMIT 1
                """
            ).fetchone()

        return row[0] if row else None

    def next_regeneration_candidate(self, stale_before: datetime) -> InspirationalQuote | None:
        """Oldest quote that is flagged dirty or was generated before ``stale_before``."""
        with self.db.connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM inspirational_quotes
                WHERE needs_regeneration = 1 OR last_generated_at < ?
                ORDER BY last_generated_at ASC, id ASC
                LIMIT 1
                """,
                (to_db_timestamp(stale_before),),
            ).fetchone()

        if not row:
            return None
        return InspirationalQuote.from_db_row(dict(row))

    @retry_on_db_lock()
    def update_generated(
        self,
        existing: InspirationalQuote,
        quote: str,
        tags: list[str],
        now: datetime,
    ) -> bool:
        """
        Overwrite quote text and tags after a regeneration.

        The dirty flag is cleared only if the row was not flagged again while
        the new quote was being generated.
        """
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE inspirational_quotes
                SET quote = :quote,
                    tags = :tags,
                    last_generated_at = :now,
                    needs_regeneration = CASE
                        WHEN updated_at = :seen_updated_at THEN 0
                        ELSE needs_regeneration
                    END,
                    updated_at = :now
                WHERE id = :id
                """,
                {
                    "quote": quote,
                    "tags": json.dumps(tags),
                    "now": to_db_timestamp(now),
                    "seen_updated_at": to_db_timestamp(existing.updated_at),
                    "id": existing.id,
                },
            )
            return cursor.rowcount == 1
