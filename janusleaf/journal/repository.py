"""
Journal Repository - SQL access for the journal_entries table.

All writes are single statements whose effect is checked through
``cursor.rowcount``; version checks happen inside the UPDATE itself.
"""

from __future__ import annotations

from datetime import date, datetime

from janusleaf.infrastructure.database import Database, retry_on_db_lock
from janusleaf.journal.models import JournalEntry
from janusleaf.observability.logging import get_logger
from janusleaf.utils.clock import to_db_timestamp

logger = get_logger(__name__)

# Whitespace set used to detect blank bodies in SQL
_BLANK_CHARS = "' ' || char(9) || char(10) || char(13)"


class JournalEntryRepository:
    """Repository for journal entry reads and version-checked writes."""

    def __init__(self, db: Database):
        self.db = db

    @retry_on_db_lock()
    def insert(self, entry: JournalEntry) -> JournalEntry:
        """
        Insert a new entry.

        Side Effects:
            - Inserts row into journal_entries
        """
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO journal_entries (
                    id, user_id, title, body, mood_score, entry_date,
                    version, created_at, updated_at
                ) VALUES (
                    :id, :user_id, :title, :body, :mood_score, :entry_date,
                    :version, :created_at, :updated_at
                )
                """,
                entry.to_db_dict(),
            )
        return entry

    def get_owned(self, user_id: str, entry_id: str) -> JournalEntry | None:
        """Entry by id, or None when it does not exist or has another owner."""
        with self.db.connection() as conn:
            row = conn.execute(
                "SELECT * FROM journal_entries WHERE id = ? AND user_id = ?",
                (entry_id, user_id),
            ).fetchone()

        if not row:
            return None
        return JournalEntry.from_db_row(dict(row))

    @retry_on_db_lock()
    def compare_and_set_body(
        self,
        user_id: str,
        entry_id: str,
        body: str,
        expected_version: int | None,
        now: datetime,
    ) -> bool:
        """
        Replace the body, clear the mood score and bump the version.

        With ``expected_version`` the update only applies if the stored
        version still matches.

        Returns:
            True if a row was updated
        """
        sql = """
            UPDATE journal_entries
            SET body = ?, mood_score = NULL, version = version + 1, updated_at = ?
            WHERE id = ? AND user_id = ?
        """
        params: list[object] = [body, to_db_timestamp(now), entry_id, user_id]
        if expected_version is not None:
            sql += " AND version = ?"
            params.append(expected_version)

        with self.db.transaction() as conn:
            cursor = conn.execute(sql, params)
            return cursor.rowcount == 1

    @retry_on_db_lock()
    def update_title(self, user_id: str, entry_id: str, title: str, now: datetime) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE journal_entries
                SET title = ?, version = version + 1, updated_at = ?
                WHERE id = ? AND user_id = ?
                """,
                (title, to_db_timestamp(now), entry_id, user_id),
            )
            return cursor.rowcount == 1

    @retry_on_db_lock()
    def set_mood_score(self, entry_id: str, body: str, score: int) -> bool:
        """
        Store an analysed score, if the entry still holds the analysed body.

        Does not bump ``version``: the score is derived data, not a user edit.

        Returns:
            False when the entry was deleted or its body changed meanwhile
        """
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "UPDATE journal_entries SET mood_score = ? WHERE id = ? AND body = ?",
                (score, entry_id, body),
            )
            return cursor.rowcount == 1

    @retry_on_db_lock()
    def delete(self, user_id: str, entry_id: str) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM journal_entries WHERE id = ? AND user_id = ?",
                (entry_id, user_id),
            )
            return cursor.rowcount == 1

    def list_page(self, user_id: str, limit: int, offset: int) -> tuple[list[JournalEntry], int]:
        """
        Page of a user's entries, newest entry_date first.

        Returns:
            (entries, total count)
        """
        with self.db.connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM journal_entries
                WHERE user_id = ?
                ORDER BY entry_date DESC, created_at DESC
                LIMIT ? OFFSET ?
                """,
                (user_id, limit, offset),
            ).fetchall()
            total = conn.execute(
                "SELECT COUNT(*) FROM journal_entries WHERE user_id = ?",
                (user_id,),
            ).fetchone()[0]

        return [JournalEntry.from_db_row(dict(row)) for row in rows], total

    def list_between(self, user_id: str, start: date, end: date) -> list[JournalEntry]:
        with self.db.connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM journal_entries
                WHERE user_id = ? AND entry_date BETWEEN ? AND ?
                ORDER BY entry_date DESC, created_at DESC
                """,
                (user_id, start.isoformat(), end.isoformat()),
            ).fetchall()

        return [JournalEntry.from_db_row(dict(row)) for row in rows]

    def recent_with_content(self, user_id: str, limit: int) -> list[JournalEntry]:
        """Most recent entries whose body is not blank."""
        with self.db.connection() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM journal_entries
                WHERE user_id = ? AND TRIM(body, {_BLANK_CHARS}) != ''
                ORDER BY entry_date DESC, created_at DESC
                LIMIT ?
                """,
                (user_id, limit),
            ).fetchall()

        return [JournalEntry.from_db_row(dict(row)) for row in rows]
