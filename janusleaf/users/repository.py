"""
User Repository - read access to the users table.

Accounts are created by the external auth service; the API only checks that
a verified token names a known user. ``create`` and ``delete`` exist for
provisioning scripts and tests.
"""

from __future__ import annotations

from janusleaf.infrastructure.database import Database, retry_on_db_lock
from janusleaf.utils.clock import to_db_timestamp, utc_now


class UserRepository:
    def __init__(self, db: Database):
        self.db = db

    def exists(self, user_id: str) -> bool:
        with self.db.connection() as conn:
            row = conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone()
        return row is not None

    @retry_on_db_lock()
    def create(self, user_id: str, email: str) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT INTO users (id, email, created_at) VALUES (?, ?, ?)",
                (user_id, email, to_db_timestamp(utc_now())),
            )

    @retry_on_db_lock()
    def delete(self, user_id: str) -> bool:
        """Delete a user; entries, their jobs and the quote go with it (cascade)."""
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cursor.rowcount == 1
