"""
Database schema initialization for JanusLeaf.

Contains the SQL schema and the validation used by the health check.
"""

from __future__ import annotations

import sqlite3

from janusleaf.observability.logging import get_logger

logger = get_logger(__name__)


def init_database(conn: sqlite3.Connection) -> None:
    """
    Initialize database with schema (idempotent)

    Safe to run multiple times - uses CREATE TABLE IF NOT EXISTS.

    Side Effects:
    - Creates tables and indexes if they don't exist
    """
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS journal_entries (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            body TEXT NOT NULL DEFAULT '',
            mood_score INTEGER CHECK (mood_score IS NULL OR (mood_score >= 1 AND mood_score <= 10)),
            entry_date TEXT NOT NULL,
            version INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_journal_entries_user_date
            ON journal_entries(user_id, entry_date DESC, created_at DESC);

        CREATE TABLE IF NOT EXISTS mood_analysis_queue (
            id TEXT PRIMARY KEY,
            journal_entry_id TEXT NOT NULL UNIQUE
                REFERENCES journal_entries(id) ON DELETE CASCADE,
            body_snapshot TEXT NOT NULL,
            scheduled_for TEXT NOT NULL,
            retry_count INTEGER NOT NULL DEFAULT 0,
            claim_token TEXT,
            claimed_until TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_mood_queue_scheduled_for
            ON mood_analysis_queue(scheduled_for);

        CREATE TABLE IF NOT EXISTS inspirational_quotes (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
            quote TEXT NOT NULL,
            tags TEXT NOT NULL,
            needs_regeneration INTEGER NOT NULL DEFAULT 0,
            last_generated_at TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_quotes_regeneration
            ON inspirational_quotes(needs_regeneration, last_generated_at);
    """)
    logger.debug("Schema script applied")


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Validate database has expected schema

    Returns:
        True if valid

    Raises:
        ValueError: If tables or columns are missing
    """
    required_tables = {
        "users": ["id", "email"],
        "journal_entries": ["id", "user_id", "title", "body", "mood_score", "version"],
        "mood_analysis_queue": [
            "id",
            "journal_entry_id",
            "body_snapshot",
            "scheduled_for",
            "retry_count",
            "claim_token",
        ],
        "inspirational_quotes": ["id", "user_id", "quote", "tags", "needs_regeneration"],
    }

    cursor = conn.cursor()
    cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
    existing_tables = {row[0] for row in cursor.fetchall()}

    missing_tables = set(required_tables) - existing_tables
    if missing_tables:
        raise ValueError(f"Database missing tables: {missing_tables}")

    for table, required_cols in required_tables.items():
        # Identifiers cannot be bound as parameters; names come from the dict above
        cursor.execute(f"PRAGMA table_info({table})")
        existing_cols = {row[1] for row in cursor.fetchall()}
        missing_cols = set(required_cols) - existing_cols
        if missing_cols:
            raise ValueError(f"Table {table} missing columns: {missing_cols}")

    return True
