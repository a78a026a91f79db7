"""
Journal Store - the entry of record.

Orchestrates between:
- JournalEntryRepository (version-checked persistence)
- EnrichmentQueue (mood analysis scheduling on body changes)
- QuoteRepository (marks the owner's quote dirty on new entries)

Concurrency is optimistic: ``update_body`` with an ``expected_version`` is a
single compare-and-swap UPDATE; a stale caller gets VersionConflictError and
must re-read. Each write and its queue side effect commit in one transaction.
"""

from __future__ import annotations

import uuid
from datetime import date

from janusleaf.config import (
    API_PAGE_SIZE_MAX,
    JOURNAL_BODY_MAX_LENGTH,
    JOURNAL_TITLE_MAX_LENGTH,
)
from janusleaf.enrichment.queue import EnrichmentQueue
from janusleaf.infrastructure.database import Database, retry_on_db_lock
from janusleaf.inspiration.repository import QuoteRepository
from janusleaf.journal.errors import (
    JournalEntryNotFoundError,
    JournalValidationError,
    VersionConflictError,
)
from janusleaf.journal.models import JournalEntry, JournalPage, default_title
from janusleaf.journal.repository import JournalEntryRepository
from janusleaf.observability.logging import get_logger
from janusleaf.utils.clock import Clock, utc_now

logger = get_logger(__name__)


def _validate_title(title: str) -> None:
    if len(title) > JOURNAL_TITLE_MAX_LENGTH:
        raise JournalValidationError(
            f"Title must be at most {JOURNAL_TITLE_MAX_LENGTH} characters"
        )


def _validate_body(body: str) -> None:
    if len(body) > JOURNAL_BODY_MAX_LENGTH:
        raise JournalValidationError(f"Body must be at most {JOURNAL_BODY_MAX_LENGTH} characters")


class JournalStore:
    """Service layer for journal entry reads and writes."""

    def __init__(
        self,
        db: Database,
        entries: JournalEntryRepository,
        queue: EnrichmentQueue,
        quotes: QuoteRepository,
        clock: Clock = utc_now,
    ):
        self.db = db
        self.entries = entries
        self.queue = queue
        self.quotes = quotes
        self.clock = clock

    @retry_on_db_lock()
    def create(
        self,
        user_id: str,
        title: str | None = None,
        body: str | None = None,
        entry_date: date | None = None,
    ) -> JournalEntry:
        """
        Create an entry at version 0.

        Title and body are stripped; a blank title falls back to the entry
        date. A non-empty body is queued for mood analysis.

        Side Effects:
            - Inserts into journal_entries
            - Marks the owner's quote for regeneration (if one exists)
            - Upserts a mood analysis job for non-empty bodies
        """
        now = self.clock()
        entry_date = entry_date or now.date()
        body = (body or "").strip()
        title = (title or "").strip() or default_title(entry_date)
        _validate_title(title)
        _validate_body(body)

        entry = JournalEntry(
            id=str(uuid.uuid4()),
            user_id=user_id,
            title=title,
            body=body,
            mood_score=None,
            entry_date=entry_date,
            version=0,
            created_at=now,
            updated_at=now,
        )

        with self.db.transaction():
            self.entries.insert(entry)
            self.quotes.mark_for_regeneration(user_id, now)
            if body:
                self.queue.enqueue(entry.id, body)

        logger.info("Created journal entry %s for user %s", entry.id, user_id)
        return entry

    @retry_on_db_lock()
    def update_body(
        self,
        user_id: str,
        entry_id: str,
        body: str,
        expected_version: int | None = None,
    ) -> JournalEntry:
        """
        Replace the body; clears the mood score and bumps the version.

        Raises:
            JournalEntryNotFoundError: Entry absent or owned by someone else
            VersionConflictError: ``expected_version`` is stale (nothing changed)
            JournalValidationError: Body too long

        Side Effects:
            - Updates journal_entries (body, mood_score=NULL, version+1)
            - Enqueues (or cancels) mood analysis for the new body
        """
        _validate_body(body)
        now = self.clock()

        with self.db.transaction():
            updated = self.entries.compare_and_set_body(
                user_id, entry_id, body, expected_version, now
            )
            if not updated:
                current = self.entries.get_owned(user_id, entry_id)
                if current is None:
                    raise JournalEntryNotFoundError(entry_id)
                raise VersionConflictError(entry_id, expected_version, current.version)

            self.queue.enqueue(entry_id, body)
            entry = self.entries.get_owned(user_id, entry_id)

        logger.info("Updated body of entry %s to version %d", entry_id, entry.version)
        return entry

    @retry_on_db_lock()
    def update_metadata(
        self,
        user_id: str,
        entry_id: str,
        title: str | None = None,
    ) -> JournalEntry:
        """
        Update the supplied metadata fields without a version check.

        Raises:
            JournalEntryNotFoundError: Entry absent or owned by someone else
            JournalValidationError: Title too long
        """
        with self.db.transaction():
            current = self.entries.get_owned(user_id, entry_id)
            if current is None:
                raise JournalEntryNotFoundError(entry_id)

            if title is None:
                return current

            title = title.strip() or default_title(current.entry_date)
            _validate_title(title)
            if not self.entries.update_title(user_id, entry_id, title, self.clock()):
                # Deleted between the read and the write
                raise JournalEntryNotFoundError(entry_id)
            entry = self.entries.get_owned(user_id, entry_id)

        logger.info("Updated metadata of entry %s to version %d", entry_id, entry.version)
        return entry

    @retry_on_db_lock()
    def delete(self, user_id: str, entry_id: str) -> None:
        """
        Delete an entry together with its pending mood analysis job.

        Raises:
            JournalEntryNotFoundError: Entry absent or owned by someone else
        """
        with self.db.transaction():
            if self.entries.get_owned(user_id, entry_id) is None:
                raise JournalEntryNotFoundError(entry_id)
            self.queue.cancel(entry_id)
            self.entries.delete(user_id, entry_id)

        logger.info("Deleted journal entry %s", entry_id)

    def get(self, user_id: str, entry_id: str) -> JournalEntry:
        entry = self.entries.get_owned(user_id, entry_id)
        if entry is None:
            raise JournalEntryNotFoundError(entry_id)
        return entry

    def list_entries(self, user_id: str, page: int = 0, size: int = 20) -> JournalPage:
        """Page of entries, newest entry_date first; mood_score is None while pending."""
        if page < 0:
            raise JournalValidationError("Page must not be negative")
        if size < 1 or size > API_PAGE_SIZE_MAX:
            raise JournalValidationError(f"Size must be between 1 and {API_PAGE_SIZE_MAX}")

        entries, total = self.entries.list_page(user_id, limit=size, offset=page * size)
        return JournalPage(entries=entries, page=page, size=size, total_elements=total)

    def list_between(self, user_id: str, start_date: date, end_date: date) -> list[JournalEntry]:
        if start_date > end_date:
            raise JournalValidationError("Start date must not be after end date")
        return self.entries.list_between(user_id, start_date, end_date)
