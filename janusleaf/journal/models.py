"""
Journal entry domain model.

Pydantic models for entries and pages of entries, plus the conversions used
by JournalEntryRepository.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from janusleaf.config import JOURNAL_PREVIEW_LENGTH
from janusleaf.utils.clock import parse_db_timestamp, to_db_timestamp


def default_title(entry_date: date) -> str:
    return entry_date.isoformat()


def body_preview(body: str, length: int = JOURNAL_PREVIEW_LENGTH) -> str:
    if len(body) <= length:
        return body
    return body[:length] + "..."


class JournalEntry(BaseModel):
    """
    A dated journal entry owned by one user.

    ``version`` starts at 0 and moves by one on each body or title write.
    ``mood_score`` is None until the enrichment worker has scored the
    current body.
    """

    id: str
    user_id: str
    title: str
    body: str = ""
    mood_score: int | None = Field(default=None, ge=1, le=10)
    entry_date: date
    version: int = 0
    created_at: datetime
    updated_at: datetime

    @property
    def preview(self) -> str:
        return body_preview(self.body)

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "body": self.body,
            "mood_score": self.mood_score,
            "entry_date": self.entry_date.isoformat(),
            "version": self.version,
            "created_at": to_db_timestamp(self.created_at),
            "updated_at": to_db_timestamp(self.updated_at),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> JournalEntry:
        """Create JournalEntry from database row."""
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            body=row["body"],
            mood_score=row["mood_score"],
            entry_date=date.fromisoformat(row["entry_date"]),
            version=row["version"],
            created_at=parse_db_timestamp(row["created_at"]),
            updated_at=parse_db_timestamp(row["updated_at"]),
        )


class JournalPage(BaseModel):
    """One page of a user's entries, newest entry_date first."""

    entries: list[JournalEntry]
    page: int
    size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return math.ceil(self.total_elements / self.size)

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 0
