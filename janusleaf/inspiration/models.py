"""Inspirational quote model."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel

from janusleaf.utils.clock import parse_db_timestamp, to_db_timestamp


class InspirationalQuote(BaseModel):
    """The single quote of the day kept per user, with exactly four tags."""

    id: str
    user_id: str
    quote: str
    tags: list[str]
    needs_regeneration: bool = False
    last_generated_at: datetime
    created_at: datetime
    updated_at: datetime

    def is_stale(self, now: datetime, max_age: timedelta) -> bool:
        return self.last_generated_at < now - max_age

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "quote": self.quote,
            "tags": json.dumps(self.tags),
            "needs_regeneration": 1 if self.needs_regeneration else 0,
            "last_generated_at": to_db_timestamp(self.last_generated_at),
            "created_at": to_db_timestamp(self.created_at),
            "updated_at": to_db_timestamp(self.updated_at),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> InspirationalQuote:
        """Create InspirationalQuote from database row."""
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            quote=row["quote"],
            tags=json.loads(row["tags"]),
            needs_regeneration=bool(row["needs_regeneration"]),
            last_generated_at=parse_db_timestamp(row["last_generated_at"]),
            created_at=parse_db_timestamp(row["created_at"]),
            updated_at=parse_db_timestamp(row["updated_at"]),
        )
