"""Pending mood analysis job model."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from janusleaf.utils.clock import parse_db_timestamp


class EnrichmentJob(BaseModel):
    """
    One pending mood analysis, unique per journal entry.

    ``claim_token``/``claimed_until`` are set while a worker holds the job;
    a lease that has run out makes the job claimable again.
    """

    id: str
    journal_entry_id: str
    body_snapshot: str
    scheduled_for: datetime
    retry_count: int = 0
    claim_token: str | None = None
    claimed_until: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> EnrichmentJob:
        return cls(
            id=row["id"],
            journal_entry_id=row["journal_entry_id"],
            body_snapshot=row["body_snapshot"],
            scheduled_for=parse_db_timestamp(row["scheduled_for"]),
            retry_count=row["retry_count"],
            claim_token=row["claim_token"],
            claimed_until=parse_db_timestamp(row["claimed_until"]),
            created_at=parse_db_timestamp(row["created_at"]),
            updated_at=parse_db_timestamp(row["updated_at"]),
        )
