"""FastAPI dependencies resolving components built by create_app."""

from __future__ import annotations

from fastapi import Request

from janusleaf.inspiration.scheduler import QuoteScheduler
from janusleaf.journal.service import JournalStore


def get_journal_store(request: Request) -> JournalStore:
    return request.app.state.journal_store


def get_quote_scheduler(request: Request) -> QuoteScheduler:
    return request.app.state.quote_scheduler
