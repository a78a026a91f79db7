"""
Journal API endpoints.

CRUD over the caller's entries. Body edits carry an optional
``expectedVersion`` for optimistic concurrency; mood scores are read-only and
appear once the enrichment worker has analysed the current body.
"""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from janusleaf.api.dependencies import get_journal_store
from janusleaf.api.middleware.user_auth import AuthenticatedUser, get_current_user
from janusleaf.config import (
    API_PAGE_SIZE_DEFAULT,
    API_PAGE_SIZE_MAX,
    JOURNAL_BODY_MAX_LENGTH,
    JOURNAL_TITLE_MAX_LENGTH,
)
from janusleaf.journal.errors import (
    JournalEntryNotFoundError,
    JournalValidationError,
    VersionConflictError,
)
from janusleaf.journal.models import JournalEntry, JournalPage
from janusleaf.journal.service import JournalStore
from janusleaf.observability.logging import get_logger
from janusleaf.utils.error_sanitizer import sanitize_error_message

router = APIRouter(prefix="/journal", tags=["journal"])
logger = get_logger(__name__)

ENTRY_NOT_FOUND = "Journal entry not found"


# ============================================================================
# Request/Response Models
# ============================================================================


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateJournalEntryRequest(CamelModel):
    title: str | None = Field(default=None, max_length=JOURNAL_TITLE_MAX_LENGTH)
    body: str | None = Field(default=None, max_length=JOURNAL_BODY_MAX_LENGTH)
    entry_date: date | None = None


class UpdateBodyRequest(CamelModel):
    body: str = Field(max_length=JOURNAL_BODY_MAX_LENGTH)
    expected_version: int | None = Field(default=None, ge=0)


class UpdateMetadataRequest(CamelModel):
    title: str | None = Field(default=None, max_length=JOURNAL_TITLE_MAX_LENGTH)


class JournalEntryResponse(CamelModel):
    """API response for a single entry."""

    id: str
    title: str
    body: str
    mood_score: int | None
    entry_date: date
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entry(cls, entry: JournalEntry) -> JournalEntryResponse:
        return cls(
            id=entry.id,
            title=entry.title,
            body=entry.body,
            mood_score=entry.mood_score,
            entry_date=entry.entry_date,
            version=entry.version,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )


class JournalEntrySummaryResponse(CamelModel):
    """List item with a truncated body."""

    id: str
    title: str
    body_preview: str
    mood_score: int | None
    entry_date: date
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entry(cls, entry: JournalEntry) -> JournalEntrySummaryResponse:
        return cls(
            id=entry.id,
            title=entry.title,
            body_preview=entry.preview,
            mood_score=entry.mood_score,
            entry_date=entry.entry_date,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )


class JournalPageResponse(CamelModel):
    entries: list[JournalEntrySummaryResponse]
    page: int
    size: int
    total_elements: int
    total_pages: int
    has_next: bool
    has_previous: bool

    @classmethod
    def from_page(cls, page: JournalPage) -> JournalPageResponse:
        return cls(
            entries=[JournalEntrySummaryResponse.from_entry(e) for e in page.entries],
            page=page.page,
            size=page.size,
            total_elements=page.total_elements,
            total_pages=page.total_pages,
            has_next=page.has_next,
            has_previous=page.has_previous,
        )


class MessageResponse(BaseModel):
    message: str


# ============================================================================
# Endpoints
# ============================================================================


@router.post("", response_model=JournalEntryResponse, status_code=201)
def create_entry(
    request: CreateJournalEntryRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: JournalStore = Depends(get_journal_store),
) -> JournalEntryResponse:
    """Create an entry; a non-empty body is queued for mood analysis."""
    try:
        entry = store.create(
            user.id,
            title=request.title,
            body=request.body,
            entry_date=request.entry_date,
        )
        return JournalEntryResponse.from_entry(entry)
    except JournalValidationError as e:
        raise HTTPException(status_code=400, detail=sanitize_error_message(str(e), 400)) from None
    except Exception as e:
        logger.error("Failed to create journal entry: %s", e)
        raise HTTPException(status_code=500, detail="Failed to create journal entry") from None


@router.get("", response_model=JournalPageResponse)
def list_entries(
    page: int = Query(0, ge=0),
    size: int = Query(API_PAGE_SIZE_DEFAULT, ge=1, le=API_PAGE_SIZE_MAX),
    user: AuthenticatedUser = Depends(get_current_user),
    store: JournalStore = Depends(get_journal_store),
) -> JournalPageResponse:
    """Page of the caller's entries, newest entry date first."""
    try:
        return JournalPageResponse.from_page(store.list_entries(user.id, page=page, size=size))
    except JournalValidationError as e:
        raise HTTPException(status_code=400, detail=sanitize_error_message(str(e), 400)) from None


@router.get("/range", response_model=list[JournalEntrySummaryResponse])
def list_entries_in_range(
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    user: AuthenticatedUser = Depends(get_current_user),
    store: JournalStore = Depends(get_journal_store),
) -> list[JournalEntrySummaryResponse]:
    """Entries with an entry date inside [startDate, endDate]."""
    try:
        entries = store.list_between(user.id, start_date, end_date)
    except JournalValidationError as e:
        raise HTTPException(status_code=400, detail=sanitize_error_message(str(e), 400)) from None
    return [JournalEntrySummaryResponse.from_entry(entry) for entry in entries]


@router.get("/{entry_id}", response_model=JournalEntryResponse)
def get_entry(
    entry_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    store: JournalStore = Depends(get_journal_store),
) -> JournalEntryResponse:
    try:
        return JournalEntryResponse.from_entry(store.get(user.id, entry_id))
    except JournalEntryNotFoundError:
        raise HTTPException(status_code=404, detail=ENTRY_NOT_FOUND) from None


@router.patch("/{entry_id}/body", response_model=JournalEntryResponse)
def update_body(
    entry_id: str,
    request: UpdateBodyRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: JournalStore = Depends(get_journal_store),
) -> JournalEntryResponse:
    """
    Replace the body. The response carries the new version and no mood score.

    A stale ``expectedVersion`` yields 409; the client must re-read and retry.
    """
    try:
        entry = store.update_body(
            user.id,
            entry_id,
            request.body,
            expected_version=request.expected_version,
        )
        return JournalEntryResponse.from_entry(entry)
    except JournalEntryNotFoundError:
        raise HTTPException(status_code=404, detail=ENTRY_NOT_FOUND) from None
    except VersionConflictError as e:
        raise HTTPException(
            status_code=409,
            detail={
                "message": "Journal entry was modified by another request",
                "currentVersion": e.current_version,
            },
        ) from None
    except JournalValidationError as e:
        raise HTTPException(status_code=400, detail=sanitize_error_message(str(e), 400)) from None
    except Exception as e:
        logger.error("Failed to update body of entry %s: %s", entry_id, e)
        raise HTTPException(status_code=500, detail="Failed to update journal entry") from None


@router.patch("/{entry_id}", response_model=JournalEntryResponse)
def update_metadata(
    entry_id: str,
    request: UpdateMetadataRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: JournalStore = Depends(get_journal_store),
) -> JournalEntryResponse:
    """Update title only; no version check (last writer wins)."""
    try:
        entry = store.update_metadata(user.id, entry_id, title=request.title)
        return JournalEntryResponse.from_entry(entry)
    except JournalEntryNotFoundError:
        raise HTTPException(status_code=404, detail=ENTRY_NOT_FOUND) from None
    except JournalValidationError as e:
        raise HTTPException(status_code=400, detail=sanitize_error_message(str(e), 400)) from None
    except Exception as e:
        logger.error("Failed to update metadata of entry %s: %s", entry_id, e)
        raise HTTPException(status_code=500, detail="Failed to update journal entry") from None


@router.delete("/{entry_id}", response_model=MessageResponse)
def delete_entry(
    entry_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    store: JournalStore = Depends(get_journal_store),
) -> MessageResponse:
    """Delete an entry and cancel its pending mood analysis."""
    try:
        store.delete(user.id, entry_id)
    except JournalEntryNotFoundError:
        raise HTTPException(status_code=404, detail=ENTRY_NOT_FOUND) from None
    except Exception as e:
        logger.error("Failed to delete entry %s: %s", entry_id, e)
        raise HTTPException(status_code=500, detail="Failed to delete journal entry") from None

    return MessageResponse(message="Journal entry deleted successfully")
