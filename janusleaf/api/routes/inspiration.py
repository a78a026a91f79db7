"""Inspirational quote endpoint."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from janusleaf.api.dependencies import get_quote_scheduler
from janusleaf.api.middleware.user_auth import AuthenticatedUser, get_current_user
from janusleaf.inspiration.errors import QuoteNotFoundError
from janusleaf.inspiration.scheduler import QuoteScheduler

router = APIRouter(prefix="/inspiration", tags=["inspiration"])


class InspirationalQuoteResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    quote: str
    tags: list[str]
    generated_at: datetime


@router.get("", response_model=InspirationalQuoteResponse)
def get_inspiration(
    user: AuthenticatedUser = Depends(get_current_user),
    scheduler: QuoteScheduler = Depends(get_quote_scheduler),
) -> InspirationalQuoteResponse:
    """The caller's current quote; 404 until the scheduler has generated one."""
    try:
        quote = scheduler.get_quote(user.id)
    except QuoteNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None

    return InspirationalQuoteResponse(
        id=quote.id,
        quote=quote.quote,
        tags=quote.tags,
        generated_at=quote.last_generated_at,
    )
