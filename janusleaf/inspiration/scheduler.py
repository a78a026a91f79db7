"""
Quote Scheduler - per-user "quote of the day" generation.

Each tick handles exactly one candidate:

1. the first user who has journal entries but no quote yet, otherwise
2. the quote that most needs regeneration (flagged dirty by a new entry, or
   older than the freshness window), oldest generation first.

Failures keep no state: the candidate simply stays eligible for a later tick.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from janusleaf.config import Settings
from janusleaf.inspiration.errors import QuoteNotFoundError
from janusleaf.inspiration.models import InspirationalQuote
from janusleaf.inspiration.repository import QuoteRepository
from janusleaf.journal.models import JournalEntry
from janusleaf.journal.repository import JournalEntryRepository
from janusleaf.llm.gateway import AIGateway, Failed, QuoteGenerated, QuoteResult, RateLimited
from janusleaf.observability.logging import get_logger
from janusleaf.observability.telemetry import counter, log_event
from janusleaf.utils.clock import Clock, utc_now

logger = get_logger(__name__)

ENTRY_SEPARATOR = "\n\n---\n\n"


@dataclass(frozen=True)
class QuoteTickOutcome:
    user_id: str
    action: str  # created | regenerated
    succeeded: bool


def render_journal_content(entries: list[JournalEntry]) -> str:
    """Render entries (most recent first) as numbered prompt blocks."""
    with_content = [entry for entry in entries if entry.body.strip()]
    blocks = [
        f"Entry {i} ({entry.entry_date.isoformat()}):\n{entry.title}\n{entry.body}"
        for i, entry in enumerate(with_content, start=1)
    ]
    return ENTRY_SEPARATOR.join(blocks)


class QuoteScheduler:
    """Creates and refreshes one user's quote per tick."""

    def __init__(
        self,
        quotes: QuoteRepository,
        entries: JournalEntryRepository,
        gateway: AIGateway,
        settings: Settings,
        clock: Clock = utc_now,
    ):
        self.quotes = quotes
        self.entries = entries
        self.gateway = gateway
        self.clock = clock
        self.max_entries = settings.quote_max_journal_entries
        self.max_age = timedelta(hours=settings.quote_stale_hours)

    def get_quote(self, user_id: str) -> InspirationalQuote:
        """
        Raises:
            QuoteNotFoundError: If no quote has been generated for the user yet
        """
        quote = self.quotes.get_by_user(user_id)
        if quote is None:
            raise QuoteNotFoundError(user_id)
        return quote

    def tick(self, now: datetime | None = None) -> QuoteTickOutcome | None:
        """
        Process a single quote candidate.

        Returns:
            Outcome for the candidate handled, or None when there was nothing
            to do (or no API key is configured)
        """
        if not self.gateway.is_configured:
            logger.debug("No AI API key configured, skipping quote generation")
            return None

        now = now or self.clock()

        user_id = self.quotes.first_user_without_quote()
        if user_id is not None:
            return self._create_first_quote(user_id, now)

        candidate = self.quotes.next_regeneration_candidate(stale_before=now - self.max_age)
        if candidate is not None:
            return self._regenerate(candidate, now)

        return None

    def build_journal_content(self, user_id: str) -> str:
        return render_journal_content(self.entries.recent_with_content(user_id, self.max_entries))

    def _create_first_quote(self, user_id: str, now: datetime) -> QuoteTickOutcome:
        logger.info("Generating first quote for user %s", user_id)
        result = self._generate(user_id)
        if not isinstance(result, QuoteGenerated):
            return QuoteTickOutcome(user_id=user_id, action="created", succeeded=False)

        quote = InspirationalQuote(
            id=str(uuid.uuid4()),
            user_id=user_id,
            quote=result.quote,
            tags=result.tags,
            needs_regeneration=False,
            last_generated_at=now,
            created_at=now,
            updated_at=now,
        )
        if not self.quotes.insert(quote):
            logger.info("Quote for user %s was created concurrently, keeping it", user_id)
        else:
            counter("quote.created")
            log_event("quote.created", user_id=user_id, provider=result.provider)
        return QuoteTickOutcome(user_id=user_id, action="created", succeeded=True)

    def _regenerate(self, existing: InspirationalQuote, now: datetime) -> QuoteTickOutcome:
        user_id = existing.user_id
        logger.info(
            "Regenerating quote for user %s (dirty=%s, stale=%s)",
            user_id,
            existing.needs_regeneration,
            existing.is_stale(now, self.max_age),
        )
        result = self._generate(user_id)
        if not isinstance(result, QuoteGenerated):
            return QuoteTickOutcome(user_id=user_id, action="regenerated", succeeded=False)

        self.quotes.update_generated(existing, result.quote, result.tags, now)
        counter("quote.regenerated")
        log_event("quote.regenerated", user_id=user_id, provider=result.provider)
        return QuoteTickOutcome(user_id=user_id, action="regenerated", succeeded=True)

    def _generate(self, user_id: str) -> QuoteResult:
        content = self.build_journal_content(user_id)
        if not content:
            logger.debug("User %s has no journal content, using the generic prompt", user_id)

        result = self.gateway.generate_quote(content)
        if isinstance(result, RateLimited) and self.gateway.fallback_enabled:
            logger.info("Primary provider rate limited, trying fallback for user %s", user_id)
            counter("quote.fallback_used")
            result = self.gateway.generate_quote(content, use_fallback=True)

        if isinstance(result, RateLimited):
            counter("quote.rate_limited")
            logger.warning("Quote generation for user %s rate limited, will retry", user_id)
        elif isinstance(result, Failed):
            counter("quote.failed")
            logger.warning(
                "Quote generation for user %s failed (%s), will retry", user_id, result.reason
            )
        return result
