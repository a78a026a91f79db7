"""Tests for QuoteScheduler: candidate selection, generation and failure handling."""

from __future__ import annotations

import json
from datetime import date, timedelta

import httpx
import pytest

from janusleaf.inspiration.errors import NO_QUOTE_YET_MESSAGE, QuoteNotFoundError
from janusleaf.inspiration.models import InspirationalQuote
from janusleaf.inspiration.scheduler import QuoteScheduler, render_journal_content
from janusleaf.journal.models import JournalEntry
from janusleaf.llm.gateway import AIGateway
from janusleaf.observability import telemetry
from tests.support import FALLBACK_HOST, T0


def quote_reply(text: str = "Every page is a step.", tags=("calm", "kin", "work", "hope")) -> str:
    return json.dumps({"quote": text, "tags": list(tags)})


def seed_quote(quotes, user_id: str, generated_at, needs_regeneration: bool = False):
    quote = InspirationalQuote(
        id=f"quote-{user_id}",
        user_id=user_id,
        quote="Old words.",
        tags=["a", "b", "c", "d"],
        needs_regeneration=needs_regeneration,
        last_generated_at=generated_at,
        created_at=generated_at,
        updated_at=generated_at,
    )
    quotes.insert(quote)
    return quote


@pytest.fixture
def scheduler_with(quotes, entries, gateway_factory, settings_factory, clock):
    def build(**overrides) -> QuoteScheduler:
        settings = settings_factory(**overrides)
        return QuoteScheduler(quotes, entries, gateway_factory(settings), settings, clock=clock)

    return build


class TestRenderJournalContent:
    def make_entry(self, n: int, body: str) -> JournalEntry:
        return JournalEntry(
            id=f"e{n}",
            user_id="user-1",
            title=f"Title {n}",
            body=body,
            entry_date=date(2025, 3, n),
            created_at=T0,
            updated_at=T0,
        )

    def test_numbers_entries_and_skips_blank_bodies(self):
        content = render_journal_content(
            [self.make_entry(3, "Third"), self.make_entry(2, "  "), self.make_entry(1, "First")]
        )

        assert content == (
            "Entry 1 (2025-03-03):\nTitle 3\nThird\n\n---\n\nEntry 2 (2025-03-01):\nTitle 1\nFirst"
        )

    def test_empty(self):
        assert render_journal_content([]) == ""


class TestTick:
    def test_no_api_key_is_a_no_op(self, scheduler_with, store, quotes, provider):
        store.create("user-1", body="Something worth a quote.")

        assert scheduler_with(primary_api_key=None).tick() is None
        assert quotes.get_by_user("user-1") is None
        assert provider.requests == []

    def test_nothing_to_do(self, scheduler, users):
        assert scheduler.tick() is None

    def test_creates_first_quote(self, scheduler, store, quotes, provider, clock):
        store.create("user-1", title="Lake", body="Swam in the lake at dawn.")
        provider.primary(quote_reply(tags=["water", "dawn"]))
        clock.advance(minutes=1)

        outcome = scheduler.tick()

        assert outcome.user_id == "user-1"
        assert outcome.action == "created"
        assert outcome.succeeded is True
        quote = quotes.get_by_user("user-1")
        assert quote.quote == "Every page is a step."
        assert quote.tags == ["water", "dawn", "journey", "mindfulness"]
        assert quote.needs_regeneration is False
        assert quote.last_generated_at == clock()
        assert "Entry 1 (2025-03-01):\nLake\nSwam in the lake at dawn." in provider.prompts()[0]
        assert telemetry.get_counter("quote.created") == 1

    def test_one_user_per_tick_earliest_first(self, scheduler, store, quotes, provider, clock):
        store.create("user-2", body="I joined first.")
        clock.advance(seconds=1)
        store.create("user-1", body="I joined second.")
        provider.primary(quote_reply(), quote_reply())

        assert scheduler.tick().user_id == "user-2"
        assert quotes.get_by_user("user-1") is None
        assert len(provider.requests) == 1

        assert scheduler.tick().user_id == "user-1"

    def test_blank_journal_uses_generic_prompt(self, scheduler, store, quotes, provider):
        store.create("user-1", title="Empty day")
        provider.primary(quote_reply())

        scheduler.tick()

        assert "starting to keep a journal" in provider.prompts()[0]
        assert quotes.get_by_user("user-1") is not None

    def test_limits_prompt_to_recent_entries(self, scheduler_with, store, provider):
        for day in (1, 2, 3):
            store.create(
                "user-1", title=f"Day {day}", body=f"Body {day}", entry_date=date(2025, 2, day)
            )
        provider.primary(quote_reply())

        scheduler_with(quote_max_journal_entries=2).tick()

        prompt = provider.prompts()[0]
        assert "Day 3" in prompt and "Day 2" in prompt
        assert "Day 1" not in prompt

    def test_failure_keeps_candidate_eligible(self, scheduler, store, quotes, provider):
        store.create("user-1", body="Some thoughts.")
        provider.primary(httpx.Response(500), quote_reply())

        first = scheduler.tick()
        second = scheduler.tick()

        assert first.succeeded is False
        assert second.succeeded is True
        assert quotes.get_by_user("user-1") is not None
        assert telemetry.get_counter("quote.failed") == 1

    def test_unparsable_reply_is_a_failure(self, scheduler, store, quotes, provider):
        store.create("user-1", body="Some thoughts.")
        provider.primary("I'd rather not.")

        assert scheduler.tick().succeeded is False
        assert quotes.get_by_user("user-1") is None

    def test_rate_limit_without_fallback(self, scheduler, store, provider):
        store.create("user-1", body="Some thoughts.")
        provider.primary(httpx.Response(429))

        assert scheduler.tick().succeeded is False
        assert telemetry.get_counter("quote.rate_limited") == 1

    def test_rate_limit_falls_back(self, scheduler_with, store, quotes, provider):
        store.create("user-1", body="Some thoughts.")
        provider.primary(httpx.Response(429))
        provider.fallback(quote_reply("From the fallback."))

        outcome = scheduler_with(fallback_enabled=True).tick()

        assert outcome.succeeded is True
        assert quotes.get_by_user("user-1").quote == "From the fallback."
        assert len(provider.requests_to(FALLBACK_HOST)) == 1
        assert telemetry.get_counter("quote.fallback_used") == 1


class TestRegeneration:
    def test_oldest_eligible_quote_first(self, scheduler, users, quotes, provider, clock):
        seed_quote(quotes, "user-1", T0 - timedelta(hours=2), needs_regeneration=True)
        seed_quote(quotes, "user-2", T0 - timedelta(hours=30))
        provider.primary(quote_reply("For two."), quote_reply("For one."))

        assert scheduler.tick().user_id == "user-2"
        assert scheduler.tick().user_id == "user-1"
        assert scheduler.tick() is None

        refreshed = quotes.get_by_user("user-1")
        assert refreshed.quote == "For one."
        assert refreshed.needs_regeneration is False
        assert refreshed.last_generated_at == T0
        assert telemetry.get_counter("quote.regenerated") == 2

    def test_fresh_unflagged_quote_is_left_alone(self, scheduler, users, quotes, provider):
        seed_quote(quotes, "user-1", T0 - timedelta(hours=23))

        assert scheduler.tick() is None
        assert provider.requests == []

    def test_new_entry_flags_quote(self, scheduler, store, quotes, provider, clock):
        seed_quote(quotes, "user-1", T0 - timedelta(hours=1))
        store.create("user-1", body="A new page.")
        provider.primary(quote_reply("Fresh."))

        outcome = scheduler.tick()

        assert outcome.action == "regenerated"
        assert quotes.get_by_user("user-1").quote == "Fresh."

    def test_flag_raised_during_generation_survives(
        self, users, quotes, entries, settings, provider, clock
    ):
        seed_quote(quotes, "user-1", T0 - timedelta(hours=2), needs_regeneration=True)
        provider.primary(quote_reply("Mid-flight."))

        def handler(request: httpx.Request) -> httpx.Response:
            quotes.mark_for_regeneration("user-1", clock())
            return provider(request)

        gateway = AIGateway.from_settings(settings, transport=httpx.MockTransport(handler))
        try:
            QuoteScheduler(quotes, entries, gateway, settings, clock=clock).tick()
        finally:
            gateway.close()

        quote = quotes.get_by_user("user-1")
        assert quote.quote == "Mid-flight."
        assert quote.needs_regeneration is True

    def test_failed_regeneration_keeps_old_quote(self, scheduler, users, quotes, provider):
        seed_quote(quotes, "user-1", T0 - timedelta(hours=30))
        provider.primary(httpx.Response(502))

        outcome = scheduler.tick()

        assert outcome.succeeded is False
        assert quotes.get_by_user("user-1").quote == "Old words."


class TestGetQuote:
    def test_missing_quote_raises(self, scheduler, users):
        with pytest.raises(QuoteNotFoundError) as exc_info:
            scheduler.get_quote("user-1")

        assert str(exc_info.value) == NO_QUOTE_YET_MESSAGE

    def test_returns_stored_quote(self, scheduler, users, quotes):
        seed_quote(quotes, "user-1", T0)

        assert scheduler.get_quote("user-1").quote == "Old words."
