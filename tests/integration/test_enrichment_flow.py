"""
End-to-end enrichment flow: journal writes feed the mood queue and the quote
scheduler, both driven through their cron tickers.
"""

from __future__ import annotations

import json
from datetime import timedelta

import httpx
import pytest

from janusleaf.observability import telemetry
from janusleaf.runtime.ticker import CronTicker


@pytest.fixture
def mood_ticker(queue, clock):
    return CronTicker("mood-analysis", "*/3 * * * * *", queue.drain_ready, clock=clock)


@pytest.fixture
def quote_ticker(scheduler, clock):
    return CronTicker("inspirational-quote", "*/30 * * * * *", scheduler.tick, clock=clock)


def tick_every(ticker: CronTicker, clock, times: int) -> None:
    """Advance the clock from fire time to fire time, running the job at each."""
    for _ in range(times):
        clock.now = ticker.next_fire_after(clock.now)
        ticker.run_once()


def test_rate_limited_entry_is_scored_after_backoff(store, jobs, provider, clock, mood_ticker):
    entry = store.create("user-1", body="Nervous before the interview, relieved after.")
    provider.primary(httpx.Response(429), "6")

    # Due after the 1.5s debounce; the first tick at +3s hits the rate limit
    tick_every(mood_ticker, clock, 1)
    assert jobs.get_by_entry(entry.id).retry_count == 1
    assert store.get("user-1", entry.id).mood_score is None

    # Backoff is 10s, so ticks before that leave the job alone
    tick_every(mood_ticker, clock, 3)
    assert len(provider.requests) == 1

    tick_every(mood_ticker, clock, 1)
    assert store.get("user-1", entry.id).mood_score == 6
    assert jobs.count() == 0
    assert telemetry.get_counter("mood.rate_limited") == 1
    assert telemetry.get_counter("mood.scored") == 1


def test_editing_while_queued_scores_only_the_final_text(store, provider, clock, mood_ticker):
    entry = store.create("user-1", body="Draft one of a hard day.")
    clock.advance(milliseconds=500)
    entry = store.update_body("user-1", entry.id, "Draft two: it got better.", entry.version)
    provider.primary("7")

    tick_every(mood_ticker, clock, 2)

    assert len(provider.requests) == 1
    assert "Draft two: it got better." in provider.prompts()[0]
    assert store.get("user-1", entry.id).mood_score == 7


def test_quote_lifecycle(store, quotes, provider, clock, quote_ticker):
    store.create("user-1", title="Run", body="First 5k without stopping.")
    provider.primary(json.dumps({"quote": "Keep running.", "tags": ["running"]}))

    tick_every(quote_ticker, clock, 1)
    first = quotes.get_by_user("user-1")
    assert first.quote == "Keep running."

    # Nothing changes until a new entry arrives
    tick_every(quote_ticker, clock, 2)
    assert len(provider.requests) == 1

    clock.advance(seconds=1)
    store.create("user-1", title="Rest", body="Took a rest day and read.")
    provider.primary(json.dumps({"quote": "Rest is training too.", "tags": []}))
    tick_every(quote_ticker, clock, 1)

    refreshed = quotes.get_by_user("user-1")
    assert refreshed.quote == "Rest is training too."
    assert refreshed.needs_regeneration is False
    assert "Entry 1 (2025-03-01):\nRest" in provider.prompts()[1]
    assert "Entry 2 (2025-03-01):\nRun" in provider.prompts()[1]


def test_stale_quote_is_refreshed_after_a_day(store, quotes, provider, clock, quote_ticker):
    store.create("user-1", body="A quiet Sunday.")
    provider.primary(
        json.dumps({"quote": "Quiet days count.", "tags": []}),
        json.dumps({"quote": "A new day.", "tags": []}),
    )
    tick_every(quote_ticker, clock, 1)

    clock.advance(hours=24, seconds=1)
    tick_every(quote_ticker, clock, 1)

    assert quotes.get_by_user("user-1").quote == "A new day."
