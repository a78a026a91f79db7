"""Shared test doubles: a controllable clock and a scripted AI provider."""

from __future__ import annotations

import dataclasses
import json
from datetime import UTC, datetime, timedelta

import httpx

from janusleaf.config import ProviderSettings, Settings

PRIMARY_HOST = "primary.test"
FALLBACK_HOST = "fallback.test"
T0 = datetime(2025, 3, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


def completion(content: str | None) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class ScriptedProvider:
    """
    MockTransport handler serving queued responses per provider host.

    Items are httpx.Response objects, exceptions to raise, or plain strings
    (wrapped as a successful completion). An empty queue answers HTTP 500.
    """

    def __init__(self):
        self.queues: dict[str, list[httpx.Response | Exception | str]] = {
            PRIMARY_HOST: [],
            FALLBACK_HOST: [],
        }
        self.requests: list[httpx.Request] = []

    def queue(self, host: str, *items: httpx.Response | Exception | str) -> None:
        self.queues[host].extend(items)

    def primary(self, *items: httpx.Response | Exception | str) -> None:
        self.queue(PRIMARY_HOST, *items)

    def fallback(self, *items: httpx.Response | Exception | str) -> None:
        self.queue(FALLBACK_HOST, *items)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        pending = self.queues[request.url.host]
        if not pending:
            return httpx.Response(500, json={"error": "no scripted response"})

        item = pending.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, str):
            return completion(item)
        return item

    def requests_to(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]

    def prompts(self, host: str = PRIMARY_HOST) -> list[str]:
        return [
            json.loads(r.content)["messages"][0]["content"] for r in self.requests_to(host)
        ]


def make_settings(tmp_path, **overrides) -> Settings:
    primary_key = overrides.pop("primary_api_key", "primary-key")
    fallback_enabled = overrides.pop("fallback_enabled", False)
    settings = Settings(
        primary=ProviderSettings(
            name="openrouter",
            base_url=f"https://{PRIMARY_HOST}/api/v1",
            model="test/primary-model",
            api_key=primary_key,
            extra_headers={"HTTP-Referer": "https://janusleaf.test", "X-Title": "JanusLeaf Test"},
        ),
        fallback=ProviderSettings(
            name="fallback",
            base_url=f"https://{FALLBACK_HOST}/v1",
            model="test/fallback-model",
            api_key="fallback-key",
            enabled=fallback_enabled,
        ),
        ai_timeout_seconds=5.0,
        ai_connect_retries=0,
        mood_debounce_delay_ms=1500,
        mood_backoff_base_ms=10000,
        mood_max_retries=5,
        mood_min_body_length=10,
        jobs_enabled=False,
        db_path=tmp_path / "janusleaf.db",
        environment="test",
        token_secret="test-secret",
    )
    return dataclasses.replace(settings, **overrides)


