"""
Pytest configuration for JanusLeaf tests

Every test gets its own SQLite file, a controllable clock and a scripted
stand-in for the AI providers (httpx.MockTransport), so nothing touches the
network or a shared database.
"""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from janusleaf.config import Settings
from janusleaf.enrichment.queue import EnrichmentQueue
from janusleaf.enrichment.repository import MoodQueueRepository
from janusleaf.infrastructure.database import Database
from janusleaf.inspiration.repository import QuoteRepository
from janusleaf.inspiration.scheduler import QuoteScheduler
from janusleaf.journal.repository import JournalEntryRepository
from janusleaf.journal.service import JournalStore
from janusleaf.llm.gateway import AIGateway
from janusleaf.observability import telemetry
from janusleaf.users.repository import UserRepository
from tests.support import FakeClock, ScriptedProvider, make_settings


@pytest.fixture(autouse=True)
def reset_telemetry():
    telemetry.reset()
    yield
    telemetry.reset()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def settings_factory(tmp_path) -> Callable[..., Settings]:
    return lambda **overrides: make_settings(tmp_path, **overrides)


@pytest.fixture
def settings(settings_factory) -> Settings:
    return settings_factory()


@pytest.fixture
def db(settings):
    database = Database(settings.db_path, pool_size=2)
    database.init_schema()
    yield database
    database.close()


@pytest.fixture
def gateway_factory(provider):
    created: list[AIGateway] = []

    def build(settings: Settings) -> AIGateway:
        gateway = AIGateway.from_settings(settings, transport=httpx.MockTransport(provider))
        created.append(gateway)
        return gateway

    yield build
    for gateway in created:
        gateway.close()


@pytest.fixture
def gateway(gateway_factory, settings) -> AIGateway:
    return gateway_factory(settings)


@pytest.fixture
def users(db) -> UserRepository:
    repo = UserRepository(db)
    repo.create("user-1", "one@example.com")
    repo.create("user-2", "two@example.com")
    return repo


@pytest.fixture
def entries(db) -> JournalEntryRepository:
    return JournalEntryRepository(db)


@pytest.fixture
def jobs(db) -> MoodQueueRepository:
    return MoodQueueRepository(db)


@pytest.fixture
def quotes(db) -> QuoteRepository:
    return QuoteRepository(db)


@pytest.fixture
def queue(db, jobs, entries, gateway, settings, clock) -> EnrichmentQueue:
    return EnrichmentQueue(db, jobs, entries, gateway, settings, clock=clock)


@pytest.fixture
def store(db, entries, queue, quotes, users, clock) -> JournalStore:
    return JournalStore(db, entries, queue, quotes, clock=clock)


@pytest.fixture
def scheduler(quotes, entries, gateway, settings, clock) -> QuoteScheduler:
    return QuoteScheduler(quotes, entries, gateway, settings, clock=clock)
