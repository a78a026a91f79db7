"""FastAPI server for JanusLeaf

``create_app`` is the composition root: it builds the database handle,
repositories, AI gateway, enrichment queue, quote scheduler and their cron
tickers, and hangs them on ``app.state``. Nothing is a module-level singleton,
so tests build isolated apps against temporary databases.
"""

from __future__ import annotations

import os
from typing import Any

import httpx
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from janusleaf.api.middleware.user_auth import build_token_cache
from janusleaf.api.routes.health import router as health_router
from janusleaf.api.routes.inspiration import router as inspiration_router
from janusleaf.api.routes.journal import router as journal_router
from janusleaf.config import APP_VERSION, Settings
from janusleaf.enrichment.queue import EnrichmentQueue
from janusleaf.enrichment.repository import MoodQueueRepository
from janusleaf.infrastructure.database import Database
from janusleaf.inspiration.repository import QuoteRepository
from janusleaf.inspiration.scheduler import QuoteScheduler
from janusleaf.journal.repository import JournalEntryRepository
from janusleaf.journal.service import JournalStore
from janusleaf.llm.gateway import AIGateway
from janusleaf.observability.logging import get_logger
from janusleaf.observability.telemetry import counter
from janusleaf.runtime.ticker import CronTicker
from janusleaf.users.repository import UserRepository
from janusleaf.utils.clock import Clock, utc_now

logger = get_logger(__name__)


def _allowed_origins(settings: Settings) -> list[str]:
    configured = os.getenv("JANUSLEAF_ALLOWED_ORIGINS", "")
    origins = [origin.strip() for origin in configured.split(",") if origin.strip()]
    if not settings.is_production:
        origins.extend(["http://localhost:3000", "http://localhost:8000", "http://127.0.0.1:8000"])
    return origins


def create_app(
    settings: Settings | None = None,
    gateway: AIGateway | None = None,
    clock: Clock = utc_now,
    ai_transport: httpx.BaseTransport | None = None,
) -> FastAPI:
    """
    Build a fully wired application.

    Args:
        settings: Runtime settings (defaults to ``Settings.from_env()``)
        gateway: Pre-built AI gateway (defaults to one built from settings)
        clock: Time source shared by the store, queue and scheduler
        ai_transport: httpx transport for the default gateway

    Side Effects:
        - Creates the database file and schema if missing
    """
    settings = settings or Settings.from_env()

    db = Database(settings.db_path)
    db.init_schema()

    gateway = gateway or AIGateway.from_settings(settings, transport=ai_transport)
    entries = JournalEntryRepository(db)
    quotes = QuoteRepository(db)
    users = UserRepository(db)
    queue = EnrichmentQueue(db, MoodQueueRepository(db), entries, gateway, settings, clock=clock)
    store = JournalStore(db, entries, queue, quotes, clock=clock)
    scheduler = QuoteScheduler(quotes, entries, gateway, settings, clock=clock)

    # Cron expressions are validated here so a bad schedule fails startup
    tickers = [
        CronTicker("mood-analysis", settings.mood_analysis_cron, queue.drain_ready, clock=clock),
        CronTicker(
            "inspirational-quote", settings.inspirational_quote_cron, scheduler.tick, clock=clock
        ),
    ]

    app = FastAPI(title="JanusLeaf API", version=APP_VERSION)
    app.state.settings = settings
    app.state.db = db
    app.state.gateway = gateway
    app.state.users = users
    app.state.token_cache = build_token_cache()
    app.state.enrichment_queue = queue
    app.state.journal_store = store
    app.state.quote_scheduler = scheduler
    app.state.tickers = tickers

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Reject malformed input with field names only, never validation internals."""
        logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
        counter("api.validation_errors")

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": "Invalid request format. Please check your request and try again.",
                "error_count": len(exc.errors()),
                "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
            },
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(settings),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )

    app.include_router(health_router)
    app.include_router(journal_router)
    app.include_router(inspiration_router)

    @app.on_event("startup")
    async def start_background_jobs() -> None:
        """
        Validate the schema and start the enrichment tickers.

        Side Effects:
            - Raises RuntimeError on an invalid schema (the app does not start)
            - Starts one daemon thread per ticker when jobs are enabled
        """
        try:
            db.validate_schema()
        except ValueError as e:
            logger.critical("Database schema invalid: %s", e)
            raise RuntimeError(f"Database schema validation failed: {e}") from e

        if not gateway.is_configured:
            logger.warning("OPENROUTER_API_KEY not set - mood and quote jobs will idle")

        if not settings.jobs_enabled:
            logger.info("Background jobs disabled")
            return
        for ticker in tickers:
            ticker.start()

    @app.on_event("shutdown")
    async def stop_background_jobs() -> None:
        for ticker in tickers:
            ticker.stop()
        gateway.close()
        db.close()

    @app.get("/")
    def root() -> dict[str, Any]:
        return {"service": "JanusLeaf API", "version": APP_VERSION, "status": "running"}

    return app


def main() -> None:
    """Console entry point: load .env and serve with uvicorn."""
    load_dotenv()
    host = os.getenv("JANUSLEAF_HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    main()
