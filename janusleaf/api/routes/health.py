"""Health check endpoints for the JanusLeaf API.

- /health - Service health including AI credential presence and ticker state
- /health/db - Database connection pool health
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request

from janusleaf.config import APP_VERSION

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """Service status; reports whether AI keys are configured without calling providers."""
    state = request.app.state
    gateway = state.gateway

    return {
        "status": "healthy",
        "service": "JanusLeaf API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "ai": {
            "ready": gateway.is_configured,
            "fallback_enabled": gateway.fallback_enabled,
        },
        "jobs": {ticker.name: ticker.is_running for ticker in state.tickers},
    }


@router.get("/health/db")
async def database_health(request: Request) -> dict[str, Any]:
    """
    Database health check endpoint.

    Reports degraded when pool usage exceeds 80%.
    """
    stats = request.app.state.db.pool_stats()
    usage_percent = stats["usage_percent"]

    return {
        "status": "degraded" if usage_percent > 80 else "healthy",
        "pool": stats,
        "warning": "Pool usage high" if usage_percent > 80 else None,
    }
