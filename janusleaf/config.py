"""Centralized configuration for the JanusLeaf backend.

Typed module constants cover infrastructure knobs (database pool, API limits,
auth cache). Runtime behaviour that components receive by injection (AI
providers, queue timing, ticker schedules) is gathered in ``Settings``, built
from the environment with ``Settings.from_env()``. Every variable has a safe
default so the app starts without extra env configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _env(name: str, default: str) -> str:
    return os.getenv(name, default)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# --- App ---
APP_VERSION: str = "1.0.0"
APP_ENV: str = _env("JANUSLEAF_ENV", "development")

# --- Database ---
DB_PATH: Path = Path(_env("JANUSLEAF_DB_PATH", "data/janusleaf.db"))
DB_POOL_SIZE: int = int(_env("JANUSLEAF_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(_env("JANUSLEAF_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(_env("JANUSLEAF_DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(_env("JANUSLEAF_DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(_env("JANUSLEAF_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(_env("JANUSLEAF_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(_env("JANUSLEAF_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(_env("JANUSLEAF_DB_RETRY_JITTER", "0.1"))

# --- Journal ---
JOURNAL_TITLE_MAX_LENGTH: int = 255
JOURNAL_BODY_MAX_LENGTH: int = 50000
JOURNAL_PREVIEW_LENGTH: int = 150

# --- API ---
API_PAGE_SIZE_DEFAULT: int = 20
API_PAGE_SIZE_MAX: int = 100

# --- Auth ---
AUTH_CACHE_MAX_SIZE: int = 1000
AUTH_CACHE_TTL_SECONDS: int = 600

# --- AI providers ---
OPENROUTER_DEFAULT_BASE_URL: str = "https://openrouter.ai/api/v1"
OPENROUTER_DEFAULT_MODEL: str = "google/gemma-3-27b-it:free"
FALLBACK_DEFAULT_BASE_URL: str = "https://api.chatanywhere.org/v1"
FALLBACK_DEFAULT_MODEL: str = "gpt-4o-mini"

# --- Jobs ---
# Six-field expressions carry seconds first.
MOOD_ANALYSIS_CRON_DEFAULT: str = "*/3 * * * * *"
INSPIRATIONAL_QUOTE_CRON_DEFAULT: str = "*/30 * * * * *"


@dataclass(frozen=True)
class ProviderSettings:
    """Connection details for one OpenAI-compatible chat-completion provider."""

    name: str
    base_url: str
    model: str
    api_key: str | None = None
    enabled: bool = True
    extra_headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_usable(self) -> bool:
        return self.enabled and bool(self.api_key)


@dataclass(frozen=True)
class Settings:
    """Injectable runtime settings for the enrichment core and its tickers."""

    primary: ProviderSettings
    fallback: ProviderSettings
    ai_timeout_seconds: float = 30.0
    ai_connect_retries: int = 2

    mood_debounce_delay_ms: int = 5000
    mood_backoff_base_ms: int = 10000
    mood_max_retries: int = 5
    mood_min_body_length: int = 10
    mood_claim_timeout_seconds: int = 120

    quote_max_journal_entries: int = 20
    quote_stale_hours: int = 24

    jobs_enabled: bool = True
    mood_analysis_cron: str = MOOD_ANALYSIS_CRON_DEFAULT
    inspirational_quote_cron: str = INSPIRATIONAL_QUOTE_CRON_DEFAULT

    db_path: Path = DB_PATH
    environment: str = APP_ENV
    token_secret: str | None = None

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables (call after load_dotenv)."""
        primary = ProviderSettings(
            name="openrouter",
            base_url=_env("OPENROUTER_BASE_URL", OPENROUTER_DEFAULT_BASE_URL),
            model=_env("OPENROUTER_MODEL", OPENROUTER_DEFAULT_MODEL),
            api_key=os.getenv("OPENROUTER_API_KEY") or None,
            extra_headers={
                "HTTP-Referer": _env("OPENROUTER_SITE_URL", "https://janusleaf.app"),
                "X-Title": _env("OPENROUTER_APP_NAME", "JanusLeaf Journal"),
            },
        )
        fallback = ProviderSettings(
            name="fallback",
            base_url=_env("FALLBACK_BASE_URL", FALLBACK_DEFAULT_BASE_URL),
            model=_env("FALLBACK_MODEL", FALLBACK_DEFAULT_MODEL),
            api_key=os.getenv("FALLBACK_API_KEY") or None,
            enabled=_env_bool("FALLBACK_ENABLED", False),
        )
        return cls(
            primary=primary,
            fallback=fallback,
            ai_timeout_seconds=float(_env("AI_TIMEOUT_SECONDS", "30")),
            ai_connect_retries=int(_env("AI_CONNECT_RETRIES", "2")),
            mood_debounce_delay_ms=int(_env("MOOD_DEBOUNCE_DELAY_MS", "5000")),
            mood_backoff_base_ms=int(_env("MOOD_BACKOFF_BASE_MS", "10000")),
            mood_max_retries=int(_env("MOOD_MAX_RETRIES", "5")),
            mood_min_body_length=int(_env("MOOD_MIN_BODY_LENGTH", "10")),
            mood_claim_timeout_seconds=int(_env("MOOD_CLAIM_TIMEOUT_SECONDS", "120")),
            quote_max_journal_entries=int(_env("QUOTE_MAX_JOURNAL_ENTRIES", "20")),
            quote_stale_hours=int(_env("QUOTE_STALE_HOURS", "24")),
            jobs_enabled=_env_bool("JOBS_ENABLED", True),
            mood_analysis_cron=_env("JOBS_MOOD_ANALYSIS_CRON", MOOD_ANALYSIS_CRON_DEFAULT),
            inspirational_quote_cron=_env(
                "JOBS_INSPIRATIONAL_QUOTE_CRON", INSPIRATIONAL_QUOTE_CRON_DEFAULT
            ),
            db_path=Path(_env("JANUSLEAF_DB_PATH", str(DB_PATH))),
            environment=_env("JANUSLEAF_ENV", "development"),
            token_secret=os.getenv("JANUSLEAF_TOKEN_SECRET") or None,
        )
