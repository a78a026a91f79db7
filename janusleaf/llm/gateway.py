"""AI gateway over OpenAI-compatible chat-completion providers.

One primary provider (OpenRouter by default) and one optional fallback. Every
call returns a result value instead of raising:

- ``Completed`` / ``MoodScored`` / ``QuoteGenerated`` on success
- ``RateLimited`` when the provider answered HTTP 429
- ``Failed`` for any other HTTP error, timeout, transport error, empty
  content or unparsable reply

Callers decide whether a ``RateLimited`` outcome is worth a second attempt
with ``use_fallback=True``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from janusleaf.config import ProviderSettings, Settings
from janusleaf.llm.prompts import get_mood_prompt, get_quote_prompt
from janusleaf.llm.responses import parse_mood_score, parse_quote
from janusleaf.observability.logging import get_logger
from janusleaf.observability.telemetry import counter, time_block

logger = get_logger(__name__)

MOOD_MAX_TOKENS = 5
MOOD_TEMPERATURE = 0.1
QUOTE_MAX_TOKENS = 500
QUOTE_TEMPERATURE = 0.7


@dataclass(frozen=True)
class Completed:
    text: str
    provider: str = ""


@dataclass(frozen=True)
class RateLimited:
    provider: str = ""


@dataclass(frozen=True)
class Failed:
    reason: str
    provider: str = ""


@dataclass(frozen=True)
class MoodScored:
    score: int
    provider: str = ""


@dataclass(frozen=True)
class QuoteGenerated:
    quote: str
    tags: list[str] = field(default_factory=list)
    provider: str = ""


CompletionResult = Completed | RateLimited | Failed
MoodResult = MoodScored | RateLimited | Failed
QuoteResult = QuoteGenerated | RateLimited | Failed


class AIGateway:
    """
    Stateless client for the primary and fallback providers.

    Holds one ``httpx.Client`` with a bounded timeout; pass ``transport`` to
    route requests elsewhere (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        primary: ProviderSettings,
        fallback: ProviderSettings | None = None,
        timeout_seconds: float = 30.0,
        connect_retries: int = 2,
        transport: httpx.BaseTransport | None = None,
    ):
        self.primary = primary
        self.fallback = fallback
        self.connect_retries = max(connect_retries, 0)
        self._client = httpx.Client(timeout=timeout_seconds, transport=transport)

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.BaseTransport | None = None
    ) -> AIGateway:
        return cls(
            primary=settings.primary,
            fallback=settings.fallback,
            timeout_seconds=settings.ai_timeout_seconds,
            connect_retries=settings.ai_connect_retries,
            transport=transport,
        )

    @property
    def is_configured(self) -> bool:
        """True when the primary provider has an API key."""
        return bool(self.primary.api_key)

    @property
    def fallback_enabled(self) -> bool:
        return self.fallback is not None and self.fallback.is_usable

    def close(self) -> None:
        self._client.close()

    def complete(
        self,
        prompt: str,
        max_tokens: int,
        temperature: float,
        use_fallback: bool = False,
    ) -> CompletionResult:
        """
        Send one chat-completion request and classify the outcome.

        Side Effects:
            - HTTP POST to the selected provider
            - Increments ai.* telemetry counters
        """
        provider = self.fallback if use_fallback else self.primary
        if provider is None or not provider.is_usable:
            name = provider.name if provider else "fallback"
            return Failed(reason="provider not configured", provider=name)

        payload = {
            "model": provider.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        counter(f"ai.{provider.name}.requests")
        try:
            with time_block(f"ai.{provider.name}.latency"):
                response = self._post(provider, payload)
        except httpx.TimeoutException:
            logger.warning("%s request timed out", provider.name)
            counter(f"ai.{provider.name}.failed")
            return Failed(reason="timeout", provider=provider.name)
        except httpx.HTTPError as e:
            logger.warning("%s request failed: %s", provider.name, e)
            counter(f"ai.{provider.name}.failed")
            return Failed(reason=f"transport error: {type(e).__name__}", provider=provider.name)

        if response.status_code == 429:
            logger.warning("%s rate limited the request", provider.name)
            counter(f"ai.{provider.name}.rate_limited")
            return RateLimited(provider=provider.name)

        if response.status_code < 200 or response.status_code >= 300:
            logger.warning("%s returned HTTP %d", provider.name, response.status_code)
            counter(f"ai.{provider.name}.failed")
            return Failed(reason=f"http {response.status_code}", provider=provider.name)

        content = _message_content(response)
        if not content or not content.strip():
            logger.warning("%s returned an empty completion", provider.name)
            counter(f"ai.{provider.name}.failed")
            return Failed(reason="empty content", provider=provider.name)

        return Completed(text=content, provider=provider.name)

    def analyze_mood(self, body: str, use_fallback: bool = False) -> MoodResult:
        """Score the mood of a journal body from 1 to 10."""
        result = self.complete(
            get_mood_prompt(body),
            max_tokens=MOOD_MAX_TOKENS,
            temperature=MOOD_TEMPERATURE,
            use_fallback=use_fallback,
        )
        if not isinstance(result, Completed):
            return result

        score = parse_mood_score(result.text)
        if score is None:
            return Failed(reason="unparsable mood score", provider=result.provider)
        return MoodScored(score=score, provider=result.provider)

    def generate_quote(self, journal_content: str, use_fallback: bool = False) -> QuoteResult:
        """
        Generate a quote and four tags from rendered journal content.

        Blank content selects the generic, non-personalized prompt.
        """
        result = self.complete(
            get_quote_prompt(journal_content),
            max_tokens=QUOTE_MAX_TOKENS,
            temperature=QUOTE_TEMPERATURE,
            use_fallback=use_fallback,
        )
        if not isinstance(result, Completed):
            return result

        parsed = parse_quote(result.text)
        if parsed is None:
            return Failed(reason="unparsable quote", provider=result.provider)

        quote, tags = parsed
        return QuoteGenerated(quote=quote, tags=tags, provider=result.provider)

    def _post(self, provider: ProviderSettings, payload: dict[str, Any]) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {provider.api_key}",
            "Content-Type": "application/json",
            **provider.extra_headers,
        }
        url = f"{provider.base_url.rstrip('/')}/chat/completions"

        @retry(
            stop=stop_after_attempt(self.connect_retries + 1),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            retry=retry_if_exception_type(httpx.ConnectError),
            reraise=True,
        )
        def send() -> httpx.Response:
            return self._client.post(url, json=payload, headers=headers)

        return send()


def _message_content(response: httpx.Response) -> str | None:
    try:
        data = response.json()
        content = data["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError):
        return None
    return content if isinstance(content, str) else None
