"""Parsing of raw model output into mood scores and quotes.

Parsers return None on anything malformed; the gateway turns that into a
``Failed`` result.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import BaseModel, ValidationError

from janusleaf.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TAGS: tuple[str, ...] = ("growth", "reflection", "journey", "mindfulness")
QUOTE_TAG_COUNT = 4
MIN_MOOD_SCORE = 1
MAX_MOOD_SCORE = 10

_INTEGER_RE = re.compile(r"[+-]?\d+")


def parse_mood_score(text: str) -> int | None:
    """Strict integer parse of the stripped reply, accepted only within 1..10."""
    content = text.strip()
    if not _INTEGER_RE.fullmatch(content):
        logger.warning("Mood reply is not an integer: %r", content[:50])
        return None

    score = int(content)
    if score < MIN_MOOD_SCORE or score > MAX_MOOD_SCORE:
        logger.warning("Mood score out of range: %d", score)
        return None
    return score


def extract_json(text: str) -> dict[str, Any] | None:
    """Extract a JSON object from a model reply.

    Handles markdown code fences and prose around the object: the first
    ``{`` that starts a decodable object wins, so braces in trailing prose
    are ignored.
    """
    text = re.sub(r"```json\s*", "", text)
    text = re.sub(r"```\s*", "", text)
    text = text.strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug("Reply is not bare JSON (%s), scanning for an embedded object", e)
        return _first_embedded_object(text)

    return parsed if isinstance(parsed, dict) else None


def _first_embedded_object(text: str) -> dict[str, Any] | None:
    decoder = json.JSONDecoder()
    for match in re.finditer(r"\{", text):
        try:
            parsed, _ = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


class QuotePayload(BaseModel):
    quote: str
    tags: list[str] = []


def normalize_tags(tags: list[str]) -> list[str]:
    """Drop blank tags, then truncate or pad to four; slot i pads with ``DEFAULT_TAGS[i]``."""
    cleaned = [tag.strip() for tag in tags if tag and tag.strip()]
    if len(cleaned) >= QUOTE_TAG_COUNT:
        return cleaned[:QUOTE_TAG_COUNT]
    return cleaned + list(DEFAULT_TAGS[len(cleaned) : QUOTE_TAG_COUNT])


def parse_quote(text: str) -> tuple[str, list[str]] | None:
    """Quote text and exactly four tags, or None if the reply is unusable."""
    data = extract_json(text)
    if data is None:
        logger.warning("No JSON object found in quote reply")
        return None

    try:
        payload = QuotePayload.model_validate(data)
    except ValidationError as e:
        logger.warning("Quote reply has unexpected shape: %s", e.error_count())
        return None

    quote = payload.quote.strip()
    if not quote:
        logger.warning("Quote reply contained a blank quote")
        return None

    return quote, normalize_tags(payload.tags)
