"""
Error message sanitization for API responses.

Keeps file paths, SQL errors, tokens and module names out of messages that
reach clients.
"""

from __future__ import annotations

import re

from janusleaf.observability.logging import get_logger

logger = get_logger(__name__)

SENSITIVE_PATTERNS = [
    # File paths
    r"/[^\s]+\.py",
    r"[A-Za-z]:\\[^\s]+",
    # Stack traces
    r"Traceback \(most recent call last\)",
    r"File \".*\"",
    # Database errors
    r"sqlite3?\.",
    r"UNIQUE constraint",
    r"FOREIGN KEY constraint",
    r"CHECK constraint",
    r"no such (table|column)",
    # Secrets
    r"Bearer [A-Za-z0-9._-]+",
    r"sk-[A-Za-z0-9_-]{10,}",
    # Internal module names
    r"janusleaf\.[a-z_.]+",
]

GENERIC_MESSAGES = {
    400: "Invalid request. Please check your input and try again.",
    401: "Authentication required.",
    404: "Resource not found.",
    409: "The resource was modified by another request.",
    422: "Invalid data format.",
    500: "An internal error occurred. Please try again later.",
}


def sanitize_error_message(message: str, status_code: int = 500) -> str:
    """
    Sanitize an error message to prevent information leakage.

    Short single-line 400 messages pass through; everything else that looks
    sensitive, or any non-400 message, becomes the generic text for the status.
    """
    if not message:
        return GENERIC_MESSAGES.get(status_code, "An error occurred.")

    for pattern in SENSITIVE_PATTERNS:
        if re.search(pattern, message, re.IGNORECASE):
            logger.warning("Sanitized sensitive error pattern: %s", pattern)
            return GENERIC_MESSAGES.get(status_code, "An error occurred.")

    if status_code == 400 and len(message) < 100 and "\n" not in message:
        return message

    return GENERIC_MESSAGES.get(status_code, "An error occurred.")
