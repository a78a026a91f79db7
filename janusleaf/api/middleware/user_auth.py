"""
User authentication for the JanusLeaf API.

Tokens are issued by the external auth service as
``<user_id>.<hex HMAC-SHA256(secret, user_id)>`` and signed with the shared
``JANUSLEAF_TOKEN_SECRET``. This module only verifies them.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass

from cachetools import TTLCache
from fastapi import HTTPException, Request, status

from janusleaf.config import AUTH_CACHE_MAX_SIZE, AUTH_CACHE_TTL_SECONDS
from janusleaf.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AuthenticatedUser:
    """Identity resolved from a verified bearer token."""

    id: str

    def __str__(self) -> str:
        return f"User({self.id})"


def build_token_cache() -> TTLCache[str, AuthenticatedUser]:
    """Per-app cache of verified tokens; expiry forces a fresh check that the user still exists."""
    return TTLCache(maxsize=AUTH_CACHE_MAX_SIZE, ttl=AUTH_CACHE_TTL_SECONDS)


def sign_user_id(user_id: str, secret: str) -> str:
    """Signature half of a token; shared contract with the auth service."""
    return hmac.new(secret.encode(), user_id.encode(), hashlib.sha256).hexdigest()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_access_token(token: str, secret: str | None, is_production: bool) -> str:
    """
    Verify a bearer token and return the user id it names.

    Raises:
        HTTPException: 401 for bad tokens, 500 when production has no secret
    """
    if not secret:
        if is_production:
            logger.error("JANUSLEAF_TOKEN_SECRET not configured in production!")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Server misconfiguration: token secret not set",
            )
        logger.warning("JANUSLEAF_TOKEN_SECRET not set - treating token as user id (dev mode only)")
        return token

    user_id, sep, signature = token.rpartition(".")
    if not sep or not user_id or not signature:
        raise _unauthorized("Invalid or expired token")

    if not hmac.compare_digest(signature, sign_user_id(user_id, secret)):
        logger.warning("Token signature mismatch")
        raise _unauthorized("Invalid or expired token")

    return user_id


def _extract_bearer_token(authorization: str | None) -> str:
    """Extract token from Authorization header."""
    if not authorization:
        raise _unauthorized("Missing authorization header")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise _unauthorized("Invalid authorization header format. Expected: Bearer <token>")

    return parts[1]


async def get_current_user(request: Request) -> AuthenticatedUser:
    """
    FastAPI dependency to get the current authenticated user.

    Usage:
        @router.get("/endpoint")
        async def endpoint(user: AuthenticatedUser = Depends(get_current_user)):
            ...
    """
    token = _extract_bearer_token(request.headers.get("Authorization"))
    state = request.app.state
    token_cache: TTLCache[str, AuthenticatedUser] = state.token_cache
    if token in token_cache:
        return token_cache[token]

    settings = state.settings
    user_id = verify_access_token(token, settings.token_secret, settings.is_production)

    if not state.users.exists(user_id):
        logger.warning("Token names unknown user %s", user_id)
        raise _unauthorized("Unknown user")

    user = AuthenticatedUser(id=user_id)
    token_cache[token] = user
    logger.debug("Authenticated %s (cache size: %d)", user, len(token_cache))
    return user
