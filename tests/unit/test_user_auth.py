"""Unit tests for bearer token authentication

Tests cover:
- Missing and malformed Authorization headers
- Signed tokens (valid, tampered, wrong secret)
- Unknown users
- Development mode without a secret
- Production without a secret
"""

from __future__ import annotations

import dataclasses

import pytest
from fastapi import Depends, FastAPI, HTTPException
from fastapi.testclient import TestClient

from janusleaf.api.middleware.user_auth import (
    AuthenticatedUser,
    build_token_cache,
    get_current_user,
    sign_user_id,
    verify_access_token,
)


def create_test_app(settings, users) -> FastAPI:
    """Create test FastAPI app with a protected endpoint"""
    test_app = FastAPI()
    test_app.state.settings = settings
    test_app.state.users = users
    test_app.state.token_cache = build_token_cache()

    @test_app.get("/protected")
    async def protected(user: AuthenticatedUser = Depends(get_current_user)):
        return {"user": user.id}

    return test_app


def token_for(user_id: str, secret: str = "test-secret") -> str:
    return f"{user_id}.{sign_user_id(user_id, secret)}"


@pytest.fixture
def client(settings, users):
    return TestClient(create_test_app(settings, users))


def test_rejects_missing_header(client):
    response = client.get("/protected")

    assert response.status_code == 401
    assert "Missing authorization header" in response.json()["detail"]
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_rejects_invalid_scheme(client):
    response = client.get("/protected", headers={"Authorization": f"Basic {token_for('user-1')}"})

    assert response.status_code == 401
    assert "Invalid authorization header format" in response.json()["detail"]


def test_accepts_signed_token(client):
    response = client.get("/protected", headers={"Authorization": f"Bearer {token_for('user-1')}"})

    assert response.status_code == 200
    assert response.json() == {"user": "user-1"}


@pytest.mark.parametrize(
    "token",
    [
        "user-1",
        "user-1.",
        ".deadbeef",
        "user-1.deadbeef",
        token_for("user-2").replace("user-2", "user-1"),
        token_for("user-1", secret="other-secret"),
    ],
)
def test_rejects_bad_tokens(client, token):
    response = client.get("/protected", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_rejects_unknown_user(client):
    response = client.get("/protected", headers={"Authorization": f"Bearer {token_for('ghost')}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Unknown user"


def test_user_ids_containing_dots(client, users):
    users.create("first.last", "fl@example.com")

    response = client.get(
        "/protected", headers={"Authorization": f"Bearer {token_for('first.last')}"}
    )

    assert response.json() == {"user": "first.last"}


def test_dev_mode_without_secret_uses_raw_user_id(settings, users):
    app = create_test_app(dataclasses.replace(settings, token_secret=None), users)

    response = TestClient(app).get("/protected", headers={"Authorization": "Bearer user-2"})

    assert response.json() == {"user": "user-2"}


def test_production_without_secret_is_a_server_error():
    with pytest.raises(HTTPException) as exc_info:
        verify_access_token("user-1", secret=None, is_production=True)

    assert exc_info.value.status_code == 500


def test_apps_do_not_share_verified_tokens(settings, users):
    token = token_for("user-1")
    first = TestClient(create_test_app(settings, users))
    rotated = dataclasses.replace(settings, token_secret="rotated")
    second = TestClient(create_test_app(rotated, users))

    assert first.get("/protected", headers={"Authorization": f"Bearer {token}"}).status_code == 200
    assert second.get("/protected", headers={"Authorization": f"Bearer {token}"}).status_code == 401


def test_verified_token_is_cached_per_app(settings, users):
    app = create_test_app(settings, users)
    token = token_for("user-1")

    TestClient(app).get("/protected", headers={"Authorization": f"Bearer {token}"})

    assert app.state.token_cache[token] == AuthenticatedUser(id="user-1")
