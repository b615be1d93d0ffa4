"""Auth API — register, login, token resolution and integrations; users patched."""
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from apps.api.auth import create_access_token, decode_access_token, hash_password
from apps.api.database import get_db
from apps.api.repositories import user_repo


@pytest.fixture
def anonymous_db(client: TestClient):
    """Only the session is overridden; the bearer token is resolved for real."""
    async def override_get_db():
        yield None

    client.app.dependency_overrides[get_db] = override_get_db
    yield
    client.app.dependency_overrides.clear()


def test_token_roundtrip(member_user):
    token, expires_in = create_access_token(member_user.id)
    assert expires_in == 3600
    assert decode_access_token(token) == member_user.id


def test_bad_tokens_decode_to_none(member_user):
    expired, _ = create_access_token(member_user.id, expires_minutes=-1)
    assert decode_access_token(expired) is None
    assert decode_access_token("not-a-jwt") is None

    token, _ = create_access_token(member_user.id)
    assert decode_access_token(token[:-4] + "AAAA") is None


def test_register_returns_token(client: TestClient, anonymous_db, member_user):
    with patch.object(user_repo, "get_by_email", new=AsyncMock(return_value=None)), \
         patch.object(user_repo, "create", new=AsyncMock(return_value=member_user)) as create:
        r = client.post(
            "/auth/register",
            json={"email": "dev@test.com", "password": "s3cret-pass", "full_name": "Dev"},
        )

    assert r.status_code == 201
    data = r.json()
    assert data["token_type"] == "bearer"
    assert decode_access_token(data["access_token"]) == member_user.id
    assert data["user"]["github_connected"] is False
    # The stored hash is never the password itself
    assert create.await_args.kwargs["hashed_password"] != "s3cret-pass"


def test_register_duplicate_email(client: TestClient, anonymous_db, member_user):
    with patch.object(user_repo, "get_by_email", new=AsyncMock(return_value=member_user)):
        r = client.post(
            "/auth/register",
            json={"email": "dev@test.com", "password": "s3cret-pass", "full_name": "Dev"},
        )
    assert r.status_code == 409


def test_register_rejects_short_password(client: TestClient, anonymous_db):
    r = client.post("/auth/register", json={"email": "dev@test.com", "password": "short", "full_name": "Dev"})
    assert r.status_code == 422


def test_login(client: TestClient, anonymous_db, member_user):
    member_user.hashed_password = hash_password("correct-horse")
    with patch.object(user_repo, "get_by_email", new=AsyncMock(return_value=member_user)):
        ok = client.post("/auth/login", data={"username": "dev@test.com", "password": "correct-horse"})
        bad = client.post("/auth/login", data={"username": "dev@test.com", "password": "battery-staple"})

    assert ok.status_code == 200
    assert ok.json()["user"]["email"] == "dev@test.com"
    assert bad.status_code == 401
    assert bad.json()["error"]["message"] == "Invalid email or password"


def test_login_deactivated_account(client: TestClient, anonymous_db, member_user):
    member_user.hashed_password = hash_password("correct-horse")
    member_user.is_active = False
    with patch.object(user_repo, "get_by_email", new=AsyncMock(return_value=member_user)):
        r = client.post("/auth/login", data={"username": "dev@test.com", "password": "correct-horse"})
    assert r.status_code == 401


def test_me_resolves_bearer_token(client: TestClient, anonymous_db, member_user):
    token, _ = create_access_token(member_user.id)
    with patch.object(user_repo, "get_by_id", new=AsyncMock(return_value=member_user)) as get_by_id:
        r = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert r.status_code == 200
    assert r.json()["email"] == "dev@test.com"
    assert get_by_id.await_args.args[1] == member_user.id


def test_me_rejects_unknown_user(client: TestClient, anonymous_db, member_user):
    token, _ = create_access_token(member_user.id)
    with patch.object(user_repo, "get_by_id", new=AsyncMock(return_value=None)):
        r = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_me_requires_token(client: TestClient):
    assert client.get("/auth/me").status_code == 401


def test_integrations_empty_string_disconnects(client: TestClient, login_as, member_user):
    login_as(member_user)
    member_user.vercel_access_token = "vc_live"

    async def fake_update(db, user, **changes):
        for key, value in changes.items():
            setattr(user, key, value)
        return user

    with patch.object(user_repo, "update", new=AsyncMock(side_effect=fake_update)) as update:
        r = client.put("/auth/integrations", json={"github_access_token": "ghp_abc", "vercel_access_token": ""})

    assert update.await_args.kwargs == {"github_access_token": "ghp_abc", "vercel_access_token": None}
    assert r.json()["github_connected"] is True
    assert r.json()["vercel_connected"] is False
