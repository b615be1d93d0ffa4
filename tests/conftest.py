"""Pytest fixtures for API and internal tests.

Uses a minimal app with a no-op lifespan: no Redis, Docker or LLM.
Auth and DB are overridden per test; repositories and services are patched.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import MagicMock
import uuid

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from apps.api.auth import get_current_user
from apps.api.database import get_db
from apps.api.exceptions import ForgeException, forge_exception_handler
from apps.api.models.project import Project, ProjectStatus, SandboxState
from apps.api.models.user import User, UserRole
from apps.api.routes import (
    auth,
    deploy,
    generation,
    github,
    health,
    messages,
    projects,
    sandbox,
    stream,
    versions,
)


@asynccontextmanager
async def noop_lifespan(app: FastAPI):
    """Minimal lifespan for tests — no Redis, event bus or cleanup task."""
    yield


@pytest.fixture
def test_app() -> FastAPI:
    app = FastAPI(lifespan=noop_lifespan)
    app.add_exception_handler(ForgeException, forge_exception_handler)
    for module in (auth, deploy, generation, github, health, messages, projects, sandbox, stream, versions):
        app.include_router(module.router)
    return app


@pytest.fixture
def client(test_app: FastAPI) -> TestClient:
    return TestClient(test_app)


def _make_user(role: UserRole, email: str) -> User:
    u = MagicMock(spec=User)
    u.id = uuid.uuid4()
    u.role = role
    u.email = email
    u.full_name = email.split("@")[0].title()
    u.is_active = True
    u.github_access_token = None
    u.github_username = None
    u.vercel_access_token = None
    u.avatar_url = None
    u.created_at = u.updated_at = datetime.now(timezone.utc)
    return u


@pytest.fixture
def member_user() -> User:
    return _make_user(UserRole.MEMBER, "dev@test.com")


@pytest.fixture
def other_user() -> User:
    """A second member who owns nothing the tests create."""
    return _make_user(UserRole.MEMBER, "other@test.com")


@pytest.fixture
def admin_user() -> User:
    return _make_user(UserRole.ADMIN, "admin@test.com")


@pytest.fixture
def make_project():
    """Build a detached Project row owned by `owner`."""
    def _make(owner: User, **fields) -> Project:
        now = datetime.now(timezone.utc)
        defaults = dict(
            id=uuid.uuid4(),
            created_at=now,
            updated_at=now,
            name="todo-api",
            description=None,
            framework="nextjs",
            status=ProjectStatus.READY,
            prompt=None,
            repo_url=None,
            repo_full_name=None,
            default_branch="main",
            sandbox_url=None,
            sandbox_status=SandboxState.UNKNOWN,
            last_sandbox_check=None,
            project_metadata={},
            deploy_url=None,
            owner_id=owner.id,
        )
        defaults.update(fields)
        return Project(**defaults)

    return _make


@pytest.fixture
def login_as(client: TestClient):
    """Authenticate every request as the given user, with a mocked session.

        db = login_as(member_user)
    """
    def _login(user: User):
        db = MagicMock()

        async def override_get_db():
            yield db

        async def override_get_current_user():
            return user

        client.app.dependency_overrides[get_db] = override_get_db
        client.app.dependency_overrides[get_current_user] = override_get_current_user
        return db

    yield _login
    client.app.dependency_overrides.clear()
