"""Messages and fragments API."""
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from apps.api.models.message import Fragment, Message, MessageRole, MessageType
from apps.api.repositories import fragment_repo, message_repo, project_repo


def _message(project_id, content="Build a todo API", role=MessageRole.USER) -> Message:
    now = datetime.now(timezone.utc)
    return Message(
        id=uuid.uuid4(),
        created_at=now,
        updated_at=now,
        content=content,
        role=role,
        type=MessageType.RESULT,
        project_id=project_id,
    )


def _fragment(message: Message) -> Fragment:
    now = datetime.now(timezone.utc)
    fragment = Fragment(
        id=uuid.uuid4(),
        created_at=now,
        updated_at=now,
        sandbox_url="http://localhost:49152",
        title="Todo API",
        files={"main.py": "app = FastAPI()"},
        message_id=message.id,
    )
    fragment.message = message
    return fragment


@pytest.fixture
def project(member_user, make_project):
    return make_project(member_user)


@pytest.fixture
def owner_session(client, login_as, member_user, project):
    login_as(member_user)
    with patch.object(project_repo, "get_by_id", new=AsyncMock(return_value=project)):
        yield


def test_list_messages(client, project, owner_session):
    messages = [_message(project.id), _message(project.id, "Done", MessageRole.ASSISTANT)]

    with patch.object(message_repo, "get_by_project", new=AsyncMock(return_value=messages)):
        r = client.get(f"/projects/{project.id}/messages?include_fragment=false")

    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 2
    assert [m["role"] for m in body["messages"]] == ["user", "assistant"]
    assert body["messages"][0]["fragment"] is None


def test_create_message_stores_enum_members(client, project, owner_session):
    with patch.object(message_repo, "create", new=AsyncMock(return_value=_message(project.id))) as create:
        r = client.post(f"/projects/{project.id}/messages", json={"content": "Build a todo API"})

    assert r.status_code == 201
    kwargs = create.await_args.kwargs
    assert kwargs["role"] is MessageRole.USER
    assert kwargs["type"] is MessageType.RESULT


def test_create_message_rejects_unknown_role(client, project, owner_session):
    r = client.post(f"/projects/{project.id}/messages", json={"content": "hi", "role": "system"})
    assert r.status_code == 422


def test_second_fragment_on_a_message_conflicts(client, project, owner_session):
    message = _message(project.id)

    with patch.object(message_repo, "get_by_id", new=AsyncMock(return_value=message)), \
         patch.object(fragment_repo, "get_by_message", new=AsyncMock(return_value=[_fragment(message)])):
        r = client.post(
            f"/messages/{message.id}/fragments",
            json={"sandbox_url": "http://localhost:49152", "title": "Again"},
        )

    assert r.status_code == 409


def test_fragment_url_must_be_http(client, project, owner_session):
    r = client.post(
        f"/messages/{uuid.uuid4()}/fragments",
        json={"sandbox_url": "ftp://example.com", "title": "Bad"},
    )
    assert r.status_code == 422


def test_get_fragment(client, project, owner_session):
    fragment = _fragment(_message(project.id))

    with patch.object(fragment_repo, "get_with_message", new=AsyncMock(return_value=fragment)):
        r = client.get(f"/fragments/{fragment.id}")

    assert r.status_code == 200
    assert r.json()["files"] == {"main.py": "app = FastAPI()"}


def test_missing_fragment_is_404(client, project, owner_session):
    with patch.object(fragment_repo, "get_with_message", new=AsyncMock(return_value=None)):
        r = client.get(f"/fragments/{uuid.uuid4()}")
    assert r.status_code == 404


def test_messages_of_foreign_project_are_forbidden(client, login_as, other_user, project):
    login_as(other_user)
    with patch.object(project_repo, "get_by_id", new=AsyncMock(return_value=project)):
        r = client.get(f"/projects/{project.id}/messages")
    assert r.status_code == 403
