"""Deployment SSE feed — polls until a terminal state, a failure or a disconnect."""
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from apps.api.exceptions import ForgeException
from apps.api.routes.deploy import status_frames
from apps.api.services.vercel_service import vercel_service


@pytest.fixture
def poll_db():
    db = MagicMock()

    async def fake_get_db():
        yield db

    with patch("apps.api.routes.deploy.get_db", fake_get_db):
        yield db


def _request(disconnected=(False,)):
    request = MagicMock()
    request.is_disconnected = AsyncMock(side_effect=list(disconnected))
    return request


async def _frames(request, user) -> list[dict]:
    return [
        json.loads(frame.removeprefix("data: ").strip())
        async for frame in status_frames(request, user, "dpl_1", interval_seconds=0)
    ]


def _status(state, done):
    return {"success": True, "status": state, "url": "https://todo.vercel.app", "done": done}


@pytest.mark.asyncio
async def test_stream_stops_at_terminal_state(poll_db, member_user):
    polls = [_status("QUEUED", False), _status("BUILDING", False), _status("READY", True), _status("READY", True)]

    with patch.object(vercel_service, "get_status", new=AsyncMock(side_effect=polls)) as get_status:
        frames = await _frames(_request([False] * 10), member_user)

    assert [f["status"] for f in frames] == ["QUEUED", "BUILDING", "READY"]
    assert frames[-1]["done"] is True
    assert get_status.await_count == 3
    get_status.assert_awaited_with(poll_db, member_user, "dpl_1")


@pytest.mark.asyncio
async def test_stream_reports_poll_failure_and_ends(poll_db, member_user):
    failure = ForgeException("Failed to get deployment status: Unauthorized", status_code=502)

    with patch.object(vercel_service, "get_status", new=AsyncMock(side_effect=[_status("BUILDING", False), failure])):
        frames = await _frames(_request([False] * 10), member_user)

    assert frames[-1] == {"success": False, "error": "Failed to get deployment status: Unauthorized", "done": True}
    assert len(frames) == 2


@pytest.mark.asyncio
async def test_stream_ends_when_client_disconnects(poll_db, member_user):
    with patch.object(vercel_service, "get_status", new=AsyncMock(return_value=_status("BUILDING", False))) as get_status:
        frames = await _frames(_request([False, True]), member_user)

    assert len(frames) == 1
    assert get_status.await_count == 1
