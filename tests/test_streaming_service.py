"""Streaming service and SSE frames — in-process connections, persisted timeline."""
import asyncio
import json
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from apps.api.models.generation_event import EventIcon
from apps.api.repositories import generation_event_repo
from apps.api.routes.stream import CONNECTED_FRAME, HEARTBEAT_FRAME, sse_frames
from apps.api.services.streaming_service import CLOSE_FRAME, StreamingService, format_sse
from events.stream import CodeChunk, FileComplete, StepStart


@pytest.fixture
def service() -> StreamingService:
    return StreamingService(stale_after_seconds=3600)


@pytest.fixture
def fake_db():
    db = MagicMock()

    async def fake_get_db():
        yield db

    with patch("apps.api.services.streaming_service.get_db", fake_get_db):
        yield db


def test_connections_are_counted_per_project(service):
    cleanup_a = service.add_connection("p1", MagicMock())
    service.add_connection("p1", MagicMock())
    service.add_connection("p2", MagicMock())

    assert service.get_connection_count("p1") == 2
    assert service.get_total_connections() == 3

    cleanup_a()
    assert service.get_connection_count("p1") == 1


def test_close_project_sends_close_frame(service):
    callback = MagicMock()
    service.add_connection("p1", callback)

    service.close_project("p1")

    callback.assert_called_once_with(CLOSE_FRAME)
    assert service.get_connection_count("p1") == 0


def test_stale_connections_are_swept(service):
    service.add_connection("p1", MagicMock())
    service.add_connection("p1", MagicMock())
    service._connections["p1"][0].created_at -= 7200

    assert service.cleanup_stale_connections() == 1
    assert service.get_connection_count("p1") == 1


def test_format_sse():
    assert format_sse({"type": "complete"}) == 'data: {"type": "complete"}\n\n'


@pytest.mark.asyncio
async def test_emit_delivers_and_persists(service, fake_db):
    project_id = str(uuid.uuid4())
    frames = []
    service.add_connection(project_id, frames.append)

    with patch.object(generation_event_repo, "create", new=AsyncMock()) as create:
        await service.emit(project_id, StepStart(step="Planning", message="Analyzing your request..."))

    assert len(frames) == 1
    data = json.loads(frames[0].removeprefix("data: "))
    assert data["type"] == "step:start"
    assert isinstance(data["timestamp"], int)

    kwargs = create.await_args.kwargs
    assert kwargs["project_id"] == uuid.UUID(project_id)
    assert kwargs["message"] == "Analyzing your request..."
    assert kwargs["icon"] == EventIcon.IN_PROGRESS


@pytest.mark.asyncio
async def test_duplicate_file_events_are_stored_once(service, fake_db):
    project_id = str(uuid.uuid4())
    event = FileComplete(filename="app/page.tsx", content="x", path="app/page.tsx")

    with patch.object(generation_event_repo, "exists", new=AsyncMock(return_value=True)), \
         patch.object(generation_event_repo, "create", new=AsyncMock()) as create:
        await service.emit(project_id, event)

    create.assert_not_called()


@pytest.mark.asyncio
async def test_code_chunks_are_not_persisted(service, fake_db):
    with patch.object(generation_event_repo, "create", new=AsyncMock()) as create:
        await service.emit(str(uuid.uuid4()), CodeChunk(filename="a.tsx", chunk="<div>", progress=140))
    create.assert_not_called()


@pytest.mark.asyncio
async def test_broken_connection_does_not_stop_delivery(service, fake_db):
    project_id = str(uuid.uuid4())
    service.add_connection(project_id, MagicMock(side_effect=RuntimeError("closed")))
    healthy = MagicMock()
    service.add_connection(project_id, healthy)

    with patch.object(generation_event_repo, "create", new=AsyncMock(side_effect=Exception("db down"))):
        await service.emit(project_id, {"type": "error", "message": "boom"})

    healthy.assert_called_once()


@pytest.mark.asyncio
async def test_sse_frames_heartbeat_then_close():
    request = MagicMock()
    request.is_disconnected = AsyncMock(return_value=False)
    local = StreamingService()

    with patch("apps.api.routes.stream.streaming_service", local):
        frames = sse_frames(request, "p1", heartbeat_seconds=0.01)

        assert await frames.__anext__() == CONNECTED_FRAME
        assert local.get_connection_count("p1") == 1
        assert await frames.__anext__() == HEARTBEAT_FRAME

        local.close_project("p1")
        # close_project forgot the connection; the queued close frame is still delivered
        assert await frames.__anext__() == CLOSE_FRAME
        with pytest.raises(StopAsyncIteration):
            await frames.__anext__()


@pytest.mark.asyncio
async def test_sse_frames_stop_when_client_leaves():
    request = MagicMock()
    request.is_disconnected = AsyncMock(side_effect=[False, True])
    local = StreamingService()

    with patch("apps.api.routes.stream.streaming_service", local):
        frames = sse_frames(request, "p1", heartbeat_seconds=0.01)
        assert await frames.__anext__() == CONNECTED_FRAME
        assert await frames.__anext__() == HEARTBEAT_FRAME
        with pytest.raises(StopAsyncIteration):
            await frames.__anext__()

    assert local.get_connection_count("p1") == 0
