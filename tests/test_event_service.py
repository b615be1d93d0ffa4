"""Event service publish and launch dedup — no Redis; mock bus and client."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from apps.api.services.event_service import DEDUP_WINDOW_SECONDS, EventService, event_service
from events.schemas import GenerationEvent


@pytest.mark.asyncio
async def test_publish_no_op_when_no_bus():
    event_service._event_bus = None
    await event_service.publish("test.topic", {"key": "value"})
    # No exception, no call


@pytest.mark.asyncio
async def test_publish_calls_bus_when_set():
    mock_bus = MagicMock()
    mock_bus.publish = AsyncMock()
    event_service._event_bus = mock_bus
    await event_service.publish("generation.started", {"job_id": "j-1", "project_id": "p-1"})
    mock_bus.publish.assert_called_once()
    call_args = mock_bus.publish.call_args
    assert call_args[0][0] == "generation.started"
    event_obj = call_args[0][1]
    assert hasattr(event_obj, "to_dict")
    d = event_obj.to_dict()
    assert d["event_type"] == "generation.started"
    assert d["payload"] == {"job_id": "j-1", "project_id": "p-1"}
    assert "timestamp" in d
    event_service._event_bus = None


@pytest.mark.asyncio
async def test_publish_event_swallows_bus_errors():
    service = EventService()
    bus = MagicMock()
    bus.publish = AsyncMock(side_effect=ConnectionError("redis gone"))
    service.set_event_bus(bus)

    event = GenerationEvent(source="api", event_type="generation.completed", project_id="p-1")
    await service.publish_event("generation.completed", event)

    bus.publish.assert_awaited_once_with("generation.completed", event)


@pytest.fixture
def redis_service():
    service = EventService()
    service._redis_client = MagicMock()
    service._redis_client.delete = AsyncMock()
    service._redis_client.close = AsyncMock()
    return service


@pytest.mark.asyncio
async def test_first_claim_is_not_a_duplicate(redis_service):
    redis_service._redis_client.set = AsyncMock(return_value=True)

    assert await redis_service.is_duplicate("job:abc") is False
    redis_service._redis_client.set.assert_awaited_once_with(
        "forge:dedup:job:abc", "1", nx=True, ex=DEDUP_WINDOW_SECONDS
    )


@pytest.mark.asyncio
async def test_second_claim_is_a_duplicate(redis_service):
    redis_service._redis_client.set = AsyncMock(return_value=None)
    assert await redis_service.is_duplicate("job:abc", ttl_seconds=5) is True


@pytest.mark.asyncio
async def test_empty_key_is_never_a_duplicate(redis_service):
    redis_service._redis_client.set = AsyncMock()
    assert await redis_service.is_duplicate("") is False
    redis_service._redis_client.set.assert_not_called()


@pytest.mark.asyncio
async def test_release_and_close(redis_service):
    client = redis_service._redis_client
    await redis_service.release("job:abc")
    client.delete.assert_awaited_once_with("forge:dedup:job:abc")

    await redis_service.close()
    client.close.assert_awaited_once()
    assert redis_service._redis_client is None
