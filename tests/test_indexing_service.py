"""Indexing subscriber — embeds the files of each completed version."""
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from apps.api.repositories import version_repo
from apps.api.services.indexing_service import IndexingService
from events.schemas import EventType, GenerationEvent

FILES = {"app/page.tsx": "export default function Page() {}"}


@pytest.fixture
def index_db():
    db = MagicMock()

    async def fake_get_db():
        yield db

    with patch("apps.api.services.indexing_service.get_db", fake_get_db):
        yield db


@pytest.fixture
def file_index():
    index = MagicMock()
    index.embed_files = AsyncMock(return_value=1)
    with patch("apps.api.services.indexing_service.get_file_index", return_value=index):
        yield index


def _completed(project_id, version_id) -> dict:
    return GenerationEvent(
        source="generation_runner",
        event_type=EventType.GENERATION_COMPLETED,
        project_id=str(project_id),
        version_id=str(version_id),
        files=sorted(FILES),
    ).to_dict()


@pytest.mark.asyncio
async def test_completed_generation_indexes_version_files(index_db, file_index):
    project_id, version_id = uuid.uuid4(), uuid.uuid4()

    with patch.object(version_repo, "get_by_id", new=AsyncMock(return_value=MagicMock(files=FILES))) as get_version:
        await IndexingService()._handle_generation_completed(_completed(project_id, version_id))

    get_version.assert_awaited_once_with(index_db, version_id)
    file_index.embed_files.assert_awaited_once_with(index_db, project_id, FILES)


@pytest.mark.asyncio
async def test_event_without_version_is_ignored(index_db, file_index):
    event = _completed(uuid.uuid4(), uuid.uuid4())
    event["payload"]["version_id"] = ""

    with patch.object(version_repo, "get_by_id", new=AsyncMock()) as get_version:
        await IndexingService()._handle_generation_completed(event)

    get_version.assert_not_awaited()
    file_index.embed_files.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_version_is_skipped(index_db, file_index):
    with patch.object(version_repo, "get_by_id", new=AsyncMock(return_value=None)):
        await IndexingService()._handle_generation_completed(_completed(uuid.uuid4(), uuid.uuid4()))

    file_index.embed_files.assert_not_awaited()


@pytest.mark.asyncio
async def test_embedding_failure_is_contained(index_db, file_index):
    file_index.embed_files = AsyncMock(side_effect=RuntimeError("embedding provider down"))

    with patch.object(version_repo, "get_by_id", new=AsyncMock(return_value=MagicMock(files=FILES))):
        await IndexingService()._handle_generation_completed(_completed(uuid.uuid4(), uuid.uuid4()))

    file_index.embed_files.assert_awaited_once()


@pytest.mark.asyncio
async def test_indexing_is_skipped_without_embeddings(index_db):
    with patch("apps.api.services.indexing_service.get_file_index", return_value=None):
        assert await IndexingService().index_files(index_db, uuid.uuid4(), FILES) == 0


@pytest.mark.asyncio
async def test_subscriber_listens_for_completed_generations():
    bus = MagicMock()
    bus.subscribe = AsyncMock()
    service = IndexingService(bus)

    await service.start_subscriber()

    bus.subscribe.assert_awaited_once_with("generation.completed", service._handle_generation_completed)
