"""Indexing Service: subscribes to generation events and embeds the new files.

This service:
1. Listens for generation.completed events
2. Loads the files of the version that was just produced
3. Embeds changed files into file_embeddings for semantic search

Indexing is best-effort. A failure here never affects the generation that
triggered it; the next completed generation re-indexes whatever is stale.
"""

import logging
import uuid
from typing import Optional

from apps.api.database import get_db
from apps.api.repositories import version_repo
from apps.api.services.llm import get_file_index
from events.bus import BaseEventBus
from events.schemas import EventType

logger = logging.getLogger(__name__)


class IndexingService:
    """Keeps the semantic file index in step with generated versions."""

    def __init__(self, event_bus: Optional[BaseEventBus] = None):
        self.event_bus = event_bus

    def set_event_bus(self, event_bus: BaseEventBus):
        self.event_bus = event_bus

    async def start_subscriber(self):
        """Start listening for generation.completed events."""
        if not self.event_bus:
            logger.warning("Event bus not set, indexing subscriber not starting")
            return

        await self.event_bus.subscribe(
            EventType.GENERATION_COMPLETED.value, self._handle_generation_completed
        )
        logger.info("Indexing subscriber is now listening for generation.completed events")

    async def _handle_generation_completed(self, event_dict: dict):
        payload = event_dict.get("payload", {})
        project_id = payload.get("project_id")
        version_id = payload.get("version_id")

        logger.info("Indexing subscriber received generation.completed: project=%s version=%s", project_id, version_id)

        if not project_id or not version_id:
            logger.error("generation.completed without project_id/version_id: %s", payload)
            return

        try:
            async for db in get_db():
                version = await version_repo.get_by_id(db, uuid.UUID(version_id))
                if not version:
                    logger.warning("Version %s not found, nothing to index", version_id)
                    return
                await self.index_files(db, uuid.UUID(project_id), version.files or {})
                break
        except Exception as e:
            logger.error("Indexing failed for project %s: %s", project_id, e, exc_info=True)

    async def index_files(self, db, project_id: uuid.UUID, files: dict[str, str]) -> int:
        """Embed `files` for a project. Returns 0 when embeddings are not configured."""
        file_index = get_file_index()
        if file_index is None:
            logger.debug("Semantic index disabled, skipping %d files for project %s", len(files), project_id)
            return 0
        return await file_index.embed_files(db, project_id, files)


# Singleton
indexing_service = IndexingService()
