"""Generation event repository: the persisted side of the progress stream."""

import uuid

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.models.generation_event import GenerationEvent
from apps.api.repositories.base import BaseRepository


class GenerationEventRepository(BaseRepository[GenerationEvent]):
    def __init__(self):
        super().__init__(GenerationEvent)

    async def get_by_project(
        self, db: AsyncSession, project_id: uuid.UUID, limit: int = 50
    ) -> list[GenerationEvent]:
        """Events for a project in the order they happened."""
        result = await db.execute(
            select(GenerationEvent)
            .where(GenerationEvent.project_id == project_id)
            .order_by(GenerationEvent.timestamp.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def exists(
        self, db: AsyncSession, project_id: uuid.UUID, event_type: str, message: str
    ) -> bool:
        result = await db.execute(
            select(GenerationEvent.id)
            .where(
                GenerationEvent.project_id == project_id,
                GenerationEvent.event_type == event_type,
                GenerationEvent.message == message,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def delete_by_project(self, db: AsyncSession, project_id: uuid.UUID) -> int:
        """Delete every event for a project. Returns the number removed."""
        result = await db.execute(
            delete(GenerationEvent).where(GenerationEvent.project_id == project_id)
        )
        await db.commit()
        return result.rowcount or 0


generation_event_repo = GenerationEventRepository()
