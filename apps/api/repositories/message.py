"""Message and fragment repositories."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from apps.api.models.message import Message, Fragment
from apps.api.repositories.base import BaseRepository


class MessageRepository(BaseRepository[Message]):
    def __init__(self):
        super().__init__(Message)

    async def get_by_project(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
        include_fragment: bool = True,
    ) -> list[Message]:
        """Messages of a project, newest first."""
        query = (
            select(Message)
            .where(Message.project_id == project_id)
            .order_by(Message.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        if include_fragment:
            query = query.options(selectinload(Message.fragment))
        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_recent(
        self, db: AsyncSession, project_id: uuid.UUID, limit: int = 20
    ) -> list[Message]:
        """The last `limit` messages in chronological order (oldest first)."""
        messages = await self.get_by_project(db, project_id, limit=limit, include_fragment=False)
        return list(reversed(messages))


class FragmentRepository(BaseRepository[Fragment]):
    def __init__(self):
        super().__init__(Fragment)

    async def get_by_message(
        self, db: AsyncSession, message_id: uuid.UUID, skip: int = 0, limit: int = 20
    ) -> list[Fragment]:
        result = await db.execute(
            select(Fragment)
            .where(Fragment.message_id == message_id)
            .order_by(Fragment.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_with_message(self, db: AsyncSession, fragment_id: uuid.UUID) -> Fragment | None:
        """Load a fragment together with its message (needed for ownership checks)."""
        result = await db.execute(
            select(Fragment)
            .where(Fragment.id == fragment_id)
            .options(selectinload(Fragment.message))
        )
        return result.scalar_one_or_none()


message_repo = MessageRepository()
fragment_repo = FragmentRepository()
