"""Base repository with generic CRUD operations.

Each aggregate's repository subclasses this and adds its own queries.
"""

import uuid
from typing import Generic, TypeVar, Type

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.models.base import BaseModel

ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseRepository(Generic[ModelType]):
    """Generic repository providing CRUD operations for any model.

    Usage:
        class VersionRepository(BaseRepository[Version]):
            def __init__(self):
                super().__init__(Version)

        version_repo = VersionRepository()
        version = await version_repo.get_by_id(db, some_uuid)
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def get_by_id(self, db: AsyncSession, id: uuid.UUID) -> ModelType | None:
        """Get a single record by its UUID. Returns None if not found."""
        result = await db.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def get_all(
        self,
        db: AsyncSession,
        skip: int = 0,
        limit: int = 100,
    ) -> list[ModelType]:
        """Get a page of records, newest first."""
        result = await db.execute(
            select(self.model)
            .offset(skip)
            .limit(limit)
            .order_by(self.model.created_at.desc())
        )
        return list(result.scalars().all())

    async def count(self, db: AsyncSession) -> int:
        result = await db.execute(select(func.count()).select_from(self.model))
        return result.scalar_one()

    async def create(self, db: AsyncSession, **kwargs) -> ModelType:
        """Insert a record and return it refreshed (id, timestamps populated)."""
        instance = self.model(**kwargs)
        db.add(instance)
        await db.commit()
        await db.refresh(instance)
        return instance

    async def update(
        self, db: AsyncSession, instance: ModelType, **kwargs
    ) -> ModelType:
        """Set the given attributes on an instance and commit.

        Keys that are not attributes of the model are ignored.
        """
        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)
        await db.commit()
        await db.refresh(instance)
        return instance

    async def delete(self, db: AsyncSession, instance: ModelType) -> None:
        await db.delete(instance)
        await db.commit()
