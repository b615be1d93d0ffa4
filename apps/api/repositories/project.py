"""Project repository with project-specific database operations."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.models.project import Project, SandboxState
from apps.api.repositories.base import BaseRepository


class ProjectRepository(BaseRepository[Project]):
    def __init__(self):
        super().__init__(Project)

    async def get_by_owner(
        self, db: AsyncSession, owner_id: uuid.UUID, skip: int = 0, limit: int = 100
    ) -> list[Project]:
        """Get all projects owned by a specific user, newest first."""
        result = await db.execute(
            select(Project)
            .where(Project.owner_id == owner_id)
            .offset(skip)
            .limit(limit)
            .order_by(Project.created_at.desc())
        )
        return list(result.scalars().all())

    async def count_by_owner(self, db: AsyncSession, owner_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count()).select_from(Project).where(Project.owner_id == owner_id)
        )
        return result.scalar_one()

    async def update_sandbox_state(
        self,
        db: AsyncSession,
        project: Project,
        status: SandboxState,
        metadata_updates: dict | None = None,
        sandbox_url: str | None = None,
    ) -> Project:
        """Record a sandbox lifecycle transition on the project.

        `metadata_updates` is merged into the existing metadata rather than
        replacing it. A fresh dict is assigned so the JSON column is flagged
        dirty.
        """
        metadata = dict(project.project_metadata or {})
        if metadata_updates:
            metadata.update(metadata_updates)
        project.project_metadata = metadata
        project.sandbox_status = status
        project.last_sandbox_check = datetime.now(timezone.utc)
        if sandbox_url is not None:
            project.sandbox_url = sandbox_url
        await db.commit()
        await db.refresh(project)
        return project


project_repo = ProjectRepository()
