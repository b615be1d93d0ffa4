"""Version repository: numbered file snapshots per project."""

import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.models.version import Version, VersionStatus
from apps.api.repositories.base import BaseRepository


class VersionRepository(BaseRepository[Version]):
    def __init__(self):
        super().__init__(Version)

    async def get_by_project(
        self, db: AsyncSession, project_id: uuid.UUID, skip: int = 0, limit: int = 50
    ) -> list[Version]:
        """Versions of a project ordered by version number (ascending)."""
        result = await db.execute(
            select(Version)
            .where(Version.project_id == project_id)
            .order_by(Version.version_number.asc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_latest_complete(self, db: AsyncSession, project_id: uuid.UUID) -> Version | None:
        result = await db.execute(
            select(Version)
            .where(Version.project_id == project_id, Version.status == VersionStatus.COMPLETE)
            .order_by(Version.version_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_max_version_number(self, db: AsyncSession, project_id: uuid.UUID) -> int | None:
        result = await db.execute(
            select(func.max(Version.version_number)).where(Version.project_id == project_id)
        )
        return result.scalar_one_or_none()

    async def get_generating_for_job(
        self, db: AsyncSession, project_id: uuid.UUID, job_id: uuid.UUID
    ) -> list[Version]:
        """Versions a job created that never reached complete or failed."""
        result = await db.execute(
            select(Version).where(Version.project_id == project_id, Version.status == VersionStatus.GENERATING)
        )
        return [v for v in result.scalars().all() if (v.version_metadata or {}).get("jobId") == str(job_id)]

    async def count_by_project(self, db: AsyncSession, project_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count()).select_from(Version).where(Version.project_id == project_id)
        )
        return result.scalar_one()


version_repo = VersionRepository()
