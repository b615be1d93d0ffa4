"""GitHub sync history repository."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.models.github_sync import GitHubSyncHistory
from apps.api.repositories.base import BaseRepository


class GitHubSyncRepository(BaseRepository[GitHubSyncHistory]):
    def __init__(self):
        super().__init__(GitHubSyncHistory)

    async def get_by_project(
        self, db: AsyncSession, project_id: uuid.UUID, limit: int = 20
    ) -> list[GitHubSyncHistory]:
        """Most recent sync operations first."""
        result = await db.execute(
            select(GitHubSyncHistory)
            .where(GitHubSyncHistory.project_id == project_id)
            .order_by(GitHubSyncHistory.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


github_sync_repo = GitHubSyncRepository()
