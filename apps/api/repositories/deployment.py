"""Deployment repository (Vercel deployments)."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.models.deployment import Deployment
from apps.api.repositories.base import BaseRepository


class DeploymentRepository(BaseRepository[Deployment]):
    def __init__(self):
        super().__init__(Deployment)

    async def get_latest_for_project(self, db: AsyncSession, project_id: uuid.UUID) -> Deployment | None:
        result = await db.execute(
            select(Deployment)
            .where(Deployment.project_id == project_id)
            .order_by(Deployment.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_by_project(
        self, db: AsyncSession, project_id: uuid.UUID, limit: int = 20
    ) -> list[Deployment]:
        result = await db.execute(
            select(Deployment)
            .where(Deployment.project_id == project_id)
            .order_by(Deployment.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_by_vercel_id(self, db: AsyncSession, vercel_deployment_id: str) -> Deployment | None:
        result = await db.execute(
            select(Deployment).where(Deployment.vercel_deployment_id == vercel_deployment_id)
        )
        return result.scalar_one_or_none()


deployment_repo = DeploymentRepository()
