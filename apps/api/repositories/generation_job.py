"""Generation job repository."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.models.generation_job import GenerationJob, JobStatus
from apps.api.repositories.base import BaseRepository


class GenerationJobRepository(BaseRepository[GenerationJob]):
    def __init__(self):
        super().__init__(GenerationJob)

    async def get_by_project(
        self, db: AsyncSession, project_id: uuid.UUID, limit: int = 20
    ) -> list[GenerationJob]:
        result = await db.execute(
            select(GenerationJob)
            .where(GenerationJob.project_id == project_id)
            .order_by(GenerationJob.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_active_for_project(self, db: AsyncSession, project_id: uuid.UUID) -> GenerationJob | None:
        """A pending or running job on the project, if there is one."""
        result = await db.execute(
            select(GenerationJob)
            .where(
                GenerationJob.project_id == project_id,
                GenerationJob.status.in_((JobStatus.PENDING, JobStatus.RUNNING)),
            )
            .order_by(GenerationJob.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def set_status(
        self,
        db: AsyncSession,
        job: GenerationJob,
        status: JobStatus,
        result: dict | None = None,
        error_message: str | None = None,
    ) -> GenerationJob:
        """Move a job to `status`, stamping started/completed times."""
        now = datetime.now(timezone.utc)
        job.status = status
        if status == JobStatus.RUNNING:
            job.started_at = now
            job.error_message = None
        elif status in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED):
            job.completed_at = now
        elif status == JobStatus.PENDING:
            job.started_at = None
            job.completed_at = None
            job.error_message = None
        if result is not None:
            job.result = result
        if error_message is not None:
            job.error_message = error_message
        await db.commit()
        await db.refresh(job)
        return job


generation_job_repo = GenerationJobRepository()
