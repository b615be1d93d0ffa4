"""Generation routes: start work, follow jobs, read the progress history.

Generation itself runs in the background (see generation_service); these
endpoints return as soon as the job is queued. Progress arrives over the
SSE stream at /stream/{project_id}.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from generation import CommandClassifier

from apps.api.auth import get_current_user
from apps.api.database import get_db
from apps.api.exceptions import NotFoundException
from apps.api.models.generation_job import GenerationJob
from apps.api.models.user import User
from apps.api.repositories import generation_event_repo, generation_job_repo
from apps.api.schemas.generation import (
    ApiGenerateRequest,
    ClassifyRequest,
    CodeGenerateRequest,
    GenerationEventResponse,
    GenerationStarted,
    JobResponse,
    JobStatusResponse,
)
from apps.api.services import llm
from apps.api.services.generation_service import generation_runner, job_status
from apps.api.services.project_service import get_user_project

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generation"])

_classifier: CommandClassifier | None = None


def get_classifier() -> CommandClassifier:
    """Shared classifier so its prompt cache survives between requests."""
    global _classifier
    if _classifier is None:
        try:
            adapter = llm.get_decision_adapter()
        except RuntimeError as e:
            logger.warning("Classifier running on keyword rules only: %s", e)
            adapter = None
        _classifier = CommandClassifier(adapter)
    return _classifier


async def _get_user_job(db: AsyncSession, job_id: uuid.UUID, user: User) -> GenerationJob:
    job = await generation_job_repo.get_by_id(db, job_id)
    if not job:
        raise NotFoundException("Job", str(job_id))
    await get_user_project(db, job.project_id, user)
    return job


# ── Starting generation ───────────────────────────────

@router.post("/api/generate", response_model=GenerationStarted, status_code=202)
async def generate_api(
    body: ApiGenerateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a new project from a prompt and start generating its API.

    Example:
        POST /api/generate
        { "prompt": "A todo API with users and tags", "framework": "fastapi" }
    """
    started = await generation_runner.start_api_generation(
        db,
        current_user,
        prompt=body.prompt,
        framework=body.framework,
        advanced=body.advanced,
        template=body.template,
    )
    return GenerationStarted(**started)


@router.post("/projects/{project_id}/generate", response_model=JobResponse, status_code=202)
async def generate_code(
    project_id: uuid.UUID,
    body: CodeGenerateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Apply a follow-up prompt to an existing project."""
    project = await get_user_project(db, project_id, current_user)
    job = await generation_runner.start_code_generation(db, current_user, project, body.prompt)
    return JobResponse.model_validate(job)


@router.post("/classify")
async def classify_prompt(
    body: ClassifyRequest,
    current_user: User = Depends(get_current_user),
):
    """Guess what kind of change a prompt asks for, without running it."""
    result = await get_classifier().classify(body.prompt)
    return result.to_dict()


# ── Jobs ──────────────────────────────────────────────

@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
    job_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    job = await _get_user_job(db, job_id, current_user)
    return JobStatusResponse(**job_status(job))


@router.post("/jobs/{job_id}/cancel", response_model=JobStatusResponse)
async def cancel_job(
    job_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    job = await _get_user_job(db, job_id, current_user)
    job = await generation_runner.cancel_job(db, job)
    return JobStatusResponse(**job_status(job))


@router.post("/jobs/{job_id}/retry", response_model=JobStatusResponse)
async def retry_job(
    job_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Re-run a failed or cancelled job."""
    job = await _get_user_job(db, job_id, current_user)
    job = await generation_runner.retry_job(db, job)
    return JobStatusResponse(**job_status(job))


@router.get("/projects/{project_id}/jobs", response_model=list[JobResponse])
async def list_jobs(
    project_id: uuid.UUID,
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_user_project(db, project_id, current_user)
    jobs = await generation_job_repo.get_by_project(db, project_id, limit=limit)
    return [JobResponse.model_validate(j) for j in jobs]


# ── Progress history ──────────────────────────────────

@router.get("/projects/{project_id}/generation-events", response_model=list[GenerationEventResponse])
async def list_generation_events(
    project_id: uuid.UUID,
    limit: int = Query(default=50, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Persisted progress events, oldest first. Used to replay after a reload."""
    await get_user_project(db, project_id, current_user)
    events = await generation_event_repo.get_by_project(db, project_id, limit=limit)
    return [GenerationEventResponse.model_validate(e) for e in events]


@router.delete("/projects/{project_id}/generation-events")
async def clear_generation_events(
    project_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_user_project(db, project_id, current_user)
    deleted = await generation_event_repo.delete_by_project(db, project_id)
    return {"success": True, "deleted": deleted}
