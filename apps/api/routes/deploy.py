"""Deployment routes: push a project to Vercel and follow the build."""

import asyncio
import json
import logging
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.auth import get_current_user
from apps.api.config import settings
from apps.api.database import get_db
from apps.api.exceptions import ForgeException, NotFoundException
from apps.api.models.user import User
from apps.api.repositories import deployment_repo, version_repo
from apps.api.schemas.deployment import DeploymentResponse, DeployRequest
from apps.api.services.project_service import get_user_project
from apps.api.services.vercel_service import vercel_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["deploy"])


async def _check_deployment_access(db: AsyncSession, vercel_deployment_id: str, user: User) -> None:
    deployment = await deployment_repo.get_by_vercel_id(db, vercel_deployment_id)
    if not deployment:
        raise NotFoundException("Deployment", vercel_deployment_id)
    await get_user_project(db, deployment.project_id, user)


@router.post("/deploy/vercel", response_model=DeploymentResponse, status_code=201)
async def deploy_to_vercel(
    body: DeployRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Start a production deployment of the project's latest files."""
    project = await get_user_project(db, body.project_id, current_user)

    files = body.files
    if files is None:
        latest = await version_repo.get_latest_complete(db, project.id)
        files = latest.files if latest else {}

    try:
        deployment = await vercel_service.deploy(db, current_user, project, files, framework=body.framework)
    except ValueError as e:
        raise ForgeException(str(e), status_code=400)
    return DeploymentResponse.model_validate(deployment)


@router.get("/deploy/vercel/{deployment_id}")
async def get_deployment_status(
    deployment_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _check_deployment_access(db, deployment_id, current_user)
    return await vercel_service.get_status(db, current_user, deployment_id)


async def status_frames(request: Request, user: User, deployment_id: str, interval_seconds: float):
    """Poll Vercel until the deployment reaches a terminal state."""
    while not await request.is_disconnected():
        try:
            async for db in get_db():
                status = await vercel_service.get_status(db, user, deployment_id)
                break
        except ForgeException as e:
            logger.warning("Deployment status poll failed for %s: %s", deployment_id, e.message)
            yield f"data: {json.dumps({'success': False, 'error': e.message, 'done': True})}\n\n"
            return

        yield f"data: {json.dumps(status)}\n\n"
        if status["done"]:
            return
        await asyncio.sleep(interval_seconds)


@router.get("/deploy/vercel/{deployment_id}/stream")
async def stream_deployment_status(
    deployment_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """SSE feed of deployment status, one frame per poll."""
    await _check_deployment_access(db, deployment_id, current_user)
    return StreamingResponse(
        status_frames(request, current_user, deployment_id, settings.vercel_poll_interval_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/projects/{project_id}/deployments", response_model=list[DeploymentResponse])
async def list_deployments(
    project_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_user_project(db, project_id, current_user)
    deployments = await vercel_service.list_deployments(db, project_id)
    return [DeploymentResponse.model_validate(d) for d in deployments]
