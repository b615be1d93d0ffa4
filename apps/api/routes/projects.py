"""Project routes: create, list, get, update, delete.

All routes are protected and users only see their OWN projects.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.auth import get_current_user
from apps.api.database import get_db
from apps.api.models.project import ProjectStatus
from apps.api.models.user import User
from apps.api.repositories import project_repo
from apps.api.schemas.project import (
    ProjectCreate,
    ProjectUpdate,
    ProjectResponse,
    ProjectListResponse,
)
from apps.api.services import project_service

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(
    body: ProjectCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create an empty project. Files arrive with the first generation.

    Example:
        POST /projects
        { "name": "todo-app", "framework": "nextjs" }
    """
    project = await project_repo.create(
        db,
        name=body.name,
        description=body.description,
        framework=body.framework,
        repo_url=body.repo_url,
        repo_full_name=body.repo_full_name,
        status=ProjectStatus.READY,
        owner_id=current_user.id,
    )
    return ProjectResponse.model_validate(project)


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    skip: int = Query(default=0, ge=0, description="Number of projects to skip"),
    limit: int = Query(default=20, ge=1, le=100, description="Max projects to return"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the current user's projects, newest first.

        GET /projects?skip=0&limit=20   → first 20 projects
        GET /projects?skip=20&limit=20  → next 20 projects
    """
    projects = await project_repo.get_by_owner(db, current_user.id, skip=skip, limit=limit)
    total = await project_repo.count_by_owner(db, current_user.id)

    return ProjectListResponse(
        projects=[ProjectResponse.model_validate(p) for p in projects],
        total=total,
    )


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Returns 404 if not found, 403 if you don't own it."""
    project = await project_service.get_user_project(db, project_id, current_user)
    return ProjectResponse.model_validate(project)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Partial update: only fields present in the body are changed."""
    project = await project_service.get_user_project(db, project_id, current_user)

    update_data = body.model_dump(exclude_unset=True)
    if update_data:
        project = await project_repo.update(db, project, **update_data)

    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", status_code=204)
async def delete_project(
    project_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a project, its sandbox and its progress history."""
    project = await project_service.get_user_project(db, project_id, current_user)
    await project_service.delete_project(db, project)
