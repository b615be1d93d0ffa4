"""GitHub routes: link a project to a repository and sync files both ways.

All calls use the GitHub token stored on the current user
(PUT /auth/integrations), and every call is recorded in the sync history.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.auth import get_current_user
from apps.api.database import get_db
from apps.api.exceptions import ForgeException
from apps.api.models.user import User
from apps.api.schemas.github import (
    CreateBranchRequest,
    CreateRepoRequest,
    PullRequest,
    PushRequest,
    SyncHistoryResponse,
)
from apps.api.services.github_service import github_service
from apps.api.services.project_service import get_user_project

router = APIRouter(prefix="/github/{project_id}", tags=["github"])


@router.post("/repository", status_code=201)
async def create_repository(
    project_id: uuid.UUID,
    body: CreateRepoRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a repository and link it to the project.

    Example:
        POST /github/{project_id}/repository
        { "name": "todo-api", "private": true }
    """
    project = await get_user_project(db, project_id, current_user)
    return await github_service.create_repository(
        db,
        current_user,
        project,
        name=body.name,
        private=body.private,
        description=body.description,
        org=body.org,
    )


@router.post("/branches")
async def create_branch(
    project_id: uuid.UUID,
    body: CreateBranchRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await get_user_project(db, project_id, current_user)
    try:
        return await github_service.create_branch(
            db, current_user, project, body.repo_full_name, body.branch, base_branch=body.from_branch
        )
    except ValueError as e:
        raise ForgeException(str(e), status_code=400)


@router.post("/push")
async def push_files(
    project_id: uuid.UUID,
    body: PushRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Commit the project's files to a branch, optionally opening a PR."""
    project = await get_user_project(db, project_id, current_user)
    try:
        return await github_service.push_files(
            db,
            current_user,
            project,
            repo_full_name=body.repo_full_name,
            commit_message=body.commit_message,
            files=body.files,
            branch=body.branch,
            base_branch=body.base_branch,
            create_pr=body.create_pr,
            pr_title=body.pr_title,
            pr_body=body.pr_body,
        )
    except ValueError as e:
        raise ForgeException(str(e), status_code=400)


@router.post("/pull")
async def pull_files(
    project_id: uuid.UUID,
    body: PullRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await get_user_project(db, project_id, current_user)
    try:
        return await github_service.pull_files(
            db,
            current_user,
            project,
            repo_full_name=body.repo_full_name,
            branch=body.branch,
            path=body.path,
            max_files=body.max_files,
        )
    except ValueError as e:
        raise ForgeException(str(e), status_code=400)


@router.get("/history", response_model=list[SyncHistoryResponse])
async def get_sync_history(
    project_id: uuid.UUID,
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Most recent sync operations for the project."""
    await get_user_project(db, project_id, current_user)
    history = await github_service.get_sync_history(db, project_id, limit=limit)
    return [SyncHistoryResponse.model_validate(h) for h in history]
