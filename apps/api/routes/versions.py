"""Version routes: numbered file snapshots of a project."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.auth import get_current_user
from apps.api.database import get_db
from apps.api.exceptions import NotFoundException
from apps.api.models.user import User
from apps.api.models.version import Version, VersionStatus
from apps.api.schemas.version import VersionComparison, VersionCreate, VersionResponse, VersionUpdate
from apps.api.services import version_service
from apps.api.services.project_service import get_user_project

router = APIRouter(prefix="/projects/{project_id}/versions", tags=["versions"])


async def _get_project_version(db: AsyncSession, project_id: uuid.UUID, version_id: uuid.UUID) -> Version:
    version = await version_service.get_version(db, version_id)
    if version.project_id != project_id:
        raise NotFoundException("Version", str(version_id))
    return version


@router.get("", response_model=list[VersionResponse])
async def list_versions(
    project_id: uuid.UUID,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Versions in ascending version-number order."""
    await get_user_project(db, project_id, current_user)
    versions = await version_service.list_versions(db, project_id, skip=skip, limit=limit)
    return [VersionResponse.model_validate(v) for v in versions]


@router.post("", response_model=VersionResponse, status_code=201)
async def create_version(
    project_id: uuid.UUID,
    body: VersionCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Store a snapshot; the version number is assigned automatically."""
    await get_user_project(db, project_id, current_user)
    version = await version_service.create_version(
        db,
        project_id=project_id,
        name=body.name,
        files=body.files,
        command_type=body.command_type,
        prompt=body.prompt,
        description=body.description,
        parent_version_id=body.parent_version_id,
        status=VersionStatus(body.status),
        metadata=body.metadata,
    )
    return VersionResponse.model_validate(version)


@router.get("/latest", response_model=VersionResponse)
async def get_latest_version(
    project_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Newest complete version."""
    await get_user_project(db, project_id, current_user)
    version = await version_service.get_latest_version(db, project_id)
    if not version:
        raise NotFoundException("Version", "latest")
    return VersionResponse.model_validate(version)


@router.get("/count")
async def count_versions(
    project_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_user_project(db, project_id, current_user)
    return {
        "count": await version_service.count_versions(db, project_id),
        "next_version_number": await version_service.get_next_version_number(db, project_id),
    }


@router.get("/compare", response_model=VersionComparison)
async def compare_versions(
    project_id: uuid.UUID,
    version1: uuid.UUID = Query(..., description="Older version id"),
    version2: uuid.UUID = Query(..., description="Newer version id"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_user_project(db, project_id, current_user)
    old = await _get_project_version(db, project_id, version1)
    new = await _get_project_version(db, project_id, version2)
    comparison = version_service.compare_versions(old, new)
    return VersionComparison(
        version1=VersionResponse.model_validate(comparison["version1"]),
        version2=VersionResponse.model_validate(comparison["version2"]),
        diffs=comparison["diffs"],
        summary=comparison["summary"],
    )


@router.get("/{version_id}", response_model=VersionResponse)
async def get_version(
    project_id: uuid.UUID,
    version_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_user_project(db, project_id, current_user)
    version = await _get_project_version(db, project_id, version_id)
    return VersionResponse.model_validate(version)


@router.get("/{version_id}/history", response_model=list[VersionResponse])
async def get_version_history(
    project_id: uuid.UUID,
    version_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The chain of parent versions leading to this one, oldest first."""
    await get_user_project(db, project_id, current_user)
    await _get_project_version(db, project_id, version_id)
    history = await version_service.get_version_history(db, version_id)
    return [VersionResponse.model_validate(v) for v in history]


@router.patch("/{version_id}", response_model=VersionResponse)
async def update_version(
    project_id: uuid.UUID,
    version_id: uuid.UUID,
    body: VersionUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_user_project(db, project_id, current_user)
    version = await _get_project_version(db, project_id, version_id)
    version = await version_service.update_version(db, version, **body.model_dump(exclude_unset=True))
    return VersionResponse.model_validate(version)


@router.delete("/{version_id}", status_code=204)
async def delete_version(
    project_id: uuid.UUID,
    version_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_user_project(db, project_id, current_user)
    version = await _get_project_version(db, project_id, version_id)
    await version_service.delete_version(db, version)
