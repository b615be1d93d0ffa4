"""Project schemas for request validation and response serialization."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from apps.api.schemas.base import BaseResponse


# ── Request Schemas ────────────────────────────────────

class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    framework: str = Field(default="nextjs", description="nextjs, react, vue, angular, express, fastapi, flask")
    repo_url: str | None = None
    repo_full_name: str | None = None


class ProjectUpdate(BaseModel):
    """Fields that can be updated on a project. All optional."""
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    framework: str | None = None
    repo_url: str | None = None
    repo_full_name: str | None = None
    default_branch: str | None = None


# ── Response Schemas ───────────────────────────────────

class ProjectResponse(BaseResponse):
    name: str
    description: str | None = None
    framework: str
    status: str
    prompt: str | None = None
    repo_url: str | None = None
    repo_full_name: str | None = None
    default_branch: str
    sandbox_url: str | None = None
    sandbox_status: str
    last_sandbox_check: datetime | None = None
    project_metadata: dict | None = None
    deploy_url: str | None = None
    owner_id: uuid.UUID


class ProjectListResponse(BaseModel):
    projects: list[ProjectResponse]
    total: int
