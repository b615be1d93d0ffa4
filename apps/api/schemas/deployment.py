"""Deployment schemas for request validation and response serialization."""

import uuid

from pydantic import BaseModel, Field

from apps.api.schemas.base import BaseResponse


# ── Request Schemas ────────────────────────────────────

class DeployRequest(BaseModel):
    """Deploy the project's latest files (or an explicit file set) to Vercel."""
    project_id: uuid.UUID
    framework: str = Field(default="nextjs")
    files: dict[str, str] | None = None


# ── Response Schemas ───────────────────────────────────

class DeploymentResponse(BaseResponse):
    status: str
    vercel_project_id: str | None = None
    vercel_deployment_id: str | None = None
    deployment_url: str | None = None
    error_message: str | None = None
    project_id: uuid.UUID
    triggered_by: uuid.UUID | None = None
