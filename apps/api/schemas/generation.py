"""Schemas for generation requests and background jobs."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from apps.api.schemas.base import BaseResponse


# ── Request Schemas ────────────────────────────────────

class ApiGenerateRequest(BaseModel):
    """Start a new API project from a natural-language description."""
    prompt: str = Field(min_length=10, description="Describe the API you want")
    framework: str = Field(default="fastapi", pattern="^(fastapi|express)$")
    advanced: bool = False
    template: str | None = None


class CodeGenerateRequest(BaseModel):
    """Iterate on an existing project with a new prompt."""
    prompt: str = Field(min_length=1)


class ClassifyRequest(BaseModel):
    prompt: str = Field(min_length=1)


# ── Response Schemas ───────────────────────────────────

class GenerationStarted(BaseModel):
    jobId: uuid.UUID
    projectId: uuid.UUID
    status: str = "generating"
    message: str
    estimatedTime: int


class JobResponse(BaseResponse):
    project_id: uuid.UUID
    type: str
    status: str
    payload: dict
    result: dict | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


class JobStatusResponse(BaseModel):
    jobId: uuid.UUID
    projectId: uuid.UUID
    status: str
    progress: int
    currentStep: str
    estimatedTimeRemaining: int
    result: dict | None = None
    error: str | None = None


class GenerationEventResponse(BaseResponse):
    project_id: uuid.UUID
    version_id: uuid.UUID | None = None
    event_type: str
    filename: str | None = None
    message: str
    icon: str
    timestamp: datetime
