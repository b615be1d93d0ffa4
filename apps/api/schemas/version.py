"""Version schemas."""

import uuid

from pydantic import BaseModel, Field

from apps.api.models.version import CommandType
from apps.api.schemas.base import BaseResponse


# ── Request Schemas ────────────────────────────────────

class VersionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    files: dict[str, str] = Field(default_factory=dict)
    command_type: CommandType
    prompt: str = Field(min_length=1)
    parent_version_id: uuid.UUID | None = None
    status: str = Field(default="generating", pattern="^(generating|complete|failed)$")
    metadata: dict = Field(default_factory=dict)


class VersionUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    files: dict[str, str] | None = None
    status: str | None = Field(default=None, pattern="^(generating|complete|failed)$")
    metadata: dict | None = None


# ── Response Schemas ───────────────────────────────────

class VersionResponse(BaseResponse):
    project_id: uuid.UUID
    version_number: int
    name: str
    description: str | None = None
    files: dict
    command_type: str
    prompt: str
    parent_version_id: uuid.UUID | None = None
    status: str
    version_metadata: dict | None = None


class FileDiff(BaseModel):
    filename: str
    status: str                 # added | modified | deleted | unchanged
    old_content: str | None = None
    new_content: str | None = None


class VersionComparison(BaseModel):
    version1: VersionResponse
    version2: VersionResponse
    diffs: list[FileDiff]
    summary: dict[str, int]     # files_added, files_modified, files_deleted, files_unchanged
