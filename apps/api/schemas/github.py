"""GitHub sync schemas."""

import uuid

from pydantic import BaseModel, Field

from apps.api.schemas.base import BaseResponse


# ── Request Schemas ────────────────────────────────────

class CreateRepoRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    private: bool = True
    org: str | None = None


class CreateBranchRequest(BaseModel):
    repo_full_name: str
    branch: str = Field(min_length=1)
    from_branch: str = "main"


class PushRequest(BaseModel):
    repo_full_name: str
    branch: str = "main"
    base_branch: str = "main"
    commit_message: str = Field(min_length=1)
    files: dict[str, str] | None = None     # Defaults to the latest version's files
    create_pr: bool = False
    pr_title: str | None = None
    pr_body: str | None = None


class PullRequest(BaseModel):
    repo_full_name: str
    branch: str | None = None               # Defaults to the repo's default branch
    path: str | None = None                 # Only pull files under this prefix
    max_files: int = Field(default=100, ge=1, le=1000)


# ── Response Schemas ───────────────────────────────────

class SyncHistoryResponse(BaseResponse):
    project_id: uuid.UUID
    operation: str
    status: str
    repo_full_name: str
    branch: str | None = None
    commit_sha: str | None = None
    commit_message: str | None = None
    pr_number: int | None = None
    pr_url: str | None = None
    files_changed: int | None = None
    error_message: str | None = None
