import uuid

from sqlalchemy import String, Text, ForeignKey, JSON, Integer, Enum as SAEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from enum import Enum

from apps.api.models.base import BaseModel


class SyncOperation(str, Enum):
    PUSH = "push"
    PULL = "pull"
    CLONE = "clone"
    CREATE_REPO = "create_repo"
    CREATE_BRANCH = "create_branch"
    CREATE_PR = "create_pr"


class GitHubSyncHistory(BaseModel):
    """Audit trail of every GitHub operation run for a project."""
    __tablename__ = "github_sync_history"

    operation: Mapped[str] = mapped_column(SAEnum(SyncOperation), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # success | failed
    repo_full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    commit_sha: Mapped[str | None] = mapped_column(String(40), nullable=True)
    commit_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    pr_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pr_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    files_changed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    sync_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
