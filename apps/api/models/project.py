import uuid
from datetime import datetime

from sqlalchemy import String, Text, ForeignKey, Enum as SAEnum, JSON, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enum import Enum

from apps.api.models.base import BaseModel


class ProjectStatus(str, Enum):
    """Where the project is in its generate → deploy pipeline."""
    GENERATING = "generating"
    TESTING = "testing"
    DEPLOYING = "deploying"
    DEPLOYED = "deployed"
    READY = "ready"
    FAILED = "failed"


class SandboxState(str, Enum):
    """Last known state of the project's preview sandbox."""
    ACTIVE = "active"
    PAUSED = "paused"
    EXPIRED = "expired"
    RESTORING = "restoring"
    FAILED = "failed"
    UNKNOWN = "unknown"


class Project(BaseModel):
    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    framework: Mapped[str] = mapped_column(String(50), default="nextjs", nullable=False)
    status: Mapped[str] = mapped_column(SAEnum(ProjectStatus), default=ProjectStatus.READY, nullable=False)
    prompt: Mapped[str | None] = mapped_column(Text, nullable=True)  # Prompt the project was created from

    # GitHub repo info, null until the project is linked or published
    repo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    repo_full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)  # e.g. "user/repo"
    default_branch: Mapped[str] = mapped_column(String(100), default="main", nullable=False)

    # Sandbox tracking. The column is named "metadata" in the database, which
    # SQLAlchemy reserves as an attribute name on declarative classes.
    sandbox_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    sandbox_status: Mapped[str] = mapped_column(SAEnum(SandboxState), default=SandboxState.UNKNOWN, nullable=False)
    last_sandbox_check: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    project_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    # sandboxId, port, paused, pausedAt, resumedAt, lastSuccessfulResume, lastRestarted

    deploy_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    owner_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)

    owner: Mapped["User"] = relationship(back_populates="projects")
    messages: Mapped[list["Message"]] = relationship(back_populates="project", cascade="all, delete-orphan")
    versions: Mapped[list["Version"]] = relationship(back_populates="project", cascade="all, delete-orphan")
    deployments: Mapped[list["Deployment"]] = relationship(back_populates="project", cascade="all, delete-orphan")

    @property
    def sandbox_id(self) -> str | None:
        """Container id of the current sandbox, if one was ever created."""
        return (self.project_metadata or {}).get("sandboxId")
