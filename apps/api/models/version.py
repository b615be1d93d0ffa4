import uuid

from sqlalchemy import String, Text, ForeignKey, Enum as SAEnum, JSON, Integer, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enum import Enum

from apps.api.models.base import BaseModel


class VersionStatus(str, Enum):
    GENERATING = "generating"
    COMPLETE = "complete"
    FAILED = "failed"


class CommandType(str, Enum):
    """Kind of change a prompt asked for."""
    CREATE_FILE = "CREATE_FILE"
    MODIFY_FILE = "MODIFY_FILE"
    DELETE_FILE = "DELETE_FILE"
    REFACTOR_CODE = "REFACTOR_CODE"
    GENERATE_API = "GENERATE_API"


class Version(BaseModel):
    """A full snapshot of a project's files after one generation."""
    __tablename__ = "versions"
    __table_args__ = (UniqueConstraint("project_id", "version_number"),)

    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    files: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)  # {path: content}
    command_type: Mapped[str] = mapped_column(SAEnum(CommandType), nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(SAEnum(VersionStatus), default=VersionStatus.GENERATING, nullable=False)
    version_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False
    )
    parent_version_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("versions.id", ondelete="SET NULL"), nullable=True
    )

    project: Mapped["Project"] = relationship(back_populates="versions")
