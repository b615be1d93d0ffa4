import uuid
from datetime import datetime

from sqlalchemy import String, Text, ForeignKey, JSON, DateTime, Enum as SAEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from enum import Enum

from apps.api.models.base import BaseModel


class JobType(str, Enum):
    GENERATE_API = "generate_api"     # One-shot API spec + server from a prompt
    GENERATE_CODE = "generate_code"   # Iterative two-agent change on a project


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class GenerationJob(BaseModel):
    """A background generation run and its outcome."""
    __tablename__ = "generation_jobs"

    type: Mapped[str] = mapped_column(SAEnum(JobType), nullable=False)
    status: Mapped[str] = mapped_column(SAEnum(JobStatus), default=JobStatus.PENDING, nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    result: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
