import uuid
from datetime import datetime

from sqlalchemy import String, Text, ForeignKey, JSON, DateTime, Enum as SAEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from enum import Enum

from apps.api.models.base import BaseModel


class EventIcon(str, Enum):
    """Icon the progress timeline shows next to the event."""
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"
    ERROR = "error"


class GenerationEvent(BaseModel):
    """Persisted generation progress, replayed when a client reconnects."""
    __tablename__ = "generation_events"

    event_type: Mapped[str] = mapped_column(String(50), nullable=False)   # e.g. "file:complete"
    filename: Mapped[str | None] = mapped_column(String(500), nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(SAEnum(EventIcon), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    event_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)  # Raw stream event

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False
    )
    version_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("versions.id", ondelete="SET NULL"), nullable=True
    )
