import uuid

from sqlalchemy import String, Text, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from apps.api.models.base import BaseModel


# Vercel readyState values. Stored as plain strings since Vercel adds states
# without notice.
TERMINAL_DEPLOYMENT_STATES = {"READY", "ERROR", "CANCELED"}


class Deployment(BaseModel):
    __tablename__ = "deployments"

    status: Mapped[str] = mapped_column(String(50), default="building", nullable=False)
    vercel_project_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vercel_deployment_id: Mapped[str | None] = mapped_column(String(100), index=True, nullable=True)
    deployment_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    triggered_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    project: Mapped["Project"] = relationship(back_populates="deployments")
