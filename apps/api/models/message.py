import uuid

from sqlalchemy import String, Text, ForeignKey, Enum as SAEnum, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enum import Enum

from apps.api.models.base import BaseModel


class MessageRole(str, Enum):
    """Who sent the message."""
    USER = "user"            # Prompt typed by the user
    ASSISTANT = "assistant"  # Generation result or answer


class MessageType(str, Enum):
    RESULT = "result"
    ERROR = "error"


class Message(BaseModel):
    __tablename__ = "messages"

    content: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(SAEnum(MessageRole), nullable=False)
    type: Mapped[str] = mapped_column(SAEnum(MessageType), default=MessageType.RESULT, nullable=False)

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False
    )

    project: Mapped["Project"] = relationship(back_populates="messages")
    fragment: Mapped["Fragment | None"] = relationship(
        back_populates="message", uselist=False, cascade="all, delete-orphan"
    )


class Fragment(BaseModel):
    """Generated output attached to an assistant message.

    `files` maps path → content for everything the generation touched;
    `sandbox_url` is the preview the user saw when the fragment was made.
    """
    __tablename__ = "fragments"

    sandbox_url: Mapped[str] = mapped_column(String(500), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    files: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    message_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("messages.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    message: Mapped["Message"] = relationship(back_populates="fragment")
