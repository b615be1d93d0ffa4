"""File embedding model: one vector per generated project file."""

import uuid
from sqlalchemy import String, Text, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from pgvector.sqlalchemy import Vector

from apps.api.models.base import BaseModel


class FileEmbedding(BaseModel):
    """Semantic index entry for a project file.

    `content_hash` lets re-indexing skip files whose content did not change.
    """
    __tablename__ = "file_embeddings"
    __table_args__ = (UniqueConstraint("project_id", "file_path"),)

    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_type: Mapped[str] = mapped_column(String(50), nullable=False)  # component | utility | api | config | test | types | other
    language: Mapped[str | None] = mapped_column(String(50), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    file_metadata: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)  # imports, exports, size

    # 1536 dimensions for text-embedding-3-small
    embedding: Mapped[list[float]] = mapped_column(Vector(1536), nullable=False)

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
