"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB
from pgvector.sqlalchemy import Vector


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# SAEnum stores member names, not values
userrole = sa.Enum("MEMBER", "ADMIN", name="userrole")
projectstatus = sa.Enum("GENERATING", "TESTING", "DEPLOYING", "DEPLOYED", "READY", "FAILED", name="projectstatus")
sandboxstate = sa.Enum("ACTIVE", "PAUSED", "EXPIRED", "RESTORING", "FAILED", "UNKNOWN", name="sandboxstate")
messagerole = sa.Enum("USER", "ASSISTANT", name="messagerole")
messagetype = sa.Enum("RESULT", "ERROR", name="messagetype")
commandtype = sa.Enum(
    "CREATE_FILE", "MODIFY_FILE", "DELETE_FILE", "REFACTOR_CODE", "GENERATE_API", name="commandtype"
)
versionstatus = sa.Enum("GENERATING", "COMPLETE", "FAILED", name="versionstatus")
eventicon = sa.Enum("IN_PROGRESS", "COMPLETE", "ERROR", name="eventicon")
jobtype = sa.Enum("GENERATE_API", "GENERATE_CODE", name="jobtype")
jobstatus = sa.Enum("PENDING", "RUNNING", "COMPLETED", "FAILED", "CANCELLED", name="jobstatus")
syncoperation = sa.Enum(
    "PUSH", "PULL", "CLONE", "CREATE_REPO", "CREATE_BRANCH", "CREATE_PR", name="syncoperation"
)


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _project_fk() -> sa.Column:
    return sa.Column(
        "project_id", UUID(as_uuid=True), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )


def upgrade() -> None:
    """Create every table, plus pgvector for file embeddings."""
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "users",
        *_base_columns(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", userrole, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False),
        sa.Column("github_id", sa.String(100), unique=True, nullable=True),
        sa.Column("github_username", sa.String(255), nullable=True),
        sa.Column("github_access_token", sa.Text, nullable=True),
        sa.Column("vercel_access_token", sa.Text, nullable=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "projects",
        *_base_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("framework", sa.String(50), nullable=False),
        sa.Column("status", projectstatus, nullable=False),
        sa.Column("prompt", sa.Text, nullable=True),
        sa.Column("repo_url", sa.String(500), nullable=True),
        sa.Column("repo_full_name", sa.String(255), nullable=True),
        sa.Column("default_branch", sa.String(100), nullable=False),
        sa.Column("sandbox_url", sa.String(500), nullable=True),
        sa.Column("sandbox_status", sandboxstate, nullable=False),
        sa.Column("last_sandbox_check", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON, nullable=True),
        sa.Column("deploy_url", sa.String(500), nullable=True),
        sa.Column("owner_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
    )
    op.create_index("ix_projects_id", "projects", ["id"])

    op.create_table(
        "messages",
        *_base_columns(),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("role", messagerole, nullable=False),
        sa.Column("type", messagetype, nullable=False),
        _project_fk(),
    )
    op.create_index("ix_messages_id", "messages", ["id"])
    op.create_index("ix_messages_project_id", "messages", ["project_id"])

    op.create_table(
        "fragments",
        *_base_columns(),
        sa.Column("sandbox_url", sa.String(500), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("files", sa.JSON, nullable=False),
        sa.Column(
            "message_id", UUID(as_uuid=True), sa.ForeignKey("messages.id", ondelete="CASCADE"),
            unique=True, nullable=False,
        ),
    )
    op.create_index("ix_fragments_id", "fragments", ["id"])

    op.create_table(
        "versions",
        *_base_columns(),
        sa.Column("version_number", sa.Integer, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("files", sa.JSON, nullable=False),
        sa.Column("command_type", commandtype, nullable=False),
        sa.Column("prompt", sa.Text, nullable=False),
        sa.Column("status", versionstatus, nullable=False),
        sa.Column("metadata", sa.JSON, nullable=True),
        _project_fk(),
        sa.Column(
            "parent_version_id", UUID(as_uuid=True), sa.ForeignKey("versions.id", ondelete="SET NULL"), nullable=True
        ),
        sa.UniqueConstraint("project_id", "version_number"),
    )
    op.create_index("ix_versions_id", "versions", ["id"])
    op.create_index("ix_versions_project_id", "versions", ["project_id"])

    op.create_table(
        "generation_events",
        *_base_columns(),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("filename", sa.String(500), nullable=True),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("icon", eventicon, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("metadata", sa.JSON, nullable=True),
        _project_fk(),
        sa.Column("version_id", UUID(as_uuid=True), sa.ForeignKey("versions.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("ix_generation_events_id", "generation_events", ["id"])
    op.create_index("ix_generation_events_project_id", "generation_events", ["project_id"])

    op.create_table(
        "generation_jobs",
        *_base_columns(),
        sa.Column("type", jobtype, nullable=False),
        sa.Column("status", jobstatus, nullable=False),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("result", sa.JSON, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _project_fk(),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
    )
    op.create_index("ix_generation_jobs_id", "generation_jobs", ["id"])
    op.create_index("ix_generation_jobs_project_id", "generation_jobs", ["project_id"])

    op.create_table(
        "deployments",
        *_base_columns(),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("vercel_project_id", sa.String(100), nullable=True),
        sa.Column("vercel_deployment_id", sa.String(100), nullable=True),
        sa.Column("deployment_url", sa.String(500), nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        _project_fk(),
        sa.Column("triggered_by", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
    )
    op.create_index("ix_deployments_id", "deployments", ["id"])
    op.create_index("ix_deployments_vercel_deployment_id", "deployments", ["vercel_deployment_id"])

    op.create_table(
        "github_sync_history",
        *_base_columns(),
        sa.Column("operation", syncoperation, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("repo_full_name", sa.String(255), nullable=False),
        sa.Column("branch", sa.String(255), nullable=True),
        sa.Column("commit_sha", sa.String(40), nullable=True),
        sa.Column("commit_message", sa.Text, nullable=True),
        sa.Column("pr_number", sa.Integer, nullable=True),
        sa.Column("pr_url", sa.String(500), nullable=True),
        sa.Column("files_changed", sa.Integer, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("metadata", sa.JSON, nullable=True),
        _project_fk(),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
    )
    op.create_index("ix_github_sync_history_id", "github_sync_history", ["id"])
    op.create_index("ix_github_sync_history_project_id", "github_sync_history", ["project_id"])

    # 1536 dimensions for OpenAI text-embedding-3-small
    op.create_table(
        "file_embeddings",
        *_base_columns(),
        sa.Column("file_path", sa.String(500), nullable=False),
        sa.Column("file_type", sa.String(50), nullable=False),
        sa.Column("language", sa.String(50), nullable=True),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("metadata", JSONB, nullable=True),
        sa.Column("embedding", Vector(1536), nullable=False),
        _project_fk(),
        sa.UniqueConstraint("project_id", "file_path"),
    )
    op.create_index("ix_file_embeddings_id", "file_embeddings", ["id"])
    op.create_index("ix_file_embeddings_project_id", "file_embeddings", ["project_id"])

    # HNSW beats IVFFlat for our table sizes and needs no training step
    op.execute(
        "CREATE INDEX file_embeddings_embedding_idx ON file_embeddings "
        "USING hnsw (embedding vector_cosine_ops)"
    )


def downgrade() -> None:
    """Drop every table and enum type. pgvector is left installed."""
    op.drop_index("file_embeddings_embedding_idx", table_name="file_embeddings")
    for table in (
        "file_embeddings",
        "github_sync_history",
        "deployments",
        "generation_jobs",
        "generation_events",
        "versions",
        "fragments",
        "messages",
        "projects",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in (
        syncoperation, jobstatus, jobtype, eventicon, versionstatus,
        commandtype, messagetype, messagerole, sandboxstate, projectstatus, userrole,
    ):
        enum.drop(bind, checkfirst=True)
