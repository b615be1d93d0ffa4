"""Lifecycle events carried over the event bus.

These are not database rows. They are small messages one part of the
service publishes and another reacts to:

    generation runner → GenerationEvent → EventBus → indexing subscriber
    sandbox lifecycle → SandboxEvent, vercel → DeployEvent, github → GitHubSyncEvent
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class EventType(str, Enum):
    """Topics published on the bus."""
    PROJECT_CREATED = "project.created"
    PROJECT_DELETED = "project.deleted"

    GENERATION_STARTED = "generation.started"
    GENERATION_COMPLETED = "generation.completed"
    GENERATION_FAILED = "generation.failed"

    SANDBOX_PAUSED = "sandbox.paused"
    SANDBOX_RESUMED = "sandbox.resumed"
    SANDBOX_RESTARTED = "sandbox.restarted"

    DEPLOY_STARTED = "deploy.started"
    DEPLOY_COMPLETED = "deploy.completed"

    GITHUB_SYNCED = "github.synced"


@dataclass
class BaseEvent:
    """Common envelope: id for dedup, type, timestamp and source."""
    source: str                                          # "generation_runner", "api", ...
    event_type: EventType | str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize for JSON transport over the event bus."""
        return {
            "id": self.id,
            "event_type": self.type_name,
            "source": self.source,
            "timestamp": self.timestamp,
            "metadata": self.metadata,
            "payload": self._payload_dict(),
        }

    @property
    def type_name(self) -> str:
        if isinstance(self.event_type, Enum):
            return self.event_type.value
        return self.event_type or ""

    def _payload_dict(self) -> dict:
        return {}


@dataclass
class TopicEvent(BaseEvent):
    """Free-form event whose type is the topic it is published on."""
    payload: dict = field(default_factory=dict)

    def _payload_dict(self) -> dict:
        return self.payload


@dataclass
class GenerationEvent(BaseEvent):
    """A generation job started, finished or failed."""
    project_id: str = ""
    job_id: str = ""
    version_id: str = ""
    files: list[str] = field(default_factory=list)
    error: str = ""

    def _payload_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "job_id": self.job_id,
            "version_id": self.version_id,
            "files": self.files,
            "error": self.error,
        }


@dataclass
class SandboxEvent(BaseEvent):
    project_id: str = ""
    sandbox_id: str = ""
    sandbox_url: str = ""

    def _payload_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "sandbox_id": self.sandbox_id,
            "sandbox_url": self.sandbox_url,
        }


@dataclass
class DeployEvent(BaseEvent):
    project_id: str = ""
    deployment_id: str = ""
    status: str = ""                       # Vercel readyState
    deploy_url: str = ""
    error: str = ""

    def _payload_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "deployment_id": self.deployment_id,
            "status": self.status,
            "deploy_url": self.deploy_url,
            "error": self.error,
        }


@dataclass
class GitHubSyncEvent(BaseEvent):
    """Project files were pushed to a GitHub branch."""
    project_id: str = ""
    repo_full_name: str = ""
    branch: str = ""
    commit_sha: str = ""
    pr_url: str = ""

    def _payload_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "repo_full_name": self.repo_full_name,
            "branch": self.branch,
            "commit_sha": self.commit_sha,
            "pr_url": self.pr_url,
        }
