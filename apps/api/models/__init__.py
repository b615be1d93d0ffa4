from apps.api.models.base import BaseModel
from apps.api.models.user import User, UserRole
from apps.api.models.project import Project, ProjectStatus, SandboxState
from apps.api.models.message import Message, Fragment, MessageRole, MessageType
from apps.api.models.version import Version, VersionStatus, CommandType
from apps.api.models.generation_event import GenerationEvent, EventIcon
from apps.api.models.generation_job import GenerationJob, JobType, JobStatus
from apps.api.models.deployment import Deployment, TERMINAL_DEPLOYMENT_STATES
from apps.api.models.file_embedding import FileEmbedding
from apps.api.models.github_sync import GitHubSyncHistory, SyncOperation

__all__ = [
    "BaseModel",
    "User", "UserRole",
    "Project", "ProjectStatus", "SandboxState",
    "Message", "Fragment", "MessageRole", "MessageType",
    "Version", "VersionStatus", "CommandType",
    "GenerationEvent", "EventIcon",
    "GenerationJob", "JobType", "JobStatus",
    "Deployment", "TERMINAL_DEPLOYMENT_STATES",
    "FileEmbedding",
    "GitHubSyncHistory", "SyncOperation",
]
