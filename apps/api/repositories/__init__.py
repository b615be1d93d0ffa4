from apps.api.repositories.base import BaseRepository
from apps.api.repositories.user import UserRepository, user_repo
from apps.api.repositories.project import ProjectRepository, project_repo
from apps.api.repositories.message import MessageRepository, FragmentRepository, message_repo, fragment_repo
from apps.api.repositories.version import VersionRepository, version_repo
from apps.api.repositories.generation_event import GenerationEventRepository, generation_event_repo
from apps.api.repositories.generation_job import GenerationJobRepository, generation_job_repo
from apps.api.repositories.deployment import DeploymentRepository, deployment_repo
from apps.api.repositories.github_sync import GitHubSyncRepository, github_sync_repo

__all__ = [
    "BaseRepository",
    "UserRepository", "user_repo",
    "ProjectRepository", "project_repo",
    "MessageRepository", "FragmentRepository", "message_repo", "fragment_repo",
    "VersionRepository", "version_repo",
    "GenerationEventRepository", "generation_event_repo",
    "GenerationJobRepository", "generation_job_repo",
    "DeploymentRepository", "deployment_repo",
    "GitHubSyncRepository", "github_sync_repo",
]
