from apps.api.schemas.base import BaseSchema, BaseResponse
from apps.api.schemas.user import UserCreate, UserUpdate, IntegrationTokens, UserResponse, TokenResponse
from apps.api.schemas.project import ProjectCreate, ProjectUpdate, ProjectResponse, ProjectListResponse
from apps.api.schemas.message import (
    MessageCreate, FragmentCreate, FragmentUpdate,
    MessageResponse, FragmentResponse, MessageListResponse,
)
from apps.api.schemas.version import VersionCreate, VersionUpdate, VersionResponse, FileDiff, VersionComparison
from apps.api.schemas.generation import (
    ApiGenerateRequest, CodeGenerateRequest, ClassifyRequest,
    GenerationStarted, JobResponse, JobStatusResponse, GenerationEventResponse,
)
from apps.api.schemas.sandbox import (
    SandboxCreate, FileWriteRequest, ExecCommandRequest, TerminalInitRequest,
    FileEntry, FileContent, LifecycleResponse,
)
from apps.api.schemas.deployment import DeployRequest, DeploymentResponse
from apps.api.schemas.github import (
    CreateRepoRequest, CreateBranchRequest, PushRequest, PullRequest, SyncHistoryResponse,
)


__all__ = [
    # Base
    "BaseSchema", "BaseResponse",
    # User
    "UserCreate", "UserUpdate", "IntegrationTokens", "UserResponse", "TokenResponse",
    # Project
    "ProjectCreate", "ProjectUpdate", "ProjectResponse", "ProjectListResponse",
    # Messages
    "MessageCreate", "FragmentCreate", "FragmentUpdate",
    "MessageResponse", "FragmentResponse", "MessageListResponse",
    # Versions
    "VersionCreate", "VersionUpdate", "VersionResponse", "FileDiff", "VersionComparison",
    # Generation
    "ApiGenerateRequest", "CodeGenerateRequest", "ClassifyRequest",
    "GenerationStarted", "JobResponse", "JobStatusResponse", "GenerationEventResponse",
    # Sandbox
    "SandboxCreate", "FileWriteRequest", "ExecCommandRequest", "TerminalInitRequest",
    "FileEntry", "FileContent", "LifecycleResponse",
    # Deployment
    "DeployRequest", "DeploymentResponse",
    # GitHub
    "CreateRepoRequest", "CreateBranchRequest", "PushRequest", "PullRequest", "SyncHistoryResponse",
]
