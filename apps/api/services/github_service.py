"""GitHub sync: create repos and branches, push and pull project files.

Talks to the GitHub REST API with httpx using the user's stored OAuth token.
Pushes go through the Git Data API so a whole file set lands as a single
commit:

    ref → commit → blobs → tree → commit → update ref

Raw GitHub errors never reach the client. They are logged in full and
replaced by a short message chosen from the status code. Every operation,
successful or not, is written to github_sync_history.
"""

import asyncio
import base64
import logging
import uuid

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.config import settings
from apps.api.exceptions import ForgeException
from apps.api.models.github_sync import GitHubSyncHistory, SyncOperation
from apps.api.models.project import Project
from apps.api.models.user import User
from apps.api.repositories import github_sync_repo, project_repo, version_repo
from apps.api.services.event_service import event_service
from events.schemas import EventType, GitHubSyncEvent

logger = logging.getLogger(__name__)

BINARY_EXTENSIONS = (
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".svg",
    ".pdf", ".zip", ".tar", ".gz", ".rar", ".7z",
    ".exe", ".dll", ".so", ".dylib",
    ".woff", ".woff2", ".ttf", ".eot", ".otf",
    ".mp3", ".mp4", ".avi", ".mov", ".wmv",
    ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
)

INVALID_REPO_NAME = 'Invalid repository name format. Expected "owner/repo"'
DEFAULT_REPO_DESCRIPTION = "Created by SmartForge"
DEFAULT_PR_BODY = "Auto-generated changes from SmartForge"

SAFE_ERRORS = {
    401: "Authentication failed. Please check your GitHub credentials.",
    403: "Access denied. You may not have permission to access this resource.",
    404: "Resource not found. Please verify the repository or branch exists.",
    422: "Invalid request. Please check your input parameters.",
}
RATE_LIMIT_ERROR = "GitHub API rate limit exceeded. Please try again later."
GENERIC_ERROR = "An error occurred while communicating with GitHub. Please try again."


class GitHubSyncError(ForgeException):
    """A GitHub call failed. `message` is always safe to show the user."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message=message, status_code=status_code)


def validate_repo_full_name(repo_full_name: str) -> tuple[str, str]:
    """Split "owner/repo". Raises ValueError for anything else."""
    parts = (repo_full_name or "").split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(INVALID_REPO_NAME)
    return parts[0], parts[1]


def is_binary_file(path: str) -> bool:
    return path.lower().endswith(BINARY_EXTENSIONS)


def sanitize_error(error: Exception, context: str) -> str:
    """Log the full error server-side, return a message safe for clients."""
    status = None
    detail = str(error)
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        detail = error.response.text
    logger.error("[%s] GitHub error (status=%s): %s", context, status, detail)

    if status == 429 or "rate limit" in detail.lower():
        return RATE_LIMIT_ERROR
    return SAFE_ERRORS.get(status, GENERIC_ERROR)


class GitHubClient:
    """Thin async wrapper over the GitHub endpoints we use."""

    def __init__(self, token: str, api_url: str = settings.github_api_url, transport: httpx.AsyncBaseTransport | None = None):
        self._client = httpx.AsyncClient(
            base_url=api_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=30.0,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> dict:
        response = await self._client.request(method, url, **kwargs)
        response.raise_for_status()
        return response.json() if response.content else {}

    # ── Repositories and refs ─────────────────────────────

    async def create_repository(
        self, name: str, private: bool = True, description: str | None = None, org: str | None = None
    ) -> dict:
        body = {
            "name": name,
            "private": private,
            "description": description or DEFAULT_REPO_DESCRIPTION,
            "auto_init": True,
        }
        url = f"/orgs/{org}/repos" if org else "/user/repos"
        return await self._request("POST", url, json=body)

    async def get_repository(self, owner: str, repo: str) -> dict:
        return await self._request("GET", f"/repos/{owner}/{repo}")

    async def get_ref_sha(self, owner: str, repo: str, branch: str) -> str | None:
        """Head commit of `branch`, or None when the branch does not exist."""
        try:
            data = await self._request("GET", f"/repos/{owner}/{repo}/git/ref/heads/{branch}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise
        return data["object"]["sha"]

    async def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> None:
        await self._request(
            "POST", f"/repos/{owner}/{repo}/git/refs", json={"ref": f"refs/heads/{branch}", "sha": sha}
        )

    # ── Git Data API ──────────────────────────────────────

    async def get_commit(self, owner: str, repo: str, sha: str) -> dict:
        return await self._request("GET", f"/repos/{owner}/{repo}/git/commits/{sha}")

    async def create_blob(self, owner: str, repo: str, content: str) -> str:
        data = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            json={"content": base64.b64encode(content.encode("utf-8")).decode("ascii"), "encoding": "base64"},
        )
        return data["sha"]

    async def create_tree(self, owner: str, repo: str, base_tree: str, entries: list[dict]) -> str:
        data = await self._request(
            "POST", f"/repos/{owner}/{repo}/git/trees", json={"base_tree": base_tree, "tree": entries}
        )
        return data["sha"]

    async def create_commit(self, owner: str, repo: str, message: str, tree: str, parent: str) -> str:
        data = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            json={"message": message, "tree": tree, "parents": [parent]},
        )
        return data["sha"]

    async def update_ref(self, owner: str, repo: str, branch: str, sha: str) -> None:
        await self._request("PATCH", f"/repos/{owner}/{repo}/git/refs/heads/{branch}", json={"sha": sha})

    async def get_tree(self, owner: str, repo: str, branch: str) -> list[dict]:
        branch_data = await self._request("GET", f"/repos/{owner}/{repo}/branches/{branch}")
        tree_sha = branch_data["commit"]["commit"]["tree"]["sha"]
        tree = await self._request("GET", f"/repos/{owner}/{repo}/git/trees/{tree_sha}", params={"recursive": "true"})
        return tree.get("tree", [])

    async def get_blob(self, owner: str, repo: str, sha: str) -> str:
        data = await self._request("GET", f"/repos/{owner}/{repo}/git/blobs/{sha}")
        return base64.b64decode(data["content"]).decode("utf-8")

    async def create_pull_request(self, owner: str, repo: str, title: str, body: str, head: str, base: str) -> dict:
        return await self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "body": body, "head": head, "base": base},
        )


class GitHubService:
    """GitHub operations on behalf of a user, with sync history."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport  # Tests inject httpx.MockTransport

    def _client(self, user: User) -> GitHubClient:
        if not user.github_access_token:
            raise ForgeException("GitHub not connected. Connect your GitHub account first.", status_code=400)
        return GitHubClient(user.github_access_token, transport=self._transport)

    async def create_repository(
        self,
        db: AsyncSession,
        user: User,
        project: Project,
        name: str,
        private: bool = True,
        description: str | None = None,
        org: str | None = None,
    ) -> dict:
        """Create a repo (auto-initialised) and link it to the project."""
        project_id, user_id = project.id, user.id
        try:
            async with self._client(user) as gh:
                repo = await gh.create_repository(name, private=private, description=description, org=org)
        except httpx.HTTPError as e:
            message = sanitize_error(e, "create_repository")
            await self.record_sync(db, project_id, user_id, SyncOperation.CREATE_REPO, name, error=message)
            raise GitHubSyncError(message) from e

        await project_repo.update(
            db,
            project,
            repo_url=repo["html_url"],
            repo_full_name=repo["full_name"],
            default_branch=repo.get("default_branch") or "main",
        )
        await self.record_sync(db, project_id, user_id, SyncOperation.CREATE_REPO, repo["full_name"])
        logger.info("Created GitHub repository %s for project %s", repo["full_name"], project_id)
        return {"repoUrl": repo["html_url"], "repoFullName": repo["full_name"], "repoId": repo["id"]}

    async def create_branch(
        self,
        db: AsyncSession,
        user: User,
        project: Project,
        repo_full_name: str,
        branch: str,
        base_branch: str = "main",
    ) -> dict:
        """Create `branch` from `base_branch`. Succeeds if it already exists."""
        project_id, user_id = project.id, user.id
        owner, repo = validate_repo_full_name(repo_full_name)
        try:
            async with self._client(user) as gh:
                base_sha = await gh.get_ref_sha(owner, repo, base_branch)
                if base_sha is None:
                    raise GitHubSyncError(SAFE_ERRORS[404], status_code=404)

                existing = await gh.get_ref_sha(owner, repo, branch)
                if existing:
                    return {"success": True, "branchSha": existing, "alreadyExists": True}

                await gh.create_ref(owner, repo, branch, base_sha)
        except httpx.HTTPError as e:
            message = sanitize_error(e, "create_branch")
            await self.record_sync(
                db, project_id, user_id, SyncOperation.CREATE_BRANCH, repo_full_name, branch=branch, error=message
            )
            raise GitHubSyncError(message) from e

        await self.record_sync(db, project_id, user_id, SyncOperation.CREATE_BRANCH, repo_full_name, branch=branch)
        return {"success": True, "branchSha": base_sha, "alreadyExists": False}

    async def push_files(
        self,
        db: AsyncSession,
        user: User,
        project: Project,
        repo_full_name: str,
        commit_message: str,
        files: dict[str, str] | None = None,
        branch: str = "main",
        base_branch: str = "main",
        create_pr: bool = False,
        pr_title: str | None = None,
        pr_body: str | None = None,
    ) -> dict:
        """Commit `files` (default: the latest complete version) to `branch`.

        The branch is created from `base_branch` when missing; a concurrent
        creation (422) is tolerated by re-reading the ref.
        """
        project_id, user_id = project.id, user.id
        owner, repo = validate_repo_full_name(repo_full_name)
        if files is None:
            latest = await version_repo.get_latest_complete(db, project_id)
            files = latest.files if latest else {}
        if not files:
            raise ValueError("No files to push")

        try:
            async with self._client(user) as gh:
                base_sha = await gh.get_ref_sha(owner, repo, base_branch)
                if base_sha is None:
                    raise GitHubSyncError(SAFE_ERRORS[404], status_code=404)

                branch_sha = await gh.get_ref_sha(owner, repo, branch)
                if branch_sha is None:
                    try:
                        await gh.create_ref(owner, repo, branch, base_sha)
                        branch_sha = base_sha
                    except httpx.HTTPStatusError as e:
                        if e.response.status_code != 422:
                            raise
                        branch_sha = await gh.get_ref_sha(owner, repo, branch)

                commit = await gh.get_commit(owner, repo, branch_sha)
                blob_shas = await asyncio.gather(
                    *(gh.create_blob(owner, repo, content) for content in files.values())
                )
                entries = [
                    {"path": path, "mode": "100644", "type": "blob", "sha": sha}
                    for path, sha in zip(files, blob_shas)
                ]
                tree_sha = await gh.create_tree(owner, repo, commit["tree"]["sha"], entries)
                commit_sha = await gh.create_commit(owner, repo, commit_message, tree_sha, branch_sha)
                await gh.update_ref(owner, repo, branch, commit_sha)

                pr = None
                if create_pr:
                    pr = await gh.create_pull_request(
                        owner, repo,
                        title=pr_title or commit_message,
                        body=pr_body or DEFAULT_PR_BODY,
                        head=branch,
                        base=base_branch,
                    )
        except httpx.HTTPError as e:
            message = sanitize_error(e, "push_files")
            await self.record_sync(
                db, project_id, user_id, SyncOperation.PUSH, repo_full_name,
                branch=branch, commit_message=commit_message, error=message,
            )
            raise GitHubSyncError(message) from e

        await self.record_sync(
            db, project_id, user_id, SyncOperation.PUSH, repo_full_name,
            branch=branch,
            commit_sha=commit_sha,
            commit_message=commit_message,
            files_changed=len(files),
        )
        if pr:
            await self.record_sync(
                db, project_id, user_id, SyncOperation.CREATE_PR, repo_full_name,
                branch=branch, pr_number=pr.get("number"), pr_url=pr.get("html_url"),
            )
        logger.info("Pushed %d files to %s@%s (%s)", len(files), repo_full_name, branch, commit_sha[:7])
        await event_service.publish_event(
            EventType.GITHUB_SYNCED.value,
            GitHubSyncEvent(
                source="github",
                event_type=EventType.GITHUB_SYNCED,
                project_id=str(project_id),
                repo_full_name=repo_full_name,
                branch=branch,
                commit_sha=commit_sha,
                pr_url=pr.get("html_url", "") if pr else "",
            ),
        )
        return {
            "success": True,
            "commitSha": commit_sha,
            "prUrl": pr.get("html_url") if pr else None,
            "prNumber": pr.get("number") if pr else None,
        }

    async def pull_files(
        self,
        db: AsyncSession,
        user: User,
        project: Project,
        repo_full_name: str,
        branch: str | None = None,
        path: str | None = None,
        max_files: int = settings.github_max_pull_files,
    ) -> dict:
        """Fetch text files from a branch (default: the repo's default branch).

        Binary files are skipped; per-file fetch errors are collected rather
        than failing the whole pull.
        """
        project_id, user_id = project.id, user.id
        owner, repo = validate_repo_full_name(repo_full_name)
        files: dict[str, str] = {}
        errors: list[dict] = []
        skipped: list[str] = []

        try:
            async with self._client(user) as gh:
                if not branch:
                    branch = (await gh.get_repository(owner, repo)).get("default_branch") or "main"

                blobs = [
                    item for item in await gh.get_tree(owner, repo, branch)
                    if item.get("type") == "blob" and (not path or item.get("path", "").startswith(path))
                ]
                if len(blobs) > max_files:
                    logger.warning(
                        "%s has %d files, only fetching the first %d", repo_full_name, len(blobs), max_files
                    )

                async def fetch(item: dict) -> None:
                    if is_binary_file(item["path"]):
                        skipped.append(item["path"])
                        return
                    try:
                        files[item["path"]] = await gh.get_blob(owner, repo, item["sha"])
                    except (httpx.HTTPError, UnicodeDecodeError) as e:
                        logger.warning("Failed to fetch %s from %s: %s", item["path"], repo_full_name, e)
                        errors.append({"path": item["path"], "error": "Failed to fetch file content"})

                await asyncio.gather(*(fetch(item) for item in blobs[:max_files]))
        except httpx.HTTPError as e:
            message = sanitize_error(e, "pull_files")
            await self.record_sync(
                db, project_id, user_id, SyncOperation.PULL, repo_full_name, branch=branch, error=message
            )
            raise GitHubSyncError(message) from e

        await self.record_sync(
            db, project_id, user_id, SyncOperation.PULL, repo_full_name, branch=branch, files_changed=len(files)
        )
        return {
            "success": True,
            "branch": branch,
            "files": files,
            "errors": errors or None,
            "skippedBinaryFiles": skipped or None,
        }

    # ── Sync history ──────────────────────────────────────

    async def record_sync(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
        operation: SyncOperation,
        repo_full_name: str,
        error: str | None = None,
        **fields,
    ) -> GitHubSyncHistory | None:
        """Write one history row. Failures are logged, never raised."""
        try:
            return await github_sync_repo.create(
                db,
                project_id=project_id,
                user_id=user_id,
                operation=operation,
                repo_full_name=repo_full_name,
                status="failed" if error else "success",
                error_message=error,
                **fields,
            )
        except Exception as e:
            logger.error("Failed to record GitHub sync history for project %s: %s", project_id, e)
            await db.rollback()
            return None

    async def get_sync_history(self, db: AsyncSession, project_id: uuid.UUID, limit: int = 20) -> list[GitHubSyncHistory]:
        return await github_sync_repo.get_by_project(db, project_id, limit=limit)


# Singleton
github_service = GitHubService()
