"""Vercel deployment: ship a project's files as a production deployment.

    deployment = await vercel_service.deploy(db, user, project, files, framework="nextjs")
    status = await vercel_service.get_status(db, user, deployment.vercel_deployment_id)

Each Forge project maps to one Vercel project, created on the first deploy
and reused afterwards. The user's personal Vercel token is stored on the
User row.
"""

import logging
import re
import uuid

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.config import settings
from apps.api.exceptions import ForgeException
from apps.api.models.deployment import Deployment, TERMINAL_DEPLOYMENT_STATES
from apps.api.models.project import Project, ProjectStatus
from apps.api.models.user import User
from apps.api.repositories import deployment_repo, project_repo
from apps.api.services.event_service import event_service
from events.schemas import DeployEvent, EventType

logger = logging.getLogger(__name__)

NAME_RE = re.compile(r"[^a-z0-9-]")

DEFAULT_PROJECT_SETTINGS = {
    "buildCommand": "npm run build",
    "outputDirectory": ".next",
    "installCommand": "npm install",
}

# Overrides per framework; anything missing falls back to the defaults above
FRAMEWORK_SETTINGS = {
    "react": {"framework": "vite", "outputDirectory": "dist"},
    "vite": {"outputDirectory": "dist"},
    "vue": {"framework": "vite", "outputDirectory": "dist"},
    "express": {"framework": None, "buildCommand": None, "outputDirectory": None},
}


def sanitize_project_name(name: str) -> str:
    """Vercel project names: lowercase, [a-z0-9-] only."""
    return NAME_RE.sub("-", name.lower())


def project_settings(framework: str) -> dict:
    config = {"framework": framework, **DEFAULT_PROJECT_SETTINGS}
    config.update(FRAMEWORK_SETTINGS.get(framework, {}))
    return config


class VercelError(ForgeException):
    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message=message, status_code=status_code)


class VercelService:
    """Creates Vercel projects and deployments, and tracks their state."""

    def __init__(self, api_url: str = settings.vercel_api_url, transport: httpx.AsyncBaseTransport | None = None):
        self.api_url = api_url
        self._transport = transport

    def _client(self, token: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers={"Authorization": f"Bearer {token}"},
            params={"teamId": settings.vercel_team_id} if settings.vercel_team_id else None,
            timeout=60.0,
            transport=self._transport,
        )

    @staticmethod
    def _token(user: User) -> str:
        if not user.vercel_access_token:
            raise ForgeException(
                "Vercel not connected. Please connect your Vercel account first.", status_code=400
            )
        return user.vercel_access_token

    async def deploy(
        self,
        db: AsyncSession,
        user: User,
        project: Project,
        files: dict[str, str],
        framework: str = "nextjs",
    ) -> Deployment:
        """Create a production deployment and store it with status "building"."""
        token = self._token(user)
        if not files:
            raise ValueError("No files to deploy")

        name = sanitize_project_name(project.name)
        previous = await deployment_repo.get_latest_for_project(db, project.id)

        async with self._client(token) as client:
            vercel_project_id = previous.vercel_project_id if previous and previous.vercel_project_id else None
            if vercel_project_id is None:
                vercel_project_id = await self._create_project(client, name, framework)

            response = await client.post(
                "/v13/deployments",
                json={
                    "name": name,
                    "files": [{"file": path, "data": content} for path, content in files.items()],
                    "projectSettings": project_settings(framework),
                    "target": "production",
                    "project": vercel_project_id,
                },
            )
            if response.is_error:
                logger.error("Vercel deployment failed (%d): %s", response.status_code, response.text)
                raise VercelError(f"Deployment failed: {response.reason_phrase}")
            data = response.json()

        deployment_url = f"https://{(data.get('alias') or [None])[0] or data.get('url')}"
        deployment = await deployment_repo.create(
            db,
            status="building",
            vercel_project_id=vercel_project_id,
            vercel_deployment_id=data["id"],
            deployment_url=deployment_url,
            project_id=project.id,
            triggered_by=user.id,
        )
        await project_repo.update(db, project, status=ProjectStatus.DEPLOYING)
        logger.info("Deployment %s started for project %s: %s", data["id"], project.id, deployment_url)
        await self._announce(EventType.DEPLOY_STARTED, deployment)
        return deployment

    async def _create_project(self, client: httpx.AsyncClient, name: str, framework: str) -> str:
        response = await client.post("/v10/projects", json={"name": name, "framework": framework})
        if response.is_error:
            logger.error("Failed to create Vercel project (%d): %s", response.status_code, response.text)
            raise VercelError(f"Failed to create Vercel project: {response.reason_phrase}")
        return response.json()["id"]

    async def get_status(self, db: AsyncSession, user: User, vercel_deployment_id: str) -> dict:
        """Read readyState from Vercel and mirror it onto the stored deployment."""
        token = self._token(user)
        async with self._client(token) as client:
            response = await client.get(f"/v13/deployments/{vercel_deployment_id}")
        if response.is_error:
            raise VercelError(f"Failed to get deployment status: {response.reason_phrase}")

        data = response.json()
        status = data.get("readyState") or data.get("state")

        deployment = await deployment_repo.get_by_vercel_id(db, vercel_deployment_id)
        if deployment and status and deployment.status != status:
            changes = {"status": status}
            if status == "ERROR":
                changes["error_message"] = (data.get("errorMessage") or "Deployment failed")[:1000]
            deployment = await deployment_repo.update(db, deployment, **changes)
            await self._sync_project(db, deployment, status)

        return {
            "success": True,
            "status": status,
            "url": deployment.deployment_url if deployment else None,
            "done": status in TERMINAL_DEPLOYMENT_STATES,
        }

    async def _sync_project(self, db: AsyncSession, deployment: Deployment, status: str) -> None:
        if status not in TERMINAL_DEPLOYMENT_STATES:
            return
        await self._announce(EventType.DEPLOY_COMPLETED, deployment)
        project = await project_repo.get_by_id(db, deployment.project_id)
        if project is None:
            return
        if status == "READY":
            await project_repo.update(db, project, status=ProjectStatus.DEPLOYED, deploy_url=deployment.deployment_url)
        else:
            await project_repo.update(db, project, status=ProjectStatus.READY)

    async def _announce(self, event_type: EventType, deployment: Deployment) -> None:
        await event_service.publish_event(
            event_type.value,
            DeployEvent(
                source="vercel",
                event_type=event_type,
                project_id=str(deployment.project_id),
                deployment_id=deployment.vercel_deployment_id or "",
                status=deployment.status or "",
                deploy_url=deployment.deployment_url or "",
                error=deployment.error_message or "",
            ),
        )

    async def list_deployments(self, db: AsyncSession, project_id: uuid.UUID) -> list[Deployment]:
        return await deployment_repo.get_by_project(db, project_id)


# Singleton
vercel_service = VercelService()
