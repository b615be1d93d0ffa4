"""Project access and teardown.

Every project-scoped route resolves its project through
`get_user_project`, so the ownership rule lives in one place: owners see
their projects, admins see everything, everyone else gets 403.
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.exceptions import ForbiddenException, NotFoundException
from apps.api.models.project import Project
from apps.api.models.user import User, UserRole
from apps.api.repositories import generation_event_repo, project_repo
from apps.api.services import sandbox_lifecycle
from apps.api.services.event_service import event_service
from apps.api.services.llm import get_file_index
from apps.api.services.streaming_service import streaming_service
from events.schemas import EventType

logger = logging.getLogger(__name__)


async def get_user_project(db: AsyncSession, project_id: uuid.UUID, user: User) -> Project:
    """Fetch a project and verify the user may access it (404 / 403)."""
    project = await project_repo.get_by_id(db, project_id)
    if not project:
        raise NotFoundException("Project", str(project_id))
    if project.owner_id != user.id and user.role != UserRole.ADMIN:
        raise ForbiddenException("You don't have access to this project")
    return project


async def delete_project(db: AsyncSession, project: Project) -> None:
    """Delete a project after tearing down what lives outside its rows.

    Sandbox removal and index cleanup are best-effort: a dead Docker daemon
    must not make a project undeletable.
    """
    project_id = project.id

    try:
        await sandbox_lifecycle.destroy(db, project)
    except Exception as e:
        logger.warning("Could not destroy sandbox for project %s: %s", project_id, e)

    deleted = await generation_event_repo.delete_by_project(db, project_id)
    logger.debug("Deleted %d generation events for project %s", deleted, project_id)

    file_index = get_file_index()
    if file_index is not None:
        try:
            await file_index.delete_project(db, project_id)
        except Exception as e:
            logger.warning("Could not delete embeddings for project %s: %s", project_id, e)
            await db.rollback()

    streaming_service.close_project(str(project_id))
    await project_repo.delete(db, project)
    await event_service.publish(EventType.PROJECT_DELETED.value, {"project_id": str(project_id)})
    logger.info("Deleted project %s", project_id)
