"""Version management: numbered, full-snapshot file versions per project.

Every generation produces a new version holding the complete file map, not
a diff. Diffs are computed on demand for display only.
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.exceptions import NotFoundException
from apps.api.models.version import CommandType, Version, VersionStatus
from apps.api.repositories import version_repo

logger = logging.getLogger(__name__)


async def get_version(db: AsyncSession, version_id: uuid.UUID) -> Version:
    version = await version_repo.get_by_id(db, version_id)
    if not version:
        raise NotFoundException("Version", str(version_id))
    return version


async def get_next_version_number(db: AsyncSession, project_id: uuid.UUID) -> int:
    current = await version_repo.get_max_version_number(db, project_id)
    return (current or 0) + 1


async def create_version(
    db: AsyncSession,
    project_id: uuid.UUID,
    name: str,
    files: dict[str, str],
    command_type: CommandType,
    prompt: str,
    description: str | None = None,
    parent_version_id: uuid.UUID | None = None,
    status: VersionStatus = VersionStatus.GENERATING,
    metadata: dict | None = None,
) -> Version:
    """Create the next version of a project."""
    number = await get_next_version_number(db, project_id)
    version = await version_repo.create(
        db,
        project_id=project_id,
        version_number=number,
        name=name,
        description=description,
        files=files,
        command_type=command_type,
        prompt=prompt,
        parent_version_id=parent_version_id,
        status=status,
        version_metadata=metadata or {},
    )
    logger.info("Created version %d for project %s (%s)", number, project_id, command_type.value)
    return version


async def list_versions(
    db: AsyncSession, project_id: uuid.UUID, skip: int = 0, limit: int = 50
) -> list[Version]:
    return await version_repo.get_by_project(db, project_id, skip=skip, limit=limit)


async def get_latest_version(db: AsyncSession, project_id: uuid.UUID) -> Version | None:
    """Newest version that finished successfully."""
    return await version_repo.get_latest_complete(db, project_id)


async def update_version(db: AsyncSession, version: Version, **changes) -> Version:
    if "metadata" in changes:
        changes["version_metadata"] = changes.pop("metadata")
    if changes.get("status") is not None:
        changes["status"] = VersionStatus(changes["status"])
    changes = {k: v for k, v in changes.items() if v is not None}
    return await version_repo.update(db, version, **changes)


async def delete_version(db: AsyncSession, version: Version) -> None:
    await version_repo.delete(db, version)


async def count_versions(db: AsyncSession, project_id: uuid.UUID) -> int:
    return await version_repo.count_by_project(db, project_id)


async def mark_complete(db: AsyncSession, version: Version, files: dict[str, str] | None = None) -> Version:
    changes = {"status": VersionStatus.COMPLETE}
    if files is not None:
        changes["files"] = files
    return await version_repo.update(db, version, **changes)


async def mark_failed(db: AsyncSession, version: Version, error: str | None = None) -> Version:
    changes = {"status": VersionStatus.FAILED}
    if error:
        changes["version_metadata"] = {**(version.version_metadata or {}), "error": error}
    return await version_repo.update(db, version, **changes)


async def get_version_history(db: AsyncSession, version_id: uuid.UUID) -> list[Version]:
    """Follow parent links back to the first version. Oldest first."""
    history: list[Version] = []
    seen: set[uuid.UUID] = set()
    current_id: uuid.UUID | None = version_id

    while current_id and current_id not in seen:
        seen.add(current_id)
        version = await get_version(db, current_id)
        history.append(version)
        current_id = version.parent_version_id

    history.reverse()
    return history


def compare_versions(old: Version, new: Version) -> dict:
    """File-level diff between two snapshots.

    Returns {"version1", "version2", "diffs", "summary"} where each diff has
    a status of added, deleted, modified or unchanged.
    """
    files1 = old.files or {}
    files2 = new.files or {}

    diffs = []
    summary = {"files_added": 0, "files_modified": 0, "files_deleted": 0, "files_unchanged": 0}

    for filename in sorted(set(files1) | set(files2)):
        before = files1.get(filename)
        after = files2.get(filename)

        if before is None:
            status = "added"
        elif after is None:
            status = "deleted"
        elif before != after:
            status = "modified"
        else:
            status = "unchanged"

        summary[f"files_{status}"] += 1
        diffs.append({
            "filename": filename,
            "status": status,
            "old_content": before,
            "new_content": after,
        })

    return {"version1": old, "version2": new, "diffs": diffs, "summary": summary}
