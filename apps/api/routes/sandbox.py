"""Sandbox routes: preview containers, their files and terminals.

These endpoints let users:
- Create a sandbox for a project, check its status, start/stop it
- Pause, resume, keep alive and restart it (see sandbox_lifecycle)
- Browse, read, write and delete files inside it
- Execute commands, one-off or through a terminal session
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.auth import get_current_user
from apps.api.database import get_db
from apps.api.exceptions import ForgeException
from apps.api.models.project import Project, SandboxState
from apps.api.models.user import User
from apps.api.repositories import project_repo, version_repo
from apps.api.schemas.sandbox import (
    ExecCommandRequest,
    FileWriteRequest,
    LifecycleResponse,
    SandboxCreate,
    TerminalCleanupRequest,
    TerminalExecuteRequest,
    TerminalInitRequest,
)
from apps.api.services import sandbox_lifecycle
from apps.api.services.file_ops_service import file_ops
from apps.api.services.project_service import get_user_project
from apps.api.services.sandbox_manager import sandbox_manager

router = APIRouter(prefix="/projects/{project_id}/sandbox", tags=["sandbox"])


# ── Helpers ───────────────────────────────────────────

def _require_running(project: Project) -> str:
    """Container id of a sandbox that can take file and exec calls."""
    if not project.sandbox_id:
        raise ForgeException("No sandbox found for this project", status_code=404)
    if project.sandbox_status == SandboxState.PAUSED:
        raise ForgeException("Sandbox is paused. Resume it first", status_code=409)
    if project.sandbox_status == SandboxState.EXPIRED:
        raise ForgeException("Sandbox has expired. Restart it first", status_code=409)
    return project.sandbox_id


# ── Sandbox Lifecycle ─────────────────────────────────

@router.post("", status_code=201)
async def create_sandbox(
    project_id: uuid.UUID,
    body: SandboxCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create (or replace) the project's sandbox.

    Without explicit files the latest complete version is loaded.
    """
    project = await get_user_project(db, project_id, current_user)

    files = body.files
    if not files:
        latest = await version_repo.get_latest_complete(db, project.id)
        files = latest.files if latest else {}

    if project.sandbox_id:
        await sandbox_lifecycle.destroy(db, project)

    project = await sandbox_manager.create_sandbox(db, project, framework=body.framework, files=files)
    return {
        "success": True,
        "sandboxId": project.sandbox_id,
        "sandboxUrl": project.sandbox_url,
        "status": project.sandbox_status,
    }


@router.get("")
async def get_sandbox_status(
    project_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Stored sandbox state plus what Docker reports right now."""
    project = await get_user_project(db, project_id, current_user)

    container_status = {}
    if project.sandbox_id:
        container_status = await sandbox_manager.get_status(project.sandbox_id)

    return {
        "sandboxId": project.sandbox_id,
        "sandboxUrl": project.sandbox_url,
        "status": project.sandbox_status,
        "container_status": container_status.get("status", "unknown"),
        "last_sandbox_check": project.last_sandbox_check,
        "metadata": project.project_metadata or {},
    }


@router.post("/start")
async def start_sandbox(
    project_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Start a stopped sandbox container."""
    project = await get_user_project(db, project_id, current_user)
    if not project.sandbox_id:
        raise ForgeException("No sandbox found for this project", status_code=404)

    await sandbox_manager.start_sandbox(project.sandbox_id)
    await project_repo.update_sandbox_state(db, project, SandboxState.ACTIVE)
    return {"status": "running", "message": "Sandbox started"}


@router.post("/stop")
async def stop_sandbox(
    project_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Stop a running sandbox (files stay on the volume)."""
    project = await get_user_project(db, project_id, current_user)
    if not project.sandbox_id:
        raise ForgeException("No sandbox found for this project", status_code=404)

    await sandbox_manager.stop_sandbox(project.sandbox_id)
    await project_repo.update_sandbox_state(db, project, SandboxState.UNKNOWN)
    return {"status": "stopped", "message": "Sandbox stopped (files preserved)"}


@router.post("/pause", response_model=LifecycleResponse)
async def pause_sandbox(
    project_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await get_user_project(db, project_id, current_user)
    return await sandbox_lifecycle.pause(db, project)


@router.post("/resume", response_model=LifecycleResponse)
async def resume_sandbox(
    project_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await get_user_project(db, project_id, current_user)
    return await sandbox_lifecycle.resume(db, project)


@router.post("/keepalive", response_model=LifecycleResponse)
async def keepalive_sandbox(
    project_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await get_user_project(db, project_id, current_user)
    return await sandbox_lifecycle.keepalive(project)


@router.post("/restart", response_model=LifecycleResponse)
async def restart_sandbox(
    project_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Recreate the sandbox from the latest version (or the repo)."""
    project = await get_user_project(db, project_id, current_user)
    try:
        return await sandbox_lifecycle.restart(db, project)
    except ValueError as e:
        raise ForgeException(str(e), status_code=400)


@router.post("/exec")
async def exec_command(
    project_id: uuid.UUID,
    body: ExecCommandRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Execute a one-off command inside the sandbox container."""
    project = await get_user_project(db, project_id, current_user)
    container_id = _require_running(project)

    if not body.command.strip():
        raise ForgeException("Command is required", status_code=400)

    result = await sandbox_manager.exec_command(
        container_id, ["bash", "-c", body.command], timeout=body.timeout
    )
    return {
        "exit_code": result.exit_code,
        "stdout": result.stdout,
        "stderr": result.stderr,
    }


# ── File Operations ───────────────────────────────────

@router.get("/files")
async def list_files(
    project_id: uuid.UUID,
    path: str = Query(default=".", description="Directory path relative to workspace"),
    recursive: bool = Query(default=False, description="List recursively"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List files and directories inside the sandbox (file browser tree)."""
    project = await get_user_project(db, project_id, current_user)
    container_id = _require_running(project)

    try:
        entries = await file_ops.list_files(container_id, path, recursive)
    except FileNotFoundError as e:
        raise ForgeException(str(e), status_code=404)
    except ValueError as e:
        raise ForgeException(str(e), status_code=400)

    return {"path": path, "entries": entries}


@router.get("/files/{file_path:path}")
async def read_file(
    project_id: uuid.UUID,
    file_path: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Read a file's content from the sandbox.

    The {file_path:path} syntax allows slashes in the URL:
        GET /projects/123/sandbox/files/src/app/page.tsx
    """
    project = await get_user_project(db, project_id, current_user)
    container_id = _require_running(project)

    try:
        return await file_ops.read_file(container_id, file_path)
    except FileNotFoundError:
        raise ForgeException(f"File not found: {file_path}", status_code=404)
    except ValueError as e:
        raise ForgeException(str(e), status_code=400)


@router.put("/files/{file_path:path}")
async def write_file(
    project_id: uuid.UUID,
    file_path: str,
    body: FileWriteRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Write content to a file in the sandbox (creates or overwrites)."""
    project = await get_user_project(db, project_id, current_user)
    container_id = _require_running(project)

    try:
        await file_ops.write_file(container_id, file_path, body.content)
    except ValueError as e:
        raise ForgeException(str(e), status_code=400)
    except RuntimeError as e:
        raise ForgeException(str(e), status_code=500)

    return {"status": "written", "path": file_path}


@router.delete("/files/{file_path:path}")
async def delete_file(
    project_id: uuid.UUID,
    file_path: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await get_user_project(db, project_id, current_user)
    container_id = _require_running(project)

    try:
        await file_ops.delete_file(container_id, file_path)
    except ValueError as e:
        raise ForgeException(str(e), status_code=400)
    except RuntimeError as e:
        raise ForgeException(str(e), status_code=500)

    return {"status": "deleted", "path": file_path}


# ── Terminal ──────────────────────────────────────────

@router.post("/terminal")
async def init_terminal(
    project_id: uuid.UUID,
    body: TerminalInitRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await get_user_project(db, project_id, current_user)
    _require_running(project)
    try:
        return sandbox_lifecycle.init_terminal(project, body.working_directory)
    except ValueError as e:
        raise ForgeException(str(e), status_code=400)


@router.post("/terminal/execute")
async def execute_terminal_command(
    project_id: uuid.UUID,
    body: TerminalExecuteRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await get_user_project(db, project_id, current_user)
    _require_running(project)
    return await sandbox_lifecycle.execute_command(
        project, body.command, session_id=body.session_id, timeout=body.timeout
    )


@router.post("/terminal/cleanup")
async def cleanup_terminal(
    project_id: uuid.UUID,
    body: TerminalCleanupRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await get_user_project(db, project_id, current_user)
    return sandbox_lifecycle.cleanup_terminal(body.session_id, project)
