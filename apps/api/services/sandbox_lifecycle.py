"""Sandbox lifecycle: pause, resume, keepalive, restart and terminal sessions.

A paused sandbox keeps its processes frozen (docker pause), so resuming is
much faster than a restart: no reinstall, the dev server is still up. When
the container is gone (daemon restart, manual cleanup) the project is marked
expired and the client is told to restart.

Recoverable failures come back as {"success": False, "needsRestart": True}
with HTTP 200; only a project with no sandbox at all is an error.
"""

import logging
import time
import uuid
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.exceptions import ForgeException, ForbiddenException, NotFoundException
from apps.api.models.project import Project, SandboxState
from apps.api.repositories import project_repo, version_repo
from apps.api.services.event_service import event_service
from apps.api.services.file_ops_service import file_ops
from apps.api.services.sandbox_manager import sandbox_manager, sandbox_names, get_port_for_framework
from events.schemas import EventType, SandboxEvent

logger = logging.getLogger(__name__)

TERMINAL_TIMEOUT = 300
TERMINAL_SESSION_IDLE_SECONDS = 3600
DEFAULT_WORKING_DIRECTORY = "."

# session_id → {"project_id", "sandbox_id", "working_directory", "created_at", "last_used"}
_terminal_sessions: dict[str, dict] = {}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_sandbox(project: Project) -> str:
    if not project.sandbox_id:
        raise ForgeException("No sandbox found for this project", status_code=404)
    return project.sandbox_id


async def _mark_expired(db: AsyncSession, project: Project) -> None:
    await project_repo.update_sandbox_state(db, project, SandboxState.EXPIRED, {"paused": False})


async def _announce(event_type: EventType, project: Project) -> None:
    await event_service.publish_event(
        event_type.value,
        SandboxEvent(
            source="sandbox_lifecycle",
            event_type=event_type,
            project_id=str(project.id),
            sandbox_id=project.sandbox_id or "",
            sandbox_url=project.sandbox_url or "",
        ),
    )


# ── Pause / Resume / Keepalive ────────────────────────

async def pause(db: AsyncSession, project: Project) -> dict:
    sandbox_id = _require_sandbox(project)

    if not await sandbox_manager.pause_sandbox(sandbox_id):
        logger.warning("Sandbox %s for project %s is gone; marking expired", sandbox_id[:12], project.id)
        await _mark_expired(db, project)
        return {"success": False, "error": "Sandbox already expired", "needsRestart": True}

    paused_at = _now_iso()
    await project_repo.update_sandbox_state(
        db, project, SandboxState.PAUSED, {"paused": True, "pausedAt": paused_at}
    )
    logger.info("Sandbox %s paused", sandbox_id[:12])
    await _announce(EventType.SANDBOX_PAUSED, project)
    return {
        "success": True,
        "message": "Sandbox paused successfully",
        "sandboxId": sandbox_id,
        "pausedAt": paused_at,
    }


async def resume(db: AsyncSession, project: Project) -> dict:
    if not project.sandbox_id:
        return {"success": False, "error": "No sandbox found for this project", "needsRestart": True}
    sandbox_id = project.sandbox_id

    if not await sandbox_manager.unpause_sandbox(sandbox_id):
        logger.warning("Paused sandbox %s expired", sandbox_id[:12])
        await _mark_expired(db, project)
        return {
            "success": False,
            "error": "Paused sandbox expired",
            "needsRestart": True,
            "message": "Sandbox was paused for too long and expired. A full restart is needed.",
        }

    metadata = project.project_metadata or {}
    port = metadata.get("port") or get_port_for_framework(metadata.get("framework") or project.framework)
    sandbox_url = await sandbox_manager.get_preview_url(sandbox_id, port)
    resumed_at = _now_iso()

    await project_repo.update_sandbox_state(
        db,
        project,
        SandboxState.ACTIVE,
        {"paused": False, "resumedAt": resumed_at, "lastSuccessfulResume": resumed_at},
        sandbox_url=sandbox_url,
    )
    logger.info("Sandbox %s resumed at %s", sandbox_id[:12], sandbox_url)
    await _announce(EventType.SANDBOX_RESUMED, project)
    return {
        "success": True,
        "message": "Sandbox resumed successfully",
        "sandboxId": sandbox_id,
        "sandboxUrl": sandbox_url,
        "resumedAt": resumed_at,
    }


async def keepalive(project: Project) -> dict:
    sandbox_id = _require_sandbox(project)
    status = await sandbox_manager.get_status(sandbox_id)
    if status["status"] == "running":
        return {"success": True, "sandboxId": sandbox_id, "message": "Sandbox is alive"}
    return {"success": False, "error": "Sandbox may have timed out", "needsRestart": True}


async def restart(db: AsyncSession, project: Project) -> dict:
    """Recreate the sandbox from the latest complete version (or the repo)."""
    latest = await version_repo.get_latest_complete(db, project.id)
    files = latest.files if latest else None
    if not files and not project.repo_url:
        raise ValueError("No repository URL found")

    framework = (project.project_metadata or {}).get("framework") or project.framework
    volume_name, _ = sandbox_names(project)

    purge_terminal_sessions(project.id)
    await project_repo.update_sandbox_state(db, project, SandboxState.RESTORING)
    if project.sandbox_id:
        await sandbox_manager.destroy_sandbox(project.sandbox_id, volume_name)

    try:
        project = await sandbox_manager.create_sandbox(db, project, framework=framework, files=files)
    except Exception:
        await project_repo.update_sandbox_state(db, project, SandboxState.FAILED)
        raise

    project = await project_repo.update_sandbox_state(
        db, project, SandboxState.ACTIVE, {"lastRestarted": _now_iso()}
    )
    logger.info("Sandbox restarted for project %s: %s", project.id, project.sandbox_url)
    await _announce(EventType.SANDBOX_RESTARTED, project)
    return {
        "success": True,
        "sandboxId": project.sandbox_id,
        "sandboxUrl": project.sandbox_url,
        "message": "Sandbox restarted successfully",
    }


async def destroy(db: AsyncSession, project: Project) -> None:
    """Remove the container and volume. Used when a project is deleted."""
    if not project.sandbox_id:
        return
    purge_terminal_sessions(project.id)
    volume_name, _ = sandbox_names(project)
    await sandbox_manager.destroy_sandbox(project.sandbox_id, volume_name)
    await project_repo.update_sandbox_state(
        db, project, SandboxState.EXPIRED, {"sandboxId": None, "paused": False}
    )


# ── Terminal sessions ─────────────────────────────────

def purge_terminal_sessions(project_id: uuid.UUID) -> int:
    """Forget every session of a project whose sandbox is being replaced or removed."""
    stale = [sid for sid, s in _terminal_sessions.items() if s["project_id"] == project_id]
    for session_id in stale:
        del _terminal_sessions[session_id]
    if stale:
        logger.info("Dropped %d terminal sessions for project %s", len(stale), project_id)
    return len(stale)


def _sweep_idle_sessions() -> None:
    cutoff = time.monotonic() - TERMINAL_SESSION_IDLE_SECONDS
    for session_id in [sid for sid, s in _terminal_sessions.items() if s["last_used"] < cutoff]:
        del _terminal_sessions[session_id]
        logger.info("Terminal session %s expired after inactivity", session_id)


def init_terminal(project: Project, working_directory: str = DEFAULT_WORKING_DIRECTORY) -> dict:
    sandbox_id = _require_sandbox(project)
    _sweep_idle_sessions()
    directory = file_ops.safe_path(working_directory)

    session_id = f"pty-{uuid.uuid4().hex[:12]}"
    _terminal_sessions[session_id] = {
        "project_id": project.id,
        "sandbox_id": sandbox_id,
        "working_directory": directory,
        "created_at": _now_iso(),
        "last_used": time.monotonic(),
    }
    logger.info("Terminal session %s opened for project %s", session_id, project.id)
    return {
        "success": True,
        "sessionId": session_id,
        "sandboxId": sandbox_id,
        "workingDirectory": directory,
    }


def _get_session(session_id: str, project: Project) -> dict:
    _sweep_idle_sessions()
    session = _terminal_sessions.get(session_id)
    if session is None:
        raise NotFoundException("Terminal session", session_id)
    if session["project_id"] != project.id or session["sandbox_id"] != project.sandbox_id:
        raise ForbiddenException("Sandbox ID mismatch")
    return session


async def execute_command(
    project: Project,
    command: str,
    session_id: str | None = None,
    timeout: int = TERMINAL_TIMEOUT,
) -> dict:
    """Run a shell command in the sandbox, in the session's directory if given."""
    sandbox_id = _require_sandbox(project)
    workdir = file_ops.safe_path(DEFAULT_WORKING_DIRECTORY)
    if session_id:
        session = _get_session(session_id, project)
        session["last_used"] = time.monotonic()
        workdir = session["working_directory"]

    result = await sandbox_manager.exec_command(
        sandbox_id, ["bash", "-lc", command], timeout=timeout, workdir=workdir
    )
    return {
        "success": result.exit_code == 0,
        "stdout": result.stdout,
        "stderr": result.stderr,
        "exitCode": result.exit_code,
        "sessionId": session_id,
    }


def cleanup_terminal(session_id: str, project: Project) -> dict:
    _get_session(session_id, project)
    del _terminal_sessions[session_id]
    logger.info("Terminal session %s closed", session_id)
    return {"success": True, "message": "Session cleaned up successfully"}
