"""Sandbox Manager: provisions and manages one Docker container per project.

It handles:
- Creating containers (blank, seeded with generated files, or cloned)
- Starting, stopping, pausing and unpausing containers
- Executing commands inside containers
- Copying generated files into the container's /workspace
- Container and volume cleanup

Every project gets its own isolated container with:
- Its own filesystem (named Docker volume at /workspace)
- Resource limits (CPU, memory)
- An isolated bridge network
- One published preview port, picked by framework

Sandbox state is tracked on the Project row (sandbox_status, sandbox_url and
the metadata JSON), not in a table of its own.

Architecture:
    Route / Generation runner → SandboxManager → Docker Engine → Container
"""

import asyncio
import io
import logging
import tarfile
import time
from dataclasses import dataclass

import docker
from docker.errors import NotFound
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.config import settings
from apps.api.models.project import Project, SandboxState
from apps.api.repositories.project import project_repo

logger = logging.getLogger(__name__)

WORKSPACE_ROOT = "/workspace"

FRAMEWORK_PORTS = {
    "nextjs": 3000,
    "react": 3000,
    "vue": 5173,
    "angular": 4200,
    "express": 3000,
    "fastapi": 8000,
    "flask": 5000,
}
DEFAULT_PORT = 3000

# Commands that bring up the preview server, run detached after files land.
DEV_COMMANDS = {
    "nextjs": "npm install && npm run dev -- -H 0.0.0.0 -p 3000",
    "react": "npm install && npm run dev -- --host 0.0.0.0 --port 3000",
    "vue": "npm install && npm run dev -- --host 0.0.0.0",
    "angular": "npm install && npm start -- --host 0.0.0.0",
    "express": "npm install && (npm start || node index.js)",
    "fastapi": "pip install -r requirements.txt && uvicorn main:app --reload --host 0.0.0.0 --port 8000",
    "flask": "pip install -r requirements.txt && flask run --host=0.0.0.0 --port 5000",
}


def get_port_for_framework(framework: str | None) -> int:
    return FRAMEWORK_PORTS.get((framework or "").lower(), DEFAULT_PORT)


def sandbox_names(project: Project) -> tuple[str, str]:
    """(volume_name, container_name) for a project's sandbox."""
    return f"forge-sandbox-{project.id}", f"forge-sandbox-{str(project.id)[:8]}"


@dataclass
class ExecResult:
    """Result of executing a command inside a sandbox container."""
    exit_code: int
    stdout: str
    stderr: str


class SandboxManager:
    """Manages Docker container lifecycle for project sandboxes.

    Usage:
        project = await sandbox_manager.create_sandbox(db, project, files=files)
        result = await sandbox_manager.exec_command(project.sandbox_id, ["ls"])
    """

    def __init__(self):
        self._client = None

    @property
    def client(self):
        # Connected on first use so importing the app never needs a daemon
        if self._client is None:
            self._client = docker.DockerClient(base_url=settings.docker_host)
        return self._client

    # ── Container Lifecycle ───────────────────────────

    async def create_sandbox(
        self,
        db: AsyncSession,
        project: Project,
        framework: str | None = None,
        files: dict[str, str] | None = None,
    ) -> Project:
        """Create a sandbox for a project and record it on the project.

        Steps:
        1. Create a named volume and start a container publishing the
           framework's preview port
        2. Seed /workspace with `files`, or clone the project's repo when
           there are no files, or just `git init`
        3. Launch the dev server in the background
        4. Store sandboxId / framework / port in the project metadata
        """
        framework = (framework or project.framework or "nextjs").lower()
        port = get_port_for_framework(framework)
        volume_name, container_name = sandbox_names(project)

        logger.info("Creating sandbox for project %s (%s, port %d)", project.name, framework, port)

        container = await asyncio.to_thread(
            self._create_container, volume_name, container_name, port
        )

        if files:
            await self.write_files(container.id, files)
        elif project.repo_url:
            clone_result = await self.exec_command(
                container.id,
                ["git", "clone", project.repo_url, "."],
                timeout=120,
            )
            if clone_result.exit_code != 0:
                logger.error("Git clone failed: %s", clone_result.stderr)
        else:
            await self.exec_command(container.id, ["git", "init"])

        if files or project.repo_url:
            await self.start_dev_server(container.id, framework)

        sandbox_url = await self.get_preview_url(container.id, port)
        project = await project_repo.update_sandbox_state(
            db,
            project,
            SandboxState.ACTIVE,
            metadata_updates={
                "sandboxId": container.id,
                "framework": framework,
                "port": port,
                "paused": False,
            },
            sandbox_url=sandbox_url,
        )

        logger.info("Sandbox ready for project %s: %s", project.id, sandbox_url)
        return project

    async def start_sandbox(self, container_id: str) -> None:
        """Start a stopped sandbox container."""
        logger.info("Starting sandbox container: %s", container_id[:12])
        await asyncio.to_thread(self._start_container, container_id)

    async def stop_sandbox(self, container_id: str) -> None:
        """Stop a running sandbox (preserves files on the volume)."""
        logger.info("Stopping sandbox container: %s", container_id[:12])
        await asyncio.to_thread(self._stop_container, container_id)

    async def pause_sandbox(self, container_id: str) -> bool:
        """Freeze every process in the container. False if it no longer exists."""
        logger.info("Pausing sandbox container: %s", container_id[:12])
        return await asyncio.to_thread(self._pause_container, container_id)

    async def unpause_sandbox(self, container_id: str) -> bool:
        """Thaw a paused container. False if it no longer exists."""
        logger.info("Resuming sandbox container: %s", container_id[:12])
        return await asyncio.to_thread(self._unpause_container, container_id)

    async def destroy_sandbox(self, container_id: str, volume_name: str | None = None) -> None:
        """Remove a container and optionally its volume. There's no undo."""
        logger.info("Destroying sandbox container: %s", container_id[:12])
        await asyncio.to_thread(self._destroy_container, container_id, volume_name)

    # ── Command Execution ─────────────────────────────

    async def exec_command(
        self,
        container_id: str,
        cmd: list[str],
        timeout: int = 30,
        workdir: str = WORKSPACE_ROOT,
    ) -> ExecResult:
        """Execute a command inside a sandbox container.

        Returns ExecResult with exit_code -1 when the command does not
        finish within `timeout` seconds.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._exec_in_container, container_id, cmd, workdir),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Command timed out after %ds: %s", timeout, " ".join(cmd))
            return ExecResult(
                exit_code=-1,
                stdout="",
                stderr=f"Command timed out after {timeout} seconds",
            )

    async def start_dev_server(self, container_id: str, framework: str) -> None:
        """Launch the framework's dev server detached; output goes to /tmp/dev.log."""
        command = DEV_COMMANDS.get(framework, DEV_COMMANDS["nextjs"])
        await asyncio.to_thread(
            self._exec_detached,
            container_id,
            ["bash", "-c", f"{command} > /tmp/dev.log 2>&1"],
        )
        logger.info("Dev server starting in %s (%s)", container_id[:12], framework)

    async def write_files(self, container_id: str, files: dict[str, str]) -> int:
        """Copy `files` ({relative path: content}) into /workspace in one archive."""
        if not files:
            return 0
        await asyncio.to_thread(self._put_files, container_id, files)
        logger.info("Wrote %d files into sandbox %s", len(files), container_id[:12])
        return len(files)

    async def get_status(self, container_id: str) -> dict:
        """Get the current status of a sandbox container."""
        try:
            container = await asyncio.to_thread(self.client.containers.get, container_id)
            return {
                "status": container.status,  # "running", "exited", "paused"
                "short_id": container.short_id,
                "name": container.name,
            }
        except NotFound:
            return {"status": "not_found"}

    async def get_preview_url(self, container_id: str, port: int) -> str:
        host_port = await asyncio.to_thread(self._host_port, container_id, port)
        return f"http://{settings.sandbox_preview_host}:{host_port or port}"

    # ── Private helpers: blocking Docker calls ────────

    def _create_container(self, volume_name: str, container_name: str, port: int):
        """Create and start a container (blocking). Replaces a leftover one with the same name."""
        self._ensure_network()

        try:
            self.client.containers.get(container_name).remove(force=True)
            logger.info("Removed leftover container %s", container_name)
        except NotFound:
            pass

        container = self.client.containers.run(
            image=settings.sandbox_image,
            name=container_name,
            detach=True,
            volumes={volume_name: {"bind": WORKSPACE_ROOT, "mode": "rw"}},
            ports={f"{port}/tcp": None},           # Random free host port
            nano_cpus=int(settings.sandbox_cpu_limit * 1e9),
            mem_limit=f"{settings.sandbox_memory_limit_mb}m",
            privileged=False,
            network=settings.sandbox_network,
            labels={
                "forge.managed": "true",
                "forge.volume": volume_name,
                "forge.port": str(port),
            },
        )

        logger.info("Container created: %s (%s)", container_name, container.short_id)
        return container

    def _start_container(self, container_id: str) -> None:
        self.client.containers.get(container_id).start()

    def _stop_container(self, container_id: str) -> None:
        try:
            self.client.containers.get(container_id).stop(timeout=10)
        except NotFound:
            logger.warning("Container %s not found (already removed?)", container_id[:12])

    def _pause_container(self, container_id: str) -> bool:
        try:
            container = self.client.containers.get(container_id)
        except NotFound:
            return False
        if container.status != "paused":
            container.pause()
        return True

    def _unpause_container(self, container_id: str) -> bool:
        try:
            container = self.client.containers.get(container_id)
        except NotFound:
            return False
        if container.status == "paused":
            container.unpause()
        elif container.status != "running":
            container.start()
        return True

    def _destroy_container(self, container_id: str, volume_name: str | None) -> None:
        try:
            self.client.containers.get(container_id).remove(force=True)
            logger.info("Container removed: %s", container_id[:12])
        except NotFound:
            logger.warning("Container %s already removed", container_id[:12])

        if volume_name:
            try:
                self.client.volumes.get(volume_name).remove()
                logger.info("Volume removed: %s", volume_name)
            except NotFound:
                logger.warning("Volume %s already removed", volume_name)

    def _exec_in_container(self, container_id: str, cmd: list[str], workdir: str) -> ExecResult:
        container = self.client.containers.get(container_id)
        exec_result = container.exec_run(cmd=cmd, workdir=workdir, demux=True)

        # demux=True returns (stdout_bytes, stderr_bytes)
        stdout = ""
        stderr = ""
        if exec_result.output:
            if isinstance(exec_result.output, tuple):
                stdout = (exec_result.output[0] or b"").decode("utf-8", errors="replace")
                stderr = (exec_result.output[1] or b"").decode("utf-8", errors="replace")
            else:
                stdout = exec_result.output.decode("utf-8", errors="replace")

        return ExecResult(exit_code=exec_result.exit_code, stdout=stdout, stderr=stderr)

    def _exec_detached(self, container_id: str, cmd: list[str]) -> None:
        container = self.client.containers.get(container_id)
        container.exec_run(cmd=cmd, workdir=WORKSPACE_ROOT, detach=True)

    def _put_files(self, container_id: str, files: dict[str, str]) -> None:
        """Pack files into an in-memory tar and extract it at /workspace."""
        buffer = io.BytesIO()
        now = time.time()
        with tarfile.open(fileobj=buffer, mode="w") as tar:
            for path, content in files.items():
                data = content.encode("utf-8")
                info = tarfile.TarInfo(name=path.lstrip("/"))
                info.size = len(data)
                info.mtime = now
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(data))
        buffer.seek(0)

        container = self.client.containers.get(container_id)
        if not container.put_archive(WORKSPACE_ROOT, buffer.getvalue()):
            raise RuntimeError(f"Failed to copy files into sandbox {container_id[:12]}")

    def _host_port(self, container_id: str, port: int) -> str | None:
        container = self.client.containers.get(container_id)
        container.reload()
        bindings = (container.attrs.get("NetworkSettings", {}).get("Ports") or {}).get(f"{port}/tcp")
        if bindings:
            return bindings[0].get("HostPort")
        return None

    def _ensure_network(self) -> None:
        try:
            self.client.networks.get(settings.sandbox_network)
        except NotFound:
            self.client.networks.create(
                settings.sandbox_network,
                driver="bridge",
                labels={"forge.managed": "true"},
            )
            logger.info("Created Docker network: %s", settings.sandbox_network)


# Singleton instance
sandbox_manager = SandboxManager()
