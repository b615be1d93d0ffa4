"""File operations inside sandbox containers.

Translates the sandbox file routes (create, read, delete, list) into
docker exec commands:

    Route → FileOpsService → SandboxManager.exec_command() → container

Security is enforced here: every path is confined to /workspace, reads and
writes are size-limited and binary files are refused.
"""

import base64
import logging
import posixpath
import shlex

from apps.api.services.sandbox_manager import sandbox_manager, WORKSPACE_ROOT

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 1 * 1024 * 1024     # 1MB
MAX_WRITE_SIZE = 1 * 1024 * 1024    # 1MB

TEXT_MIMES = (
    "text/", "application/json", "application/xml", "application/javascript",
    "application/toml", "application/x-yaml", "inode/x-empty",
)


class FileOpsService:
    """File operations inside sandbox containers via docker exec."""

    def safe_path(self, path: str) -> str:
        """Resolve `path` and ensure it stays within /workspace.

        Accepts:
            "src/app/page.tsx"           → "/workspace/src/app/page.tsx"
            "./main.py"                  → "/workspace/main.py"
            "/workspace/package.json"    → "/workspace/package.json"
            "."                          → "/workspace"

        Rejects (ValueError):
            "../../etc/passwd", "/etc/shadow"
        """
        if path.startswith(WORKSPACE_ROOT):
            resolved = posixpath.normpath(path)
        else:
            resolved = posixpath.normpath(posixpath.join(WORKSPACE_ROOT, path))

        if resolved != WORKSPACE_ROOT and not resolved.startswith(WORKSPACE_ROOT + "/"):
            raise ValueError(f"Path traversal detected: {path}")
        return resolved

    async def list_files(
        self, container_id: str, path: str = ".", recursive: bool = False
    ) -> list[dict]:
        """Directory entries at `path`, directories first.

        node_modules and .git internals are never listed.
        """
        safe = self.safe_path(path)
        excludes = (
            "-not -path '*/node_modules/*' -not -name node_modules "
            "-not -path '*/\\.git/*' -not -name '.git'"
        )
        depth = "" if recursive else "-maxdepth 1"
        quoted = shlex.quote(safe)
        cmd = f"find {quoted} {depth} -not -path {quoted} {excludes} -printf '%y|%s|%P\\n'"

        result = await sandbox_manager.exec_command(container_id, ["bash", "-c", cmd])
        if result.exit_code != 0:
            raise FileNotFoundError(f"Directory not found: {path}")

        entries = []
        for line in result.stdout.strip().splitlines():
            parts = line.split("|", 2)
            if len(parts) != 3 or not parts[2]:
                continue
            file_type, size, name = parts
            entries.append({
                "name": posixpath.basename(name),
                "path": name,
                "is_directory": file_type == "d",
                "size": int(size) if file_type == "f" else None,
            })

        entries.sort(key=lambda e: (not e["is_directory"], e["name"].lower()))
        return entries

    async def read_file(self, container_id: str, path: str) -> dict:
        """Read a text file (< 1MB) from the sandbox."""
        safe = self.safe_path(path)

        stat_result = await sandbox_manager.exec_command(
            container_id, ["stat", "--format=%s", safe]
        )
        if stat_result.exit_code != 0:
            raise FileNotFoundError(f"File not found: {path}")

        size = int(stat_result.stdout.strip())
        if size > MAX_FILE_SIZE:
            raise ValueError(f"File too large: {size} bytes (max {MAX_FILE_SIZE})")

        mime_result = await sandbox_manager.exec_command(
            container_id, ["file", "--mime-type", "-b", safe]
        )
        mime = mime_result.stdout.strip()
        if not mime.startswith(TEXT_MIMES):
            raise ValueError(f"Binary file cannot be read as text: {mime}")

        content = (await sandbox_manager.exec_command(container_id, ["cat", safe])).stdout
        lines = content.count("\n") + (1 if content and not content.endswith("\n") else 0)
        return {"path": path, "content": content, "size": size, "lines": lines}

    async def write_file(self, container_id: str, path: str, content: str) -> None:
        """Create or overwrite a file, creating parent directories.

        Content travels base64-encoded so quotes and newlines survive the shell.
        """
        safe = self.safe_path(path)
        if safe == WORKSPACE_ROOT:
            raise ValueError("A file path is required")

        data = content.encode("utf-8")
        if len(data) > MAX_WRITE_SIZE:
            raise ValueError(f"Content too large (max {MAX_WRITE_SIZE} bytes)")

        await sandbox_manager.exec_command(container_id, ["mkdir", "-p", posixpath.dirname(safe)])

        encoded = base64.b64encode(data).decode("ascii")
        result = await sandbox_manager.exec_command(
            container_id, ["bash", "-c", f"echo '{encoded}' | base64 -d > {shlex.quote(safe)}"]
        )
        if result.exit_code != 0:
            raise RuntimeError(f"Failed to write file: {result.stderr}")

        logger.info("File written: %s (%d bytes)", path, len(data))

    async def create_directory(self, container_id: str, path: str) -> None:
        safe = self.safe_path(path)
        result = await sandbox_manager.exec_command(container_id, ["mkdir", "-p", safe])
        if result.exit_code != 0:
            raise RuntimeError(f"Failed to create directory: {result.stderr}")

    async def delete_file(self, container_id: str, path: str) -> None:
        """Delete a file or directory. The workspace root itself is protected."""
        safe = self.safe_path(path)
        if safe == WORKSPACE_ROOT:
            raise ValueError("Cannot delete workspace root")

        result = await sandbox_manager.exec_command(container_id, ["rm", "-rf", safe])
        if result.exit_code != 0:
            raise RuntimeError(f"Failed to delete: {result.stderr}")

        logger.info("Deleted: %s", path)


# Singleton instance
file_ops = FileOpsService()
