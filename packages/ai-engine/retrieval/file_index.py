"""Semantic index over generated project files.

Files are embedded whole (header + content, truncated) into the
`file_embeddings` table. Re-indexing is keyed on a sha256 of the content,
so unchanged files cost nothing.

Search uses pgvector cosine distance:
    similarity = 1 - (embedding <=> query_embedding)
"""

import hashlib
import logging
import re
import uuid
from dataclasses import dataclass, field

from sqlalchemy import select, delete, text
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.models.file_embedding import FileEmbedding
from embeddings import BaseEmbeddingAdapter

logger = logging.getLogger(__name__)

BATCH_SIZE = 50
MAX_EMBED_CHARS = 8000

SKIP_EXTENSIONS = (
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico", ".webp",
    ".mp4", ".mov", ".avi", ".webm",
    ".woff", ".woff2", ".ttf", ".eot",
    ".zip", ".tar", ".gz",
    ".map", ".min.js", ".bundle.js",
)
SKIP_FILES = ("package-lock.json", "pnpm-lock.yaml", "yarn.lock")

LANGUAGES = {
    ".ts": "typescript", ".tsx": "typescript",
    ".js": "javascript", ".jsx": "javascript", ".mjs": "javascript",
    ".py": "python", ".css": "css", ".scss": "scss",
    ".json": "json", ".md": "markdown", ".html": "html",
    ".yml": "yaml", ".yaml": "yaml", ".sql": "sql",
}

IMPORT_RE = re.compile(r"""(?:import\s+[^'"]*?from\s+|import\s+|require\()\s*['"]([^'"]+)['"]""")
EXPORT_RE = re.compile(r"export\s+(?:default\s+)?(?:async\s+)?(?:function|const|class|let|var|interface|type)\s+(\w+)")


@dataclass
class FileSearchResult:
    file_path: str
    similarity: float
    file_type: str
    language: str | None = None
    imports: list[str] = field(default_factory=list)
    exports: list[str] = field(default_factory=list)


def should_embed(file_path: str) -> bool:
    """False for binaries, assets, lockfiles and vendored directories."""
    path = file_path.lower()
    if path.endswith(SKIP_EXTENSIONS):
        return False
    if any(name in path for name in SKIP_FILES):
        return False
    return "node_modules" not in path and ".git/" not in path and not path.startswith(".git")


def detect_language(file_path: str) -> str | None:
    for ext, language in LANGUAGES.items():
        if file_path.lower().endswith(ext):
            return language
    return None


def detect_file_type(file_path: str, content: str) -> str:
    """Classify a file as config, test, types, component, utility, api or other."""
    path = file_path.lower()

    if re.search(r"package\.json|tsconfig|\.config\.", path):
        return "config"
    if re.search(r"\.test\.|\.spec\.|__tests__|__mocks__", path):
        return "test"
    if re.search(r"\.d\.ts$|types/", path):
        return "types"
    if re.search(r"component|widget|view", path) or "export default function" in content:
        return "component"
    if re.search(r"util|helper|lib", path):
        return "utility"
    if re.search(r"api|route|endpoint|controller", path):
        return "api"
    return "other"


def prepare_file_text(file_path: str, content: str, language: str | None = None) -> str:
    """The text that actually gets embedded: a path header plus the content."""
    header = f"File: {file_path}{f' ({language})' if language else ''}\n\n"
    if len(content) > MAX_EMBED_CHARS:
        content = content[:MAX_EMBED_CHARS] + "\n\n[... truncated ...]"
    return header + content


def extract_imports(content: str) -> list[str]:
    return list(dict.fromkeys(IMPORT_RE.findall(content)))


def extract_exports(content: str) -> list[str]:
    return list(dict.fromkeys(EXPORT_RE.findall(content)))


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class FileIndex:
    """Embeds project files and answers similarity queries."""

    def __init__(self, embedder: BaseEmbeddingAdapter):
        self._embedder = embedder

    async def embed_files(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        files: dict[str, str],
    ) -> int:
        """Index `files` ({path: content}) for a project.

        Returns the number of files that were (re-)embedded. Unchanged files
        and files that should not be embedded are skipped.
        """
        candidates = {p: c for p, c in files.items() if should_embed(p)}
        skipped = len(files) - len(candidates)
        if skipped:
            logger.debug("Skipping %d binary/asset files for project %s", skipped, project_id)
        if not candidates:
            return 0

        result = await db.execute(
            select(FileEmbedding).where(FileEmbedding.project_id == project_id)
        )
        existing = {row.file_path: row for row in result.scalars().all()}

        stale = [
            (path, content)
            for path, content in candidates.items()
            if path not in existing or existing[path].content_hash != content_hash(content)
        ]
        if not stale:
            logger.info("All %d files already indexed for project %s", len(candidates), project_id)
            return 0

        embedded = 0
        for start in range(0, len(stale), BATCH_SIZE):
            batch = stale[start:start + BATCH_SIZE]
            texts = [prepare_file_text(p, c, detect_language(p)) for p, c in batch]
            vectors = await self._embedder.embed_batch(texts)

            for (path, content), vector in zip(batch, vectors):
                metadata = {
                    "imports": extract_imports(content),
                    "exports": extract_exports(content),
                    "size": len(content),
                    "tokens": vector.tokens_used,
                }
                row = existing.get(path)
                if row is None:
                    row = FileEmbedding(project_id=project_id, file_path=path)
                    db.add(row)
                row.file_type = detect_file_type(path, content)
                row.language = detect_language(path)
                row.content = content
                row.content_hash = content_hash(content)
                row.file_metadata = metadata
                row.embedding = vector.embedding
                embedded += 1

        await db.commit()
        logger.info("Embedded %d/%d files for project %s", embedded, len(candidates), project_id)
        return embedded

    async def search(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        query: str,
        limit: int = 10,
        threshold: float = 0.5,
        file_types: list[str] | None = None,
    ) -> list[FileSearchResult]:
        """Files most similar to `query`, best first.

        Search is best-effort context gathering: any failure is logged and
        an empty list returned. The query runs in a savepoint so a failed
        statement does not abort the caller's transaction.
        """
        try:
            query_vector = (await self._embedder.embed(query)).embedding
            similarity = (1 - FileEmbedding.embedding.cosine_distance(query_vector)).label("similarity")

            stmt = select(
                FileEmbedding.file_path,
                FileEmbedding.file_type,
                FileEmbedding.language,
                FileEmbedding.file_metadata,
                similarity,
            ).where(FileEmbedding.project_id == project_id)
            if file_types:
                stmt = stmt.where(FileEmbedding.file_type.in_(file_types))
            stmt = stmt.order_by(text("similarity DESC")).limit(limit)

            async with db.begin_nested():
                rows = (await db.execute(stmt)).fetchall()
        except Exception as e:
            logger.warning("Semantic file search failed for project %s: %s", project_id, e)
            return []

        results = []
        for row in rows:
            score = float(row.similarity)
            if score < threshold:
                continue
            metadata = row.file_metadata or {}
            results.append(FileSearchResult(
                file_path=row.file_path,
                similarity=score,
                file_type=row.file_type,
                language=row.language,
                imports=metadata.get("imports", []),
                exports=metadata.get("exports", []),
            ))

        logger.info(
            "Semantic search '%s...' matched %d files (threshold=%.2f)",
            query[:50], len(results), threshold,
        )
        return results

    async def delete_project(self, db: AsyncSession, project_id: uuid.UUID) -> None:
        await db.execute(delete(FileEmbedding).where(FileEmbedding.project_id == project_id))
        await db.commit()
