"""Smart context builder — picks the files and history a coding request needs.

A project can hold hundreds of files; sending all of them blows the model's
context window. Selection combines:

1. Keyword matches on file names and path segments
2. Semantic search over file embeddings (pgvector)
3. Content search for quoted text and shouted phrases (fallback)
4. Files imported by the selected ones
5. Config files, always

Each category then gets a share of a fixed character budget.
"""

import json
import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.models.version import Version
from apps.api.repositories import message_repo, version_repo
from retrieval import FileIndex, FileSearchResult
from retrieval.file_index import extract_imports

logger = logging.getLogger(__name__)

MAX_CONTEXT_TOKENS = 100_000
CHARS_PER_TOKEN = 4
MAX_CONTEXT_CHARS = MAX_CONTEXT_TOKENS * CHARS_PER_TOKEN

HISTORY_SHARE = 0.20
CONFIG_SHARE = 0.10
RELEVANT_SHARE = 0.40
DEPENDENCY_SHARE = 0.20
# remaining 10% is headroom for the prompt itself

KEYWORD_RELEVANCE = 0.95
CONTENT_RELEVANCE = 0.90
SEMANTIC_THRESHOLD = 0.3

STOPWORDS = {
    "the", "a", "an", "in", "on", "at", "to", "for", "of", "and", "or", "but",
    "make", "change", "update", "modify", "add", "create", "delete", "remove",
    "fix", "it", "this", "that", "with", "from", "into",
}

CODE_KEYWORDS = (
    "auth", "api", "component", "service", "util", "helper",
    "route", "page", "model", "controller", "middleware",
    "config", "test", "type", "interface", "hook",
)

CONFIG_PATTERNS = (
    "package.json", "tsconfig.json", "next.config", "vite.config",
    "tailwind.config", ".env", "README.md",
)

IMPORT_EXTENSIONS = ("", ".ts", ".tsx", ".js", ".jsx", "/index.ts", "/index.tsx", "/index.js")

SOURCE_FILE_TYPES = ["component", "utility", "api", "config"]

EXPLICIT_FILE_RE = re.compile(r"(?:in|file:|edit|modify|update)\s+([\w/\-.]+)", re.IGNORECASE)
QUOTED_RE = re.compile(r"""["']([^"']{10,})["']""")
SHOUTED_RE = re.compile(r"[A-Z][A-Z\s]{8,}")


@dataclass
class SmartContext:
    project_id: uuid.UUID
    conversation_history: list[dict] = field(default_factory=list)
    relevant_files: dict[str, dict] = field(default_factory=dict)   # path → {content, relevance, reason}
    dependency_files: dict[str, str] = field(default_factory=dict)
    config_files: dict[str, str] = field(default_factory=dict)
    previous_files: dict[str, str] = field(default_factory=dict)    # Full snapshot of the latest version
    previous_version: Version | None = None
    summary: str = ""
    stats: dict[str, Any] = field(default_factory=dict)


class SmartContextBuilder:
    """Assemble a SmartContext for one request.

    `file_index` may be None (no embedding provider configured); selection then
    relies on keyword and content matching only.
    """

    def __init__(self, file_index: FileIndex | None = None):
        self.file_index = file_index

    async def build_smart_context(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        prompt: str,
        message_limit: int = 20,
        max_files: int = 15,
        include_tests: bool = False,
    ) -> SmartContext:
        started = time.monotonic()

        messages = await message_repo.get_recent(db, project_id, limit=message_limit)
        history = [{"role": _value(m.role), "content": m.content} for m in messages]

        previous_version = await version_repo.get_latest_complete(db, project_id)
        all_files: dict[str, str] = dict(previous_version.files or {}) if previous_version else {}

        keyword_matches = find_files_by_keywords(prompt, all_files)

        search_results: list[FileSearchResult] = []
        if self.file_index and all_files:
            search_results = await self.file_index.search(
                db,
                project_id,
                prompt,
                limit=max_files,
                threshold=SEMANTIC_THRESHOLD,
                file_types=None if include_tests else SOURCE_FILE_TYPES,
            )
        search_ms = int((time.monotonic() - started) * 1000)

        content_matches: list[str] = []
        if not search_results and not keyword_matches:
            content_matches = search_files_by_content(prompt, all_files, max_files)

        relevant: dict[str, dict] = {}
        for path in keyword_matches:
            relevant[path] = {
                "content": all_files[path],
                "relevance": KEYWORD_RELEVANCE,
                "reason": "Keyword match from prompt",
            }
        for path in content_matches:
            relevant.setdefault(path, {
                "content": all_files[path],
                "relevance": CONTENT_RELEVANCE,
                "reason": "Content match - file contains text from prompt",
            })
        for result in search_results:
            if result.file_path in all_files:
                relevant.setdefault(result.file_path, {
                    "content": all_files[result.file_path],
                    "relevance": result.similarity,
                    "reason": relevance_reason(result.similarity, result.file_type),
                })

        dependencies = resolve_dependencies(relevant, all_files, search_results)
        configs = extract_config_files(all_files)

        truncated_history = truncate_history(history, int(MAX_CONTEXT_CHARS * HISTORY_SHARE))
        truncated_configs = truncate_files(configs, int(MAX_CONTEXT_CHARS * CONFIG_SHARE))
        truncated_relevant = truncate_relevant_files(relevant, int(MAX_CONTEXT_CHARS * RELEVANT_SHARE))
        truncated_deps = truncate_files(dependencies, int(MAX_CONTEXT_CHARS * DEPENDENCY_SHARE))

        total_chars = sum(
            len(json.dumps(part))
            for part in (truncated_history, truncated_configs, truncated_relevant, truncated_deps)
        )

        summary = (
            f"Selected {len(truncated_relevant)}/{len(all_files)} files using semantic search "
            f"(found {len(search_results)} matches). Conversation: {len(history)} messages."
        )

        logger.info(
            "Context for project %s: %d relevant (%d keyword, %d content, %d semantic), "
            "%d dependencies, %d config",
            project_id, len(truncated_relevant), len(keyword_matches), len(content_matches),
            len(search_results), len(truncated_deps), len(truncated_configs),
        )

        return SmartContext(
            project_id=project_id,
            conversation_history=truncated_history,
            relevant_files=truncated_relevant,
            dependency_files=truncated_deps,
            config_files=truncated_configs,
            previous_files=all_files,
            previous_version=previous_version,
            summary=summary,
            stats={
                "total_files": len(truncated_relevant) + len(truncated_deps) + len(truncated_configs),
                "selected_files": len(truncated_relevant),
                "total_tokens": total_chars // CHARS_PER_TOKEN,
                "embedding_search_ms": search_ms,
            },
        )


def _value(role) -> str:
    return role.value if hasattr(role, "value") else str(role)


# ── Selection ──────────────────────────────────────────


def find_files_by_keywords(prompt: str, all_files: dict[str, str]) -> list[str]:
    """Files whose name or a path segment contains a word of the prompt."""
    words = [
        w for w in re.split(r"[\s,.:;!?]+", prompt.lower())
        if len(w) > 2 and w not in STOPWORDS
    ]

    matches = []
    for path in all_files:
        path_lower = path.lower()
        name_lower = path_lower.rsplit("/", 1)[-1]
        for word in words:
            if word in name_lower or f"/{word}" in path_lower:
                matches.append(path)
                break
    return matches


def search_files_by_content(prompt: str, all_files: dict[str, str], limit: int = 10) -> list[str]:
    """Files containing quoted text or capitalised phrases from the prompt.

    Exact-case hits score 100, case-insensitive hits 50.
    """
    terms = QUOTED_RE.findall(prompt)
    terms += [p.strip() for p in SHOUTED_RE.findall(prompt)]
    if not terms:
        return []

    scored = []
    for path, content in all_files.items():
        if not isinstance(content, str):
            continue
        lower = content.lower()
        score = 0
        for term in terms:
            if term in content:
                score += 100
            elif term.lower() in lower:
                score += 50
        if score:
            scored.append((score, path))

    scored.sort(key=lambda item: item[0], reverse=True)
    return [path for _, path in scored[:limit]]


def keyword_search(prompt: str, all_files: dict[str, str]) -> list[str]:
    """Paths matching a code keyword in the prompt or mentioned explicitly ("in app/page.tsx")."""
    lower = prompt.lower()
    keywords = [k for k in CODE_KEYWORDS if k in lower]
    mentions = EXPLICIT_FILE_RE.findall(prompt)

    found = []
    for path in all_files:
        if any(k in path.lower() for k in keywords) or any(m in path for m in mentions):
            found.append(path)
    return found


def relevance_reason(similarity: float, file_type: str | None = None) -> str:
    label = file_type or "file"
    pct = round(similarity * 100)
    if similarity > 0.8:
        return f"Highly relevant {label} ({pct}% match)"
    if similarity > 0.6:
        return f"Relevant {label} ({pct}% match)"
    return f"Related {label} ({pct}% match)"


def resolve_import_path(import_path: str, from_file: str, all_files: dict[str, str]) -> str | None:
    if import_path.startswith(("./", "../")):
        parts = from_file.split("/")[:-1]
        for segment in import_path.split("/"):
            if segment == ".":
                continue
            if segment == "..":
                if parts:
                    parts.pop()
            else:
                parts.append(segment)
        base = "/".join(parts)
    elif import_path.startswith("@/"):
        base = "src/" + import_path[2:]
    else:
        return None

    for ext in IMPORT_EXTENSIONS:
        if base + ext in all_files:
            return base + ext
    return None


def resolve_dependencies(
    relevant: dict[str, dict],
    all_files: dict[str, str],
    search_results: list[FileSearchResult],
) -> dict[str, str]:
    """Files imported by the selected files but not selected themselves."""
    sources = {r.file_path: r.imports for r in search_results}
    for path, data in relevant.items():
        sources.setdefault(path, extract_imports(data["content"]))

    dependencies = {}
    for from_file, imports in sources.items():
        for import_path in imports:
            resolved = resolve_import_path(import_path, from_file, all_files)
            if resolved and resolved not in relevant:
                dependencies[resolved] = all_files[resolved]
    return dependencies


def extract_config_files(all_files: dict[str, str]) -> dict[str, str]:
    return {
        path: content for path, content in all_files.items()
        if any(pattern in path for pattern in CONFIG_PATTERNS)
    }


# ── Truncation ─────────────────────────────────────────


def truncate_history(history: list[dict], budget: int) -> list[dict]:
    """Keep the newest messages that fit, in chronological order."""
    kept: list[dict] = []
    used = 0
    for message in reversed(history):
        size = len(json.dumps(message))
        if used + size > budget:
            break
        kept.insert(0, message)
        used += size
    return kept


def truncate_files(files: dict[str, str], budget: int) -> dict[str, str]:
    result = {}
    used = 0
    for path, content in files.items():
        if used + len(content) <= budget:
            result[path] = content
            used += len(content)
            continue
        remaining = budget - used
        if remaining > 100:
            result[path] = content[:remaining] + "\n[... truncated ...]"
        break
    return result


def truncate_relevant_files(files: dict[str, dict], budget: int) -> dict[str, dict]:
    """Most relevant first; the top file is always included, cut if needed."""
    ordered = sorted(files.items(), key=lambda item: item[1]["relevance"], reverse=True)

    result: dict[str, dict] = {}
    used = 0
    for path, data in ordered:
        size = len(data["content"])
        if used + size <= budget:
            result[path] = data
            used += size
        elif not result:
            result[path] = {**data, "content": data["content"][:budget - used] + "\n\n[... truncated ...]"}
            break
        else:
            break
    return result


# ── Prompt formatting ──────────────────────────────────


def format_for_prompt(context: SmartContext, prompt: str) -> str:
    sections = [f"# Context Summary\n{context.summary}\n"]

    if context.conversation_history:
        sections.append("## Recent Conversation\n")
        for msg in context.conversation_history[-5:]:
            sections.append(f"**{msg['role']}**: {msg['content']}\n")

    if context.config_files:
        sections.append("\n## Configuration Files\n")
        for path, content in context.config_files.items():
            sections.append(f"### {path}\n```\n{content}\n```\n")

    if context.relevant_files:
        sections.append("\n## Relevant Files (Semantic Search Results)\n")
        ordered = sorted(context.relevant_files.items(), key=lambda item: item[1]["relevance"], reverse=True)
        for path, data in ordered:
            sections.append(f"### {path}\n*{data['reason']}*\n```\n{data['content']}\n```\n")

    if context.dependency_files:
        sections.append("\n## Related Dependencies\n")
        for path, content in context.dependency_files.items():
            sections.append(f"### {path}\n```\n{content}\n```\n")

    sections.append("\n## New Request\n")
    sections.append(prompt)

    return "\n".join(sections)
