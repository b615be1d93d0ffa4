"""Context selection, truncation helpers and the assembled smart context."""
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from apps.api.models.message import MessageRole
from apps.api.repositories import message_repo, version_repo
from generation import SmartContext, SmartContextBuilder, format_for_prompt, keyword_search
from generation.context_builder import (
    SEMANTIC_THRESHOLD,
    SOURCE_FILE_TYPES,
    extract_config_files,
    find_files_by_keywords,
    relevance_reason,
    resolve_import_path,
    search_files_by_content,
    truncate_files,
    truncate_history,
    truncate_relevant_files,
)
from retrieval import FileSearchResult

FILES = {
    "package.json": "{}",
    "tailwind.config.ts": "export default {};",
    "src/app/page.tsx": 'import { Navbar } from "@/components/navbar";\nexport default function Home() {}',
    "src/components/navbar.tsx": 'export function Navbar() { return <nav>WELCOME TO ACME</nav>; }',
    "src/lib/auth.ts": "export const login = () => {};",
}


def test_keywords_match_file_names_and_segments():
    assert find_files_by_keywords("Make the navbar sticky", FILES) == ["src/components/navbar.tsx"]
    # stopwords and short words never match
    assert find_files_by_keywords("add it to the", FILES) == []


def test_content_search_prefers_exact_case():
    files = {"a.tsx": "WELCOME TO ACME", "b.tsx": "welcome to acme"}
    assert search_files_by_content("Replace WELCOME TO ACME with hello", files) == ["a.tsx", "b.tsx"]
    assert search_files_by_content("no hints here", files) == []


def test_keyword_search_uses_code_keywords_and_mentions():
    found = keyword_search("fix the auth flow in src/app/page.tsx", FILES)
    assert "src/lib/auth.ts" in found
    assert "src/app/page.tsx" in found


def test_resolve_import_path():
    assert resolve_import_path("@/components/navbar", "src/app/page.tsx", FILES) == "src/components/navbar.tsx"
    assert resolve_import_path("../lib/auth", "src/app/page.tsx", FILES) == "src/lib/auth.ts"
    assert resolve_import_path("react", "src/app/page.tsx", FILES) is None


def test_config_files():
    assert set(extract_config_files(FILES)) == {"package.json", "tailwind.config.ts"}


def test_relevance_reason_bands():
    assert relevance_reason(0.9, "component") == "Highly relevant component (90% match)"
    assert relevance_reason(0.7) == "Relevant file (70% match)"
    assert relevance_reason(0.4, "api") == "Related api (40% match)"


def test_truncate_history_keeps_newest_in_order():
    history = [{"role": "user", "content": str(i) * 50} for i in range(5)]
    kept = truncate_history(history, 200)
    assert kept == history[-2:]


def test_truncate_files_cuts_last_file_when_room_remains():
    files = {"a": "x" * 300, "b": "y" * 500}
    result = truncate_files(files, 600)
    assert result["a"] == "x" * 300
    assert result["b"].startswith("y" * 300)
    assert result["b"].endswith("[... truncated ...]")


def test_truncate_relevant_files_always_keeps_top_file():
    files = {
        "low": {"content": "l" * 10, "relevance": 0.4, "reason": ""},
        "high": {"content": "h" * 1000, "relevance": 0.9, "reason": ""},
    }
    result = truncate_relevant_files(files, 100)
    assert list(result) == ["high"]
    assert result["high"]["content"].startswith("h" * 100)
    assert "truncated" in result["high"]["content"]


def test_format_for_prompt_sections():
    context = SmartContext(
        project_id=uuid.uuid4(),
        conversation_history=[{"role": "user", "content": "Make a navbar"}],
        relevant_files={"src/components/navbar.tsx": {"content": "nav", "relevance": 0.95, "reason": "Keyword match from prompt"}},
        config_files={"package.json": "{}"},
        summary="Selected 1/5 files",
    )
    text = format_for_prompt(context, "Make it sticky")

    assert text.startswith("# Context Summary\nSelected 1/5 files")
    assert "**user**: Make a navbar" in text
    assert "### package.json" in text
    assert "*Keyword match from prompt*" in text
    assert text.endswith("Make it sticky")


PROJECT_FILES = {
    "package.json": "{}",
    "tailwind.config.ts": "export default {};",
    "src/app/page.tsx": 'import { Navbar } from "@/components/navbar";\nexport default function Home() {}',
    "src/components/navbar.tsx": 'import { login } from "@/lib/auth";\nexport function Navbar() { return <nav>WELCOME TO ACME</nav>; }',
    "src/lib/auth.ts": "export const login = () => {};",
}


@pytest.fixture
def project_state():
    version = MagicMock(files=PROJECT_FILES)
    history = [MagicMock(role=MessageRole.USER, content="Make a landing page")]
    with patch.object(message_repo, "get_recent", new=AsyncMock(return_value=history)), \
         patch.object(version_repo, "get_latest_complete", new=AsyncMock(return_value=version)):
        yield version


def _index(results):
    index = MagicMock()
    index.search = AsyncMock(return_value=results)
    return index


@pytest.mark.asyncio
async def test_smart_context_ranks_keyword_matches_before_semantic_ones(project_state):
    index = _index([FileSearchResult("src/app/page.tsx", 0.72, "component", imports=["@/components/navbar"])])
    project_id = uuid.uuid4()

    context = await SmartContextBuilder(index).build_smart_context(MagicMock(), project_id, "Make the navbar sticky")

    assert list(context.relevant_files) == ["src/components/navbar.tsx", "src/app/page.tsx"]
    assert context.relevant_files["src/components/navbar.tsx"]["reason"] == "Keyword match from prompt"
    assert context.relevant_files["src/app/page.tsx"]["reason"] == "Relevant component (72% match)"
    assert context.dependency_files == {"src/lib/auth.ts": PROJECT_FILES["src/lib/auth.ts"]}
    assert set(context.config_files) == {"package.json", "tailwind.config.ts"}
    assert context.conversation_history == [{"role": "user", "content": "Make a landing page"}]
    assert context.previous_version is project_state
    assert context.summary == (
        "Selected 2/5 files using semantic search (found 1 matches). Conversation: 1 messages."
    )

    kwargs = index.search.await_args.kwargs
    assert kwargs["threshold"] == SEMANTIC_THRESHOLD
    assert kwargs["file_types"] == SOURCE_FILE_TYPES


@pytest.mark.asyncio
async def test_smart_context_falls_back_to_content_search(project_state):
    context = await SmartContextBuilder(_index([])).build_smart_context(
        MagicMock(), uuid.uuid4(), "Replace WELCOME TO ACME with hello"
    )

    assert list(context.relevant_files) == ["src/components/navbar.tsx"]
    selected = context.relevant_files["src/components/navbar.tsx"]
    assert selected["relevance"] == 0.90
    assert selected["reason"].startswith("Content match")


@pytest.mark.asyncio
async def test_smart_context_for_a_project_without_versions():
    with patch.object(message_repo, "get_recent", new=AsyncMock(return_value=[])), \
         patch.object(version_repo, "get_latest_complete", new=AsyncMock(return_value=None)):
        index = _index([])
        context = await SmartContextBuilder(index).build_smart_context(MagicMock(), uuid.uuid4(), "Add a navbar")

    index.search.assert_not_awaited()
    assert context.relevant_files == {}
    assert context.previous_files == {}
    assert context.stats["selected_files"] == 0
