"""File index — change detection on embed, threshold filtering and failure isolation on search."""
import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import ProgrammingError

from apps.api.models.file_embedding import FileEmbedding
from embeddings.base import EmbeddingResult
from retrieval import FileIndex
from retrieval.file_index import content_hash


class Savepoint:
    """Records how the nested transaction block was left."""

    def __init__(self):
        self.exited_with = "open"

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.exited_with = exc_type
        return False


def _embedder(dims: int = 3) -> MagicMock:
    embedder = MagicMock()
    embedder.embed = AsyncMock(return_value=EmbeddingResult(embedding=[0.1] * dims, tokens_used=4))
    embedder.embed_batch = AsyncMock(
        side_effect=lambda texts: [EmbeddingResult(embedding=[0.2] * dims, tokens_used=7) for _ in texts]
    )
    return embedder


def _search_db(rows) -> MagicMock:
    db = MagicMock()
    savepoint = Savepoint()
    db.begin_nested = MagicMock(return_value=savepoint)
    result = MagicMock()
    result.fetchall.return_value = rows
    db.execute = AsyncMock(return_value=result)
    return db


def _row(path, similarity, file_type="component", metadata=None):
    return SimpleNamespace(
        file_path=path,
        file_type=file_type,
        language="typescript",
        file_metadata=metadata,
        similarity=similarity,
    )


@pytest.mark.asyncio
async def test_search_drops_results_below_threshold():
    db = _search_db([
        _row("src/components/navbar.tsx", 0.83, metadata={"imports": ["react"], "exports": ["Navbar"]}),
        _row("src/lib/auth.ts", 0.41, file_type="utility"),
        _row("src/app/page.tsx", 0.12),
    ])

    results = await FileIndex(_embedder()).search(db, uuid.uuid4(), "sticky navbar", threshold=0.4)

    assert [(r.file_path, round(r.similarity, 2)) for r in results] == [
        ("src/components/navbar.tsx", 0.83),
        ("src/lib/auth.ts", 0.41),
    ]
    assert results[0].imports == ["react"]
    assert results[0].exports == ["Navbar"]
    assert results[1].imports == []
    assert db.begin_nested.return_value.exited_with is None


@pytest.mark.asyncio
async def test_failed_search_rolls_back_to_savepoint_and_returns_nothing():
    db = _search_db([])
    db.execute = AsyncMock(side_effect=ProgrammingError("SELECT ...", {}, Exception("different vector dimensions 3 and 1536")))

    results = await FileIndex(_embedder()).search(db, uuid.uuid4(), "sticky navbar")

    assert results == []
    db.begin_nested.assert_called_once_with()
    assert db.begin_nested.return_value.exited_with is ProgrammingError


@pytest.mark.asyncio
async def test_embedding_provider_failure_is_not_raised():
    embedder = _embedder()
    embedder.embed = AsyncMock(side_effect=RuntimeError("rate limited"))
    db = _search_db([])

    assert await FileIndex(embedder).search(db, uuid.uuid4(), "navbar") == []
    db.execute.assert_not_awaited()


def _embed_db(existing) -> MagicMock:
    db = MagicMock()
    result = MagicMock()
    result.scalars.return_value.all.return_value = existing
    db.execute = AsyncMock(return_value=result)
    db.commit = AsyncMock()
    return db


@pytest.mark.asyncio
async def test_embed_files_only_embeds_new_or_changed_files():
    project_id = uuid.uuid4()
    unchanged = "export function Navbar() {}"
    changed_row = FileEmbedding(project_id=project_id, file_path="src/lib/auth.ts", content_hash=content_hash("old"))
    db = _embed_db([
        FileEmbedding(project_id=project_id, file_path="src/components/navbar.tsx", content_hash=content_hash(unchanged)),
        changed_row,
    ])
    embedder = _embedder()
    files = {
        "src/components/navbar.tsx": unchanged,
        "src/lib/auth.ts": 'import { api } from "./api";\nexport const login = () => api();',
        "src/app/page.tsx": "export default function Home() {}",
        "public/logo.png": "binary",
        "package-lock.json": "{}",
    }

    embedded = await FileIndex(embedder).embed_files(db, project_id, files)

    assert embedded == 2
    texts = embedder.embed_batch.await_args.args[0]
    assert [t.splitlines()[0] for t in texts] == [
        "File: src/lib/auth.ts (typescript)",
        "File: src/app/page.tsx (typescript)",
    ]
    assert changed_row.content_hash == content_hash(files["src/lib/auth.ts"])
    assert changed_row.file_metadata["imports"] == ["./api"]
    assert changed_row.file_metadata["exports"] == ["login"]
    added = db.add.call_args.args[0]
    assert added.file_path == "src/app/page.tsx"
    assert added.file_type == "component"
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_embed_files_with_nothing_changed_is_a_noop():
    project_id = uuid.uuid4()
    content = "export const x = 1;"
    db = _embed_db([FileEmbedding(project_id=project_id, file_path="src/x.ts", content_hash=content_hash(content))])
    embedder = _embedder()

    assert await FileIndex(embedder).embed_files(db, project_id, {"src/x.ts": content}) == 0
    embedder.embed_batch.assert_not_awaited()
    db.commit.assert_not_awaited()
