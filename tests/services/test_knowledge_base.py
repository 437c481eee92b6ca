"""
Tests for the KnowledgeBase facade.

Runs the full capture -> search -> manage cycle against a temporary
SQLite store and the deterministic fake embedder.
"""

import asyncio
import json

import pytest

from textvault.core.document_store.sqlite_store import SQLiteDocumentStore
from textvault.models.document import DocumentUpdate, SourceKind
from textvault.models.search import SearchQuery
from textvault.services.knowledge_base import KnowledgeBase
from textvault.utils.exceptions import (
    EmbeddingError,
    InvalidArgumentError,
    NotConfiguredError,
    NotFoundError,
)


def _write_artifact(root, name, title, body, source_type="file", tags=None):
    path = root / name
    path.parent.mkdir(parents=True, exist_ok=True)
    front_matter = f"---\ntitle: {title}\nsource_type: {source_type}\ntags: {json.dumps(tags or [])}\n---\n"
    path.write_text(front_matter + body, encoding="utf-8")
    return path


@pytest.fixture
async def kb(test_config, embedder):
    store = SQLiteDocumentStore(db_path=test_config.store.db_path)
    knowledge_base = KnowledgeBase(embedder=embedder, store=store, config=test_config)
    await knowledge_base.initialize()
    yield knowledge_base
    await knowledge_base.close()


@pytest.mark.unit
@pytest.mark.asyncio
class TestNotes:
    """Direct capture."""

    async def test_add_note(self, kb):
        document, segments = await kb.add_note(
            "Standup", "Discussed the release plan with the team.", tags=["work", "work"]
        )

        assert document.source_kind == SourceKind.NOTE
        assert document.tags == ["work"]
        assert document.content_hash.startswith("sha256:")
        assert len(segments) == 1
        assert segments[0].id == f"{document.id}_seg_0"

        stored = await kb.get_document_segments(document.id)
        assert [s.id for s in stored] == [segments[0].id]

    async def test_long_note_is_segmented(self, kb):
        body = "\n\n".join(f"Paragraph {i} of a long meeting transcript." for i in range(10))
        _, segments = await kb.add_note("Transcript", body)

        assert len(segments) > 1
        assert [s.index for s in segments] == list(range(len(segments)))

    @pytest.mark.parametrize("title,content", [("", "body"), ("  ", "body"), ("T", " \n ")])
    async def test_empty_input_rejected(self, kb, title, content):
        with pytest.raises(InvalidArgumentError):
            await kb.add_note(title, content)

    async def test_embedding_failure_leaves_nothing(self, test_config, make_embedder):
        store = SQLiteDocumentStore(db_path=test_config.store.db_path)
        kb = KnowledgeBase(embedder=make_embedder(fail_on={"boom"}), store=store, config=test_config)
        await kb.initialize()
        try:
            with pytest.raises(EmbeddingError):
                await kb.add_note("Bad", "this will boom")
            assert (await kb.stats()).documents == 0
        finally:
            await kb.close()


@pytest.mark.unit
@pytest.mark.asyncio
class TestSearch:
    """Search through the facade."""

    async def test_search_finds_note(self, kb):
        await kb.add_note("Release plan", "Ship version two on Friday.", tags=["work"])
        await kb.add_note("Groceries", "Buy apples, bread and coffee.", tags=["home"])

        results = await kb.search(SearchQuery(query="release friday", limit=5))

        assert results
        assert results[0].document_title == "Release plan"

    async def test_search_filters(self, kb):
        await kb.add_note("Release plan", "Ship version two on Friday.", tags=["work"])
        await kb.add_note("Release party", "Cake on Friday after the release.", tags=["fun"])

        results = await kb.search(SearchQuery(query="release", tags=["fun"]))

        assert {r.document_title for r in results} == {"Release party"}

    async def test_search_empty_store(self, kb):
        assert await kb.search(SearchQuery(query="anything")) == []

    async def test_search_without_lexical_terms(self, kb):
        await kb.add_note("Release plan", "Ship version two on Friday.")
        results = await kb.search(SearchQuery(query="???"))
        assert len(results) == 1

    async def test_unreachable_embeddings_is_structured_error(self, test_config, make_embedder):
        store = SQLiteDocumentStore(db_path=test_config.store.db_path)
        kb = KnowledgeBase(embedder=make_embedder(unreachable=True), store=store, config=test_config)
        await kb.initialize()
        try:
            with pytest.raises(NotConfiguredError) as exc_info:
                await kb.search(SearchQuery(query="hello"))
            assert exc_info.value.context["prerequisite"] == "embeddings"
        finally:
            await kb.close()


@pytest.mark.unit
@pytest.mark.asyncio
class TestDocumentManagement:
    """List, update and delete."""

    async def test_list_documents(self, kb):
        await kb.add_note("First", "one", tags=["a"])
        await kb.add_note("Second", "two", tags=["b"])

        documents, total = await kb.list_documents()
        assert total == 2
        assert [d.title for d in documents] == ["Second", "First"]

        documents, total = await kb.list_documents(tags=["a"])
        assert [d.title for d in documents] == ["First"]

    async def test_update_keeps_body(self, kb):
        document, _ = await kb.add_note("Old title", "Body text")

        updated = await kb.update_document(
            document.id, DocumentUpdate(title="New title", tags=["x"])
        )

        assert updated.title == "New title"
        assert updated.tags == ["x"]
        assert (await kb.get_document(document.id)).raw_content == "Body text"

    async def test_empty_update_rejected(self, kb):
        document, _ = await kb.add_note("Title", "Body")
        with pytest.raises(InvalidArgumentError):
            await kb.update_document(document.id, DocumentUpdate())

    async def test_delete(self, kb):
        document, _ = await kb.add_note("Title", "Body")
        await kb.delete_document(document.id)

        with pytest.raises(NotFoundError):
            await kb.get_document(document.id)
        with pytest.raises(NotFoundError):
            await kb.get_document_segments(document.id)

    async def test_stats(self, kb):
        await kb.add_note("Title", "Body")
        stats = await kb.stats()

        assert stats.documents == 1
        assert stats.segments == 1
        assert stats.embedding_dimension == 32
        assert stats.embedder == "fake"


@pytest.mark.unit
@pytest.mark.asyncio
class TestIngestDirectory:
    """Directory ingestion with per-root manifests."""

    async def test_ingest_directory(self, kb, tmp_path):
        root = tmp_path / "inbox"
        _write_artifact(root, "a.md", "Alpha", "Alpha body text.", tags=["x"])
        _write_artifact(root, "sub/b.md", "Beta", "Beta body text.", source_type="url")
        (root / "broken.md").write_text("---\nsource_type: note\n---\nno title")

        summary = await kb.ingest_directory(root)

        assert summary.succeeded == 2
        assert summary.failed == 1
        assert summary.failures()[0].reason == "invalid_artifact"
        assert (root / ".manifest.json").exists()
        assert kb.manifest_stats(root).total_files == 2

        documents, _ = await kb.list_documents(source_kind=SourceKind.URL)
        assert [d.title for d in documents] == ["Beta"]

        again = await kb.ingest_directory(root)
        assert again.skipped == 2
        assert (await kb.stats()).documents == 2

    async def test_ingest_directory_dry_run(self, kb, tmp_path):
        _write_artifact(tmp_path, "a.md", "Alpha", "Alpha body text.")

        summary = await kb.ingest_directory(tmp_path, dry_run=True)

        assert summary.pending == 1
        assert (await kb.stats()).documents == 0

    async def test_ingest_directory_cancel(self, kb, tmp_path):
        for i in range(3):
            _write_artifact(tmp_path, f"{i}.md", f"Doc {i}", f"Body {i}.")
        cancel = asyncio.Event()
        cancel.set()

        summary = await kb.ingest_directory(tmp_path, cancel_event=cancel)

        assert summary.cancelled
        assert summary.pending == 3

    async def test_not_a_directory(self, kb, tmp_path):
        with pytest.raises(InvalidArgumentError):
            await kb.ingest_directory(tmp_path / "missing")
