"""
Tests for the hybrid search engine.

Uses a real SQLite store populated through the segment/embed pipeline
with the deterministic fake embedder.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from textvault.config import SearchConfig
from textvault.core.search.engine import HybridSearchEngine
from textvault.core.segmenter import Segmenter
from textvault.models.document import DocumentDraft, SourceKind
from textvault.models.search import SearchFilters
from textvault.services.ingestion_orchestrator import IngestionOrchestrator
from textvault.utils.exceptions import InvalidArgumentError

CORPUS = [
    ("Quantum computing", "Qubits and superposition power quantum algorithms.", ["physics"]),
    ("Quantum notes", "A short note on quantum entanglement experiments.", ["physics", "lab"]),
    ("Cooking", "Slow roasted tomatoes with garlic and basil.", ["food"]),
    ("Gardening", "Tomatoes need sun, water and patience.", ["garden"]),
]


@pytest.fixture
async def populated(store, embedder):
    """Store holding CORPUS as single-segment documents."""
    pipeline = IngestionOrchestrator(store, embedder, Segmenter())
    documents = {}
    for title, body, tags in CORPUS:
        document, _ = await pipeline.store_document(
            DocumentDraft(
                title=title,
                source_kind=SourceKind.FILE if "lab" in tags else SourceKind.NOTE,
                raw_content=body,
                metadata={"tags": tags},
            )
        )
        documents[title] = document
    return documents


@pytest.mark.unit
@pytest.mark.asyncio
class TestHybridSearch:
    """End-to-end search over the SQLite store."""

    async def test_pure_lexical_matches_lexical_ranking(self, store, embedder, populated):
        engine = HybridSearchEngine(store)
        query_embedding = await embedder.embed_one("quantum")

        results = await engine.search(
            "quantum", query_embedding, limit=5, full_text_weight=2.0, semantic_weight=0.0
        )
        lexical = await store.rank_lexical("quantum", 10)

        assert [r.segment_id for r in results] == [r.segment_id for r in lexical][:5]
        assert [r.score for r in results] == pytest.approx(
            [2 / (60 + rank) for rank in range(1, len(results) + 1)]
        )
        assert {r.document_title for r in results} == {"Quantum computing", "Quantum notes"}

    async def test_hybrid_annotates_results(self, store, embedder, populated):
        engine = HybridSearchEngine(store)
        results = await engine.search(
            "roasted garlic basil", await embedder.embed_one("roasted garlic basil"), limit=2
        )

        assert len(results) == 2
        top = results[0]
        assert top.document_title == "Cooking"
        assert top.document_id == populated["Cooking"].id
        assert top.segment_index == 0
        assert top.tags == ["food"]
        assert 0 < top.score <= 2 / 61

    async def test_results_never_exceed_limit(self, store, embedder, populated):
        engine = HybridSearchEngine(store)
        results = await engine.search("quantum", await embedder.embed_one("quantum"), limit=1)
        assert len(results) == 1

    async def test_empty_store(self, store, embedder):
        engine = HybridSearchEngine(store)
        assert await engine.search("anything", await embedder.embed_one("anything"), 5) == []

    async def test_repeated_queries_identical(self, store, embedder, populated):
        engine = HybridSearchEngine(store)
        embedding = await embedder.embed_one("quantum tomatoes")

        first = await engine.search("quantum tomatoes", embedding, limit=4)
        second = await engine.search("quantum tomatoes", embedding, limit=4)

        assert [r.segment_id for r in first] == [r.segment_id for r in second]

    async def test_semantic_only(self, store, embedder, populated):
        engine = HybridSearchEngine(store)
        results = await engine.search_semantic(
            await embedder.embed_one("Slow roasted tomatoes with garlic and basil."), limit=1
        )

        assert results[0].document_title == "Cooking"
        assert results[0].score == pytest.approx(1 / 61)

    async def test_tag_filter_is_and(self, store, embedder, populated):
        engine = HybridSearchEngine(store)
        results = await engine.search_filtered(
            "quantum",
            await embedder.embed_one("quantum"),
            limit=5,
            filters=SearchFilters(tags=["physics", "lab"]),
        )

        assert [r.document_title for r in results] == ["Quantum notes"]

    async def test_source_kind_filter(self, store, embedder, populated):
        engine = HybridSearchEngine(store)
        results = await engine.search_filtered(
            "quantum tomatoes",
            await embedder.embed_one("quantum tomatoes"),
            limit=5,
            filters=SearchFilters(source_kind=SourceKind.FILE),
        )

        assert results
        assert all(r.source_kind == SourceKind.FILE for r in results)

    async def test_min_score_filter(self, store, embedder, populated):
        engine = HybridSearchEngine(store)
        results = await engine.search_filtered(
            "quantum", await embedder.embed_one("quantum"), limit=5,
            filters=SearchFilters(min_score=0.03),
        )

        assert results
        assert all(r.score >= 0.03 for r in results)

    async def test_blank_query_falls_back_to_semantic(self, store, embedder, populated):
        engine = HybridSearchEngine(store)
        results = await engine.search_filtered("   ", await embedder.embed_one("tomatoes"), 2)
        assert len(results) == 2


@pytest.mark.unit
@pytest.mark.asyncio
class TestSearchCandidates:
    """Candidate counts requested from the store."""

    @pytest.fixture
    def mock_store(self):
        store = MagicMock()
        store.rank_lexical = AsyncMock(return_value=[])
        store.rank_semantic = AsyncMock(return_value=[])
        store.get_segment_contexts = AsyncMock(return_value={})
        return store

    async def test_requests_twice_the_limit(self, mock_store):
        engine = HybridSearchEngine(mock_store)
        await engine.search("q", [1.0], limit=5)

        mock_store.rank_lexical.assert_awaited_once_with("q", 10)
        mock_store.rank_semantic.assert_awaited_once_with([1.0], 10)

    async def test_overfetch_when_filtering(self, mock_store):
        engine = HybridSearchEngine.from_config(mock_store, SearchConfig(filter_overfetch=3))
        await engine.search_filtered("q", [1.0], limit=5, filters=SearchFilters(tags=["x"]))

        mock_store.rank_lexical.assert_awaited_once_with("q", 30)

    async def test_zero_weight_ranking_skipped(self, mock_store):
        engine = HybridSearchEngine(mock_store)
        await engine.search("q", [1.0], limit=5, semantic_weight=0.0)

        mock_store.rank_semantic.assert_not_awaited()

    async def test_blank_query_skips_lexical(self, mock_store):
        engine = HybridSearchEngine(mock_store)
        await engine.search_filtered("", [1.0], limit=5)

        mock_store.rank_lexical.assert_not_awaited()

    @pytest.mark.parametrize("query_text", ["!!!", "?? -- ??", '"*"'])
    async def test_punctuation_only_query_is_semantic_only(self, mock_store, query_text):
        engine = HybridSearchEngine(mock_store)
        await engine.search_filtered(query_text, [1.0], limit=5)

        mock_store.rank_lexical.assert_not_awaited()
        mock_store.rank_semantic.assert_awaited_once_with([1.0], 10)

    async def test_invalid_limit(self, mock_store):
        engine = HybridSearchEngine(mock_store)
        with pytest.raises(InvalidArgumentError):
            await engine.search("q", [1.0], limit=0)

    async def test_invalid_k(self, mock_store):
        with pytest.raises(InvalidArgumentError):
            HybridSearchEngine(mock_store, rrf_k=0)
