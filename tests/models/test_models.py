"""
Tests for all model classes in TextVault.

Test Organization:
1. Document Models: DocumentDraft, Document, DocumentUpdate, Segment
2. Ingestion Models: SourceArtifact, IngestionSummary, compute_content_hash
3. Search Models: SearchQuery, SearchFilters, SearchResult
"""

import pytest
from pydantic import ValidationError

from textvault.models import (
    ArtifactOutcome,
    Document,
    DocumentDraft,
    DocumentUpdate,
    IngestionStatus,
    IngestionSummary,
    SearchFilters,
    SearchQuery,
    SearchResult,
    Segment,
    SourceArtifact,
    SourceKind,
    compute_content_hash,
    normalize_text,
)

# ═══════════════════════════════════════════════════════════════════════════
# DOCUMENT MODELS
# ═══════════════════════════════════════════════════════════════════════════


class TestDocument:
    """Tests for Document and its companions."""

    def test_draft_requires_title(self):
        with pytest.raises(ValidationError):
            DocumentDraft(title="", source_kind=SourceKind.NOTE, raw_content="x")

    def test_source_kind_from_string(self):
        draft = DocumentDraft(title="T", source_kind="url", raw_content="x")
        assert draft.source_kind == SourceKind.URL

    def test_tags_come_from_metadata(self):
        document = Document(
            id="doc_1", title="T", source_kind=SourceKind.NOTE, raw_content="x",
            metadata={"tags": ["a", "b"]},
        )
        assert document.tags == ["a", "b"]

        bare = Document(id="doc_2", title="T", source_kind=SourceKind.NOTE, raw_content="x")
        assert bare.tags == []

    def test_body_is_frozen(self):
        document = Document(id="doc_1", title="T", source_kind=SourceKind.NOTE, raw_content="x")

        with pytest.raises(ValidationError):
            document.raw_content = "changed"

    def test_update_is_empty(self):
        assert DocumentUpdate().is_empty()
        assert not DocumentUpdate(title="New").is_empty()
        assert not DocumentUpdate(tags=[]).is_empty()

    def test_segment_offsets_validated(self):
        Segment(
            id="doc_1_seg_0", document_id="doc_1", index=0,
            start_offset=0, end_offset=5, content="hello",
        )

        with pytest.raises(ValidationError):
            Segment(
                id="doc_1_seg_0", document_id="doc_1", index=0,
                start_offset=5, end_offset=5, content="",
            )


# ═══════════════════════════════════════════════════════════════════════════
# INGESTION MODELS
# ═══════════════════════════════════════════════════════════════════════════


class TestIngestionModels:
    """Tests for ingestion inputs and results."""

    def test_content_hash_format(self):
        content_hash = compute_content_hash("hello")

        assert content_hash.startswith("sha256:")
        assert len(content_hash) == len("sha256:") + 64

    def test_content_hash_normalizes(self):
        assert compute_content_hash("a\r\nb\n") == compute_content_hash("  a\nb")
        assert compute_content_hash("a") != compute_content_hash("b")

    def test_normalize_text(self):
        assert normalize_text("\r\n x\r\ny \n") == "x\ny"

    def test_manifest_path_prefers_relative(self):
        artifact = SourceArtifact(source_file="/root/a.md", title="A", body="x")
        assert artifact.manifest_path == "/root/a.md"

        artifact.relative_path = "a.md"
        assert artifact.manifest_path == "a.md"

    def test_summary_totals(self):
        summary = IngestionSummary(
            succeeded=2, skipped=1, failed=1, pending=3,
            outcomes=[
                ArtifactOutcome(source_file="a", status=IngestionStatus.PERSISTED),
                ArtifactOutcome(source_file="b", status=IngestionStatus.FAILED, reason="timeout"),
            ],
        )

        assert summary.total == 7
        assert [o.source_file for o in summary.failures()] == ["b"]


# ═══════════════════════════════════════════════════════════════════════════
# SEARCH MODELS
# ═══════════════════════════════════════════════════════════════════════════


def _result(**overrides) -> SearchResult:
    fields = {
        "segment_id": "doc_1_seg_0",
        "document_id": "doc_1",
        "segment_index": 0,
        "content": "text",
        "document_title": "Title",
        "source_kind": SourceKind.NOTE,
        "document_metadata": {"tags": ["work", "q3"]},
        "score": 0.5,
    }
    fields.update(overrides)
    return SearchResult(**fields)


class TestSearchModels:
    """Tests for search requests and results."""

    def test_query_defaults(self):
        query = SearchQuery(query="hello")

        assert query.limit == 10
        assert query.full_text_weight == 1.0
        assert query.semantic_weight == 1.0
        assert not query.filters().is_active()

    @pytest.mark.parametrize(
        "fields",
        [
            {"query": ""},
            {"query": "x" * 10001},
            {"query": "x", "limit": 0},
            {"query": "x", "limit": 51},
            {"query": "x", "full_text_weight": 2.5},
            {"query": "x", "semantic_weight": -0.1},
            {"query": "x", "min_score": 1.5},
        ],
    )
    def test_query_bounds(self, fields):
        with pytest.raises(ValidationError):
            SearchQuery(**fields)

    def test_query_filters(self):
        filters = SearchQuery(query="x", tags=["work"], source_type="file").filters()

        assert filters.is_active()
        assert filters.tags == ["work"]
        assert filters.source_kind == SourceKind.FILE

    def test_result_matches_tags_with_and_semantics(self):
        result = _result()

        assert result.matches(SearchFilters(tags=["work"]))
        assert result.matches(SearchFilters(tags=["work", "q3"]))
        assert not result.matches(SearchFilters(tags=["work", "home"]))

    def test_result_matches_kind_and_score(self):
        result = _result()

        assert not result.matches(SearchFilters(source_kind=SourceKind.URL))
        assert result.matches(SearchFilters(min_score=0.5))
        assert not result.matches(SearchFilters(min_score=0.6))
