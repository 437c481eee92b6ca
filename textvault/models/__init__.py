"""
Data models for TextVault.

Core models:
- Document, DocumentDraft, DocumentUpdate: retrievable content units
- Segment, TextSegment: overlapping slices of a document body
- SourceArtifact, ManifestEntry: ingestion inputs and the idempotency ledger
- ArtifactOutcome, IngestionSummary, IngestionStatus: ingestion results
- SearchQuery, SearchFilters, SearchResult: hybrid search surface
"""

from textvault.models.document import (
    Document,
    DocumentDraft,
    DocumentUpdate,
    Segment,
    SourceKind,
    TextSegment,
)
from textvault.models.ingestion import (
    ArtifactOutcome,
    IngestionStatus,
    IngestionSummary,
    ManifestEntry,
    SourceArtifact,
    compute_content_hash,
    normalize_text,
)
from textvault.models.search import SearchFilters, SearchQuery, SearchResult

__all__ = [
    "Document",
    "DocumentDraft",
    "DocumentUpdate",
    "Segment",
    "SourceKind",
    "TextSegment",
    "ArtifactOutcome",
    "IngestionStatus",
    "IngestionSummary",
    "ManifestEntry",
    "SourceArtifact",
    "compute_content_hash",
    "normalize_text",
    "SearchFilters",
    "SearchQuery",
    "SearchResult",
]
