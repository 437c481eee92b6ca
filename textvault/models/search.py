"""
Search request and result models.
"""

from typing import Any

from pydantic import BaseModel, Field

from textvault.models.document import SourceKind


class SearchQuery(BaseModel):
    """Validated search request."""

    query: str = Field(..., min_length=1, max_length=10000)
    limit: int = Field(default=10, ge=1, le=50)
    full_text_weight: float = Field(default=1.0, ge=0.0, le=2.0)
    semantic_weight: float = Field(default=1.0, ge=0.0, le=2.0)
    tags: list[str] | None = None
    source_type: SourceKind | None = None
    min_score: float | None = Field(default=None, ge=0.0, le=1.0)

    def filters(self) -> "SearchFilters":
        return SearchFilters(
            tags=self.tags or [], source_kind=self.source_type, min_score=self.min_score
        )


class SearchFilters(BaseModel):
    """Post-fusion filters. Tags use AND semantics."""

    tags: list[str] = Field(default_factory=list)
    source_kind: SourceKind | None = None
    min_score: float | None = None

    def is_active(self) -> bool:
        return bool(self.tags) or self.source_kind is not None or self.min_score is not None


class SearchResult(BaseModel):
    """One ranked segment annotated with its parent document."""

    segment_id: str
    document_id: str
    segment_index: int
    content: str
    document_title: str
    source_kind: SourceKind
    document_metadata: dict[str, Any] = Field(default_factory=dict)
    score: float

    @property
    def tags(self) -> list[str]:
        return list(self.document_metadata.get("tags") or [])

    def matches(self, filters: SearchFilters) -> bool:
        """Check a result against post-fusion filters."""
        if filters.source_kind is not None and self.source_kind != filters.source_kind:
            return False
        if filters.tags:
            doc_tags = set(self.tags)
            if not all(tag in doc_tags for tag in filters.tags):
                return False
        if filters.min_score is not None and self.score < filters.min_score:
            return False
        return True
