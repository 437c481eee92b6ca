"""
Base interface for document storage.

A document store owns Documents and their Segments, keeps a lexical
index derived from each document's title and body, and ranks segments
both lexically and by vector distance.
"""

import re
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from textvault.models.document import (
    Document,
    DocumentDraft,
    DocumentUpdate,
    Segment,
    SourceKind,
)

_TERM_PATTERN = re.compile(r"\w+", re.UNICODE)


def lexical_terms(text: str) -> list[str]:
    """Distinct lowercase word terms of ``text``, in order of first appearance."""
    return list(dict.fromkeys(_TERM_PATTERN.findall(text.lower())))


class RankedSegment(BaseModel):
    """One entry of a lexical or semantic ranking (rank is 1-based)."""

    segment_id: str
    document_id: str
    index: int
    rank: int


class SegmentContext(BaseModel):
    """A segment with its parent document's denormalized fields."""

    segment: Segment
    document_title: str
    source_kind: SourceKind
    document_metadata: dict[str, Any] = {}


class DocumentStore(ABC):
    """Abstract base class for document storage implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """
        Initialize the store (create tables, indices and triggers).

        Raises:
            StoreError: If initialization fails
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # DOCUMENT OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def create_document(self, draft: DocumentDraft) -> Document:
        """
        Create a document, assigning its identifier and timestamps.

        Args:
            draft: Document contents

        Returns:
            Stored document
        """
        pass

    @abstractmethod
    async def get_document(self, document_id: str) -> Document:
        """
        Retrieve a document by ID.

        Raises:
            NotFoundError: If the document doesn't exist
        """
        pass

    @abstractmethod
    async def list_documents(
        self,
        limit: int = 20,
        offset: int = 0,
        source_kind: SourceKind | None = None,
        tags: list[str] | None = None,
    ) -> tuple[list[Document], int]:
        """
        List documents newest-first.

        Args:
            limit: Page size
            offset: Page offset
            source_kind: Optional source kind filter
            tags: Optional tags; a document must carry all of them

        Returns:
            (page of documents, total matching count)
        """
        pass

    @abstractmethod
    async def update_document(self, document_id: str, update: DocumentUpdate) -> Document:
        """
        Update title and/or tags. The body is never touched.

        Tags are merged into the existing metadata under the ``tags`` key.

        Raises:
            NotFoundError: If the document doesn't exist
        """
        pass

    @abstractmethod
    async def delete_document(self, document_id: str) -> None:
        """
        Delete a document and, transitively, its segments.

        Raises:
            NotFoundError: If the document doesn't exist
        """
        pass

    @abstractmethod
    async def find_by_content_hash(self, content_hash: str) -> Document | None:
        """
        Find the most recent document created from content with this hash.

        Returns:
            Document or None if no document carries the hash
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # SEGMENT OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def create_segments(self, segments: list[Segment]) -> list[Segment]:
        """
        Batch insert segments.

        Atomic per document: either all segments of a document are written
        or none are. A batch for a document replaces any segments it
        already has, so the last full batch wins.

        Raises:
            NotFoundError: If a parent document doesn't exist
            InvalidArgumentError: If indices are not contiguous from 0
            DimensionMismatchError: If an embedding's size differs from
                the store's vector width
        """
        pass

    @abstractmethod
    async def get_segments(self, document_id: str) -> list[Segment]:
        """Get a document's segments ordered by index."""
        pass

    @abstractmethod
    async def get_segment_contexts(self, segment_ids: list[str]) -> dict[str, SegmentContext]:
        """Load segments with their parent document fields, keyed by segment ID."""
        pass

    # ═══════════════════════════════════════════════════════════
    # RANKING
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def rank_lexical(self, query_text: str, limit: int) -> list[RankedSegment]:
        """
        Rank segments whose parent document's lexical index matches the query.

        Ordered by lexical relevance descending, ties broken by
        (document_id, index).
        """
        pass

    @abstractmethod
    async def rank_semantic(self, query_embedding: list[float], limit: int) -> list[RankedSegment]:
        """
        Rank embedded segments by ascending vector distance to the query.

        Raises:
            DimensionMismatchError: If the query vector's size differs from
                the store's vector width
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # STATISTICS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def embedding_dimension(self) -> int | None:
        """Vector width fixed by the first embedded write, or None."""
        pass

    @abstractmethod
    async def count_documents(self) -> int:
        pass

    @abstractmethod
    async def count_segments(self) -> int:
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection to the store."""
        pass
