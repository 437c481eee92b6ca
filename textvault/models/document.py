"""
Document and Segment models.

Documents are the retrievable unit of content. Their body is split into
overlapping Segments, which are the atomic unit that gets embedded and
searched.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class SourceKind(str, Enum):
    """Where a document came from."""

    NOTE = "note"
    FILE = "file"
    URL = "url"


class DocumentDraft(BaseModel):
    """
    Document contents before the store assigns identity and timestamps.
    """

    title: str = Field(..., min_length=1, description="Document title")
    source_kind: SourceKind = Field(..., description="Source kind (note, file, url)")
    raw_content: str = Field(..., description="Raw body text")
    source_url: str | None = Field(default=None, description="Original URL if applicable")
    file_path: str | None = Field(default=None, description="Source file path if applicable")
    content_hash: str | None = Field(default=None, description="Digest of the raw body")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Free-form metadata")


class Document(BaseModel):
    """
    Stored document.

    The body is immutable: title and tags may change through an update,
    a changed body requires a new Document.
    """

    id: str = Field(..., description="Unique document ID (doc_xxx)")
    title: str = Field(..., description="Document title")
    source_kind: SourceKind = Field(..., description="Source kind (note, file, url)")
    raw_content: str = Field(..., frozen=True, description="Raw body text")
    source_url: str | None = Field(default=None)
    file_path: str | None = Field(default=None)
    content_hash: str | None = Field(default=None)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def tags(self) -> list[str]:
        """Tags stored under the ``tags`` metadata key."""
        return list(self.metadata.get("tags") or [])


class DocumentUpdate(BaseModel):
    """Caller-facing update: only title and tags can change."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    tags: list[str] | None = None

    def is_empty(self) -> bool:
        return self.title is None and self.tags is None


class TextSegment(BaseModel):
    """
    A slice of normalized text produced by the segmenter.

    Offsets are relative to the normalized text (CRLF folded, trimmed),
    not to the raw input.
    """

    content: str
    index: int = Field(..., ge=0)
    start_offset: int = Field(..., ge=0)
    end_offset: int = Field(..., ge=0)
    token_count: int = Field(..., ge=0)


class Segment(BaseModel):
    """
    Stored segment of a document.

    Segments are never updated in place; re-ingestion replaces them.
    """

    id: str = Field(..., description="Unique segment ID (doc_xxx_seg_N)")
    document_id: str = Field(..., description="Parent document ID")
    index: int = Field(..., ge=0, description="Zero-based index within document")
    start_offset: int = Field(..., ge=0)
    end_offset: int = Field(..., ge=0)
    content: str
    embedding: list[float] | None = Field(default=None)
    token_count: int = Field(default=0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("end_offset")
    @classmethod
    def _end_after_start(cls, value: int, info) -> int:
        start = info.data.get("start_offset")
        if start is not None and value <= start:
            raise ValueError("end_offset must be greater than start_offset")
        return value
