"""
Content ingestion models.

Models for source artifacts handed over by converters, the manifest
ledger, and the per-artifact and per-batch ingestion results.
"""

import hashlib
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from textvault.models.document import SourceKind


class IngestionStatus(str, Enum):
    """Per-artifact ingestion state."""

    PENDING = "pending"
    HASHING = "hashing"
    SKIPPED_DUPLICATE = "skipped_duplicate"  # Content already ingested
    EMBEDDING = "embedding"
    PERSISTED = "persisted"
    FAILED = "failed"


class SourceArtifact(BaseModel):
    """
    Plain-text artifact produced by a format converter.

    The orchestrator never parses binary formats itself; it only sees
    the extracted body and its metadata.
    """

    source_file: str = Field(..., description="Path of the artifact")
    title: str = Field(..., min_length=1)
    body: str
    source_kind: SourceKind = SourceKind.FILE
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    relative_path: str | None = Field(
        default=None, description="Path relative to the ingestion root"
    )

    @property
    def manifest_path(self) -> str:
        return self.relative_path or self.source_file


class ManifestEntry(BaseModel):
    """Idempotency record: content hash -> document it produced."""

    content_hash: str
    document_id: str
    uploaded_at: datetime = Field(default_factory=datetime.now)
    relative_path: str
    segments_created: int = Field(default=0, ge=0)


class ArtifactOutcome(BaseModel):
    """Result of ingesting one artifact."""

    source_file: str
    status: IngestionStatus
    content_hash: str | None = None
    document_id: str | None = None
    segments_created: int = 0
    reason: str | None = Field(
        default=None, description="Why the artifact was skipped or failed"
    )
    error: str | None = None
    processing_time_ms: float = Field(default=0.0, ge=0)


class IngestionSummary(BaseModel):
    """Aggregate result of a batch ingestion run."""

    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    pending: int = Field(default=0, description="Artifacts never started (cancellation)")
    cancelled: bool = False
    dry_run: bool = False
    total_segments: int = 0
    outcomes: list[ArtifactOutcome] = Field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def total(self) -> int:
        return self.succeeded + self.skipped + self.failed + self.pending

    def failures(self) -> list[ArtifactOutcome]:
        return [o for o in self.outcomes if o.status == IngestionStatus.FAILED]


def normalize_text(text: str) -> str:
    """Fold CRLF line endings and trim surrounding whitespace."""
    return text.replace("\r\n", "\n").strip()


def compute_content_hash(content: str) -> str:
    """
    Compute SHA256 hash of content for deduplication.

    The hash is prefixed with "sha256:" for easy identification of the algorithm used.
    Content is normalized before hashing to avoid line-ending-only differences.

    Args:
        content: Text content to hash

    Returns:
        Hash string in format "sha256:hexdigest"
    """
    normalized = normalize_text(content)
    hash_bytes = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    return f"sha256:{hash_bytes}"
