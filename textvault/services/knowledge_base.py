"""
KnowledgeBase - unified interface for TextVault.

Wires the document store, embedder, segmenter, search engine and
ingestion orchestrator together. All dependencies are injected; nothing
is created lazily at module level.
"""

import asyncio
from pathlib import Path

from pydantic import BaseModel

from textvault.config import Config
from textvault.core.document_store.base import DocumentStore
from textvault.core.embeddings.base import Embedder
from textvault.core.manifest.manifest import ManifestManager, ManifestStats
from textvault.core.search.engine import HybridSearchEngine
from textvault.core.segmenter.segmenter import Segmenter
from textvault.ingestion.loader import load_directory
from textvault.models.document import (
    Document,
    DocumentDraft,
    DocumentUpdate,
    Segment,
    SourceKind,
)
from textvault.models.ingestion import IngestionSummary, compute_content_hash
from textvault.models.search import SearchQuery, SearchResult
from textvault.services.ingestion_orchestrator import IngestionOrchestrator, ProgressCallback
from textvault.utils.exceptions import (
    EmbeddingError,
    InvalidArgumentError,
    NotConfiguredError,
    StoreError,
)
from textvault.utils.logger import get_logger

logger = get_logger(__name__)


class KnowledgeStats(BaseModel):
    """Store-wide counts."""

    documents: int
    segments: int
    embedding_dimension: int | None
    embedder: str


class KnowledgeBase:
    """
    Main entry point for capturing, ingesting and searching documents.

    Example:
        kb = KnowledgeBase(embedder=embedder, store=store, config=config)
        await kb.initialize()
        await kb.add_note("Standup", "Discussed the release plan", tags=["work"])
        results = await kb.search(SearchQuery(query="release plan"))
    """

    def __init__(
        self,
        embedder: Embedder,
        store: DocumentStore,
        config: Config | None = None,
    ):
        """
        Initialize the knowledge base with injected dependencies.

        Args:
            embedder: Embedding provider
            store: Document store
            config: Configuration (defaults are used when omitted)
        """
        self.config = config or Config()
        self.embedder = embedder
        self.store = store

        self.segmenter = Segmenter.from_config(self.config.segmenter)
        self.search_engine = HybridSearchEngine.from_config(store, self.config.search)
        self.orchestrator = IngestionOrchestrator.from_config(store, embedder, self.config)

        # One manifest per ingestion root
        self._manifests: dict[Path, ManifestManager] = {}

    async def initialize(self) -> None:
        """Initialize the document store schema."""
        logger.info("Initializing KnowledgeBase...")
        await self.store.initialize()
        logger.info(
            f"KnowledgeBase ready (embedder={self.embedder.name}, "
            f"dimensions={self.embedder.dimensions})"
        )

    # ═══════════════════════════════════════════════════════════
    # DIRECT CAPTURE
    # ═══════════════════════════════════════════════════════════

    async def add_note(
        self, title: str, content: str, tags: list[str] | None = None
    ) -> tuple[Document, list[Segment]]:
        """
        Capture a note: segment, embed and persist it.

        Args:
            title: Note title
            content: Note body
            tags: Optional tags

        Returns:
            Tuple of (Document, segments)

        Raises:
            InvalidArgumentError: If title or content is empty
            EmbeddingError: If embedding fails
            StoreError: If persistence fails
        """
        if not title or not title.strip():
            raise InvalidArgumentError("Note title must not be empty")
        if not content or not content.strip():
            raise InvalidArgumentError("Note content must not be empty")

        draft = DocumentDraft(
            title=title.strip(),
            source_kind=SourceKind.NOTE,
            raw_content=content,
            content_hash=compute_content_hash(content),
            metadata={"tags": list(dict.fromkeys(tags or []))},
        )

        try:
            document, segments = await self.orchestrator.store_document(draft)
        except asyncio.TimeoutError as e:
            raise EmbeddingError(
                f"Embedding timed out after {self.orchestrator.embed_timeout}s",
                {"provider": self.embedder.name},
                timed_out=True,
            ) from e

        logger.bind(title=document.title, segments=len(segments)).info(f"Added note {document.id}")
        return document, segments

    # ═══════════════════════════════════════════════════════════
    # DOCUMENT MANAGEMENT
    # ═══════════════════════════════════════════════════════════

    async def get_document(self, document_id: str) -> Document:
        return await self.store.get_document(document_id)

    async def get_document_segments(self, document_id: str) -> list[Segment]:
        """Segments of a document ordered by index (NotFoundError if absent)."""
        await self.store.get_document(document_id)
        return await self.store.get_segments(document_id)

    async def list_documents(
        self,
        limit: int = 20,
        offset: int = 0,
        source_kind: SourceKind | None = None,
        tags: list[str] | None = None,
    ) -> tuple[list[Document], int]:
        return await self.store.list_documents(
            limit=limit, offset=offset, source_kind=source_kind, tags=tags
        )

    async def update_document(self, document_id: str, update: DocumentUpdate) -> Document:
        """Change title and/or tags. The body is never touched."""
        if update.is_empty():
            raise InvalidArgumentError("Update must change title or tags")
        return await self.store.update_document(document_id, update)

    async def delete_document(self, document_id: str) -> None:
        await self.store.delete_document(document_id)
        logger.info(f"Deleted document {document_id}")

    # ═══════════════════════════════════════════════════════════
    # SEARCH
    # ═══════════════════════════════════════════════════════════

    async def search(self, query: SearchQuery) -> list[SearchResult]:
        """
        Hybrid search over all segments.

        Queries without lexical terms fall back to semantic-only ranking.

        Raises:
            NotConfiguredError: If the store or the embedder is unavailable;
                the error context names the missing prerequisite
        """
        try:
            embedding = await self.embedder.embed_one(query.query)
        except EmbeddingError as e:
            if e.unreachable or e.timed_out:
                raise NotConfiguredError(
                    f"Embeddings unavailable: {e.message}",
                    {"prerequisite": "embeddings", "provider": self.embedder.name},
                ) from e
            raise

        try:
            return await self.search_engine.search_filtered(
                query.query,
                embedding,
                query.limit,
                filters=query.filters(),
                full_text_weight=query.full_text_weight,
                semantic_weight=query.semantic_weight,
            )
        except StoreError as e:
            raise NotConfiguredError(
                f"Document store unavailable: {e.message}", {"prerequisite": "store"}
            ) from e

    # ═══════════════════════════════════════════════════════════
    # BATCH INGESTION
    # ═══════════════════════════════════════════════════════════

    def manifest_for(self, root: str | Path) -> ManifestManager:
        """Manifest of an ingestion root, created on first use."""
        key = Path(root).resolve()
        if key not in self._manifests:
            self._manifests[key] = ManifestManager(key, self.config.ingestion.manifest_filename)
        return self._manifests[key]

    async def ingest_directory(
        self,
        root: str | Path,
        pattern: str | None = None,
        force: bool = False,
        dry_run: bool = False,
        progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> IngestionSummary:
        """
        Ingest every artifact under ``root``.

        Files that cannot be loaded are reported as failed outcomes in the
        returned summary alongside the ingestion results.
        """
        artifacts, load_failures = load_directory(
            root, pattern or self.config.ingestion.pattern
        )

        orchestrator = IngestionOrchestrator.from_config(
            self.store, self.embedder, self.config, manifest=self.manifest_for(root)
        )
        summary = await orchestrator.ingest(
            artifacts,
            force=force,
            dry_run=dry_run,
            progress=progress,
            cancel_event=cancel_event,
        )

        if load_failures:
            summary = summary.model_copy(
                update={
                    "failed": summary.failed + len(load_failures),
                    "outcomes": summary.outcomes + load_failures,
                }
            )
        return summary

    # ═══════════════════════════════════════════════════════════
    # STATS / LIFECYCLE
    # ═══════════════════════════════════════════════════════════

    async def stats(self) -> KnowledgeStats:
        return KnowledgeStats(
            documents=await self.store.count_documents(),
            segments=await self.store.count_segments(),
            embedding_dimension=await self.store.embedding_dimension(),
            embedder=self.embedder.name,
        )

    def manifest_stats(self, root: str | Path) -> ManifestStats:
        return self.manifest_for(root).stats()

    async def close(self) -> None:
        """Close all connections."""
        logger.info("Closing KnowledgeBase...")
        await self.store.close()
        await self.embedder.close()
        logger.info("KnowledgeBase closed")
