"""
Ingestion orchestrator.

Turns already-extracted source artifacts into stored documents with
embedded segments. Per artifact:

    pending -> hashing -> {skipped_duplicate | embedding} -> {persisted | failed}

Artifacts are processed by a bounded pool of workers. A failing artifact
is recorded with its reason and never aborts the batch.
"""

import asyncio
import time
from collections.abc import Callable

from textvault.config import Config
from textvault.core.document_store.base import DocumentStore
from textvault.core.embeddings.base import Embedder
from textvault.core.manifest.manifest import ManifestManager
from textvault.core.segmenter.segmenter import Segmenter
from textvault.models.document import Document, DocumentDraft, Segment, SourceKind
from textvault.models.ingestion import (
    ArtifactOutcome,
    IngestionStatus,
    IngestionSummary,
    ManifestEntry,
    SourceArtifact,
    compute_content_hash,
)
from textvault.utils.exceptions import (
    DimensionMismatchError,
    ExternalServiceError,
    InvalidArgumentError,
    NotConfiguredError,
    NotFoundError,
    StoreError,
    TextVaultError,
)
from textvault.utils.id_generator import generate_segment_id
from textvault.utils.logger import get_logger

logger = get_logger(__name__)

# progress(percent_complete, current_path)
ProgressCallback = Callable[[float, str], None]


class IngestionOrchestrator:
    """
    Coordinates segmenting, embedding and persisting source artifacts.

    Features:
    - Content-hash dedup against the manifest, with a store lookup for
      content persisted before a crash but never recorded
    - Per-hash locking so two workers never both ingest the same content
    - Bounded worker pool with cooperative cancellation
    - Per-call embedding timeout
    - Replacement of superseded documents on forced or changed re-ingestion
    """

    def __init__(
        self,
        store: DocumentStore,
        embedder: Embedder,
        segmenter: Segmenter,
        manifest: ManifestManager | None = None,
        concurrency: int = 5,
        embed_timeout: float | None = 120.0,
        verify_store_by_hash: bool = True,
    ):
        """
        Initialize orchestrator.

        Args:
            store: Document store to write to
            embedder: Embedding provider
            segmenter: Segmenter used for every document
            manifest: Idempotency ledger; required for batch ingestion
            concurrency: Number of concurrent workers
            embed_timeout: Seconds allowed per embedding call (None disables)
            verify_store_by_hash: Consult the store by content hash before creating
        """
        if concurrency < 1:
            raise InvalidArgumentError(f"concurrency must be >= 1, got {concurrency}")

        self.store = store
        self.embedder = embedder
        self.segmenter = segmenter
        self.manifest = manifest
        self.concurrency = concurrency
        self.embed_timeout = embed_timeout
        self.verify_store_by_hash = verify_store_by_hash

    @classmethod
    def from_config(
        cls,
        store: DocumentStore,
        embedder: Embedder,
        config: Config,
        manifest: ManifestManager | None = None,
    ) -> "IngestionOrchestrator":
        return cls(
            store=store,
            embedder=embedder,
            segmenter=Segmenter.from_config(config.segmenter),
            manifest=manifest,
            concurrency=config.ingestion.concurrency,
            embed_timeout=config.ingestion.embed_timeout,
            verify_store_by_hash=config.ingestion.verify_store_by_hash,
        )

    # ═══════════════════════════════════════════════════════════
    # BATCH INGESTION
    # ═══════════════════════════════════════════════════════════

    async def ingest(
        self,
        artifacts: list[SourceArtifact],
        force: bool = False,
        dry_run: bool = False,
        progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> IngestionSummary:
        """
        Ingest a batch of artifacts with bounded concurrency.

        Args:
            artifacts: Artifacts to ingest
            force: Re-ingest content already recorded in the manifest
            dry_run: Only hash and decide; write nothing
            progress: Advisory progress callback
            cancel_event: Once set, no further artifacts are started;
                in-flight artifacts complete

        Returns:
            IngestionSummary with per-artifact outcomes
        """
        if self.manifest is None:
            raise NotConfiguredError("Batch ingestion requires a manifest")

        started = time.perf_counter()
        cancel_event = cancel_event or asyncio.Event()
        total = len(artifacts)

        queue: asyncio.Queue[tuple[int, SourceArtifact]] = asyncio.Queue()
        for position, artifact in enumerate(artifacts):
            queue.put_nowait((position, artifact))

        results: dict[int, ArtifactOutcome] = {}

        async def worker() -> None:
            while not cancel_event.is_set():
                try:
                    position, artifact = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                results[position] = await self.process_artifact(
                    artifact, force=force, dry_run=dry_run
                )
                self._report(progress, len(results), total, artifact.manifest_path)

        workers = [asyncio.create_task(worker()) for _ in range(min(self.concurrency, total))]
        await asyncio.gather(*workers)

        outcomes = [results[p] for p in sorted(results)]
        summary = IngestionSummary(
            succeeded=sum(1 for o in outcomes if o.status == IngestionStatus.PERSISTED),
            skipped=sum(1 for o in outcomes if o.status == IngestionStatus.SKIPPED_DUPLICATE),
            failed=sum(1 for o in outcomes if o.status == IngestionStatus.FAILED),
            pending=queue.qsize() + sum(1 for o in outcomes if o.status == IngestionStatus.PENDING),
            cancelled=cancel_event.is_set(),
            dry_run=dry_run,
            total_segments=sum(o.segments_created for o in outcomes),
            outcomes=outcomes,
            elapsed_ms=(time.perf_counter() - started) * 1000,
        )

        logger.bind(
            pending=summary.pending,
            cancelled=summary.cancelled,
            segments=summary.total_segments,
            elapsed_ms=round(summary.elapsed_ms, 1),
        ).info(
            f"Ingestion done: {summary.succeeded} ingested, {summary.skipped} skipped, "
            f"{summary.failed} failed"
        )
        return summary

    async def process_artifact(
        self, artifact: SourceArtifact, force: bool = False, dry_run: bool = False
    ) -> ArtifactOutcome:
        """
        Run one artifact through the ingestion state machine.

        Never raises for artifact-level failures; they are returned as a
        FAILED outcome with a reason.
        """
        started = time.perf_counter()
        content_hash: str | None = None

        def outcome(status: IngestionStatus, **fields) -> ArtifactOutcome:
            return ArtifactOutcome(
                source_file=artifact.source_file,
                status=status,
                content_hash=content_hash,
                processing_time_ms=(time.perf_counter() - started) * 1000,
                **fields,
            )

        try:
            content_hash = compute_content_hash(artifact.body)

            async with self.manifest.hash_lock(content_hash):
                existing = self.manifest.get_entry(content_hash)
                if existing is not None and not force:
                    logger.debug(f"Skipping already ingested {artifact.manifest_path}")
                    return outcome(
                        IngestionStatus.SKIPPED_DUPLICATE,
                        document_id=existing.document_id,
                        segments_created=0,
                        reason="duplicate",
                    )

                if not force and self.verify_store_by_hash:
                    stored = await self.store.find_by_content_hash(content_hash)
                    if stored is not None:
                        if not dry_run:
                            await self._recover_entry(stored, artifact, content_hash)
                        return outcome(
                            IngestionStatus.SKIPPED_DUPLICATE,
                            document_id=stored.id,
                            reason="recovered",
                        )

                if dry_run:
                    return outcome(IngestionStatus.PENDING, reason="dry_run")

                superseded = [e for e in (existing, self._path_entry(artifact, content_hash)) if e]

                document, segments = await self.store_document(
                    self._draft(artifact, content_hash)
                )

                # Manifest write is the last step of a successful ingestion
                await self.manifest.record(
                    ManifestEntry(
                        content_hash=content_hash,
                        document_id=document.id,
                        relative_path=artifact.manifest_path,
                        segments_created=len(segments),
                    )
                )

                await self._retire(superseded, document.id, content_hash)

            logger.bind(segments=len(segments)).info(
                f"Ingested {artifact.manifest_path} -> {document.id}"
            )
            return outcome(
                IngestionStatus.PERSISTED,
                document_id=document.id,
                segments_created=len(segments),
            )
        except asyncio.TimeoutError:
            logger.warning(f"Embedding timed out for {artifact.manifest_path}")
            return outcome(
                IngestionStatus.FAILED,
                reason="timeout",
                error=f"Embedding exceeded {self.embed_timeout}s",
            )
        except TextVaultError as e:
            logger.warning(f"Failed to ingest {artifact.manifest_path}: {e.message}")
            return outcome(IngestionStatus.FAILED, reason=_failure_reason(e), error=e.message)
        except Exception as e:
            logger.exception(f"Unexpected error ingesting {artifact.manifest_path}")
            return outcome(IngestionStatus.FAILED, reason="unexpected", error=str(e))

    # ═══════════════════════════════════════════════════════════
    # SINGLE DOCUMENT PIPELINE
    # ═══════════════════════════════════════════════════════════

    async def store_document(self, draft: DocumentDraft) -> tuple[Document, list[Segment]]:
        """
        Segment, embed and persist one document.

        Nothing is written until embedding succeeded. If segment
        persistence fails, the new document is deleted again.

        Raises:
            DimensionMismatchError: If the embedder's vector size differs
                from the store's
            asyncio.TimeoutError: If embedding exceeds ``embed_timeout``
            EmbeddingError, StoreError: On provider/store failures
        """
        text_segments = self.segmenter.segment(draft.raw_content)

        await self._check_dimension()

        vectors: list[list[float]] = []
        if text_segments:
            vectors = await asyncio.wait_for(
                self.embedder.embed_many([s.content for s in text_segments]),
                timeout=self.embed_timeout,
            )

        document = await self.store.create_document(draft)

        segments = [
            Segment(
                id=generate_segment_id(document.id, piece.index),
                document_id=document.id,
                index=piece.index,
                start_offset=piece.start_offset,
                end_offset=piece.end_offset,
                content=piece.content,
                embedding=vector,
                token_count=piece.token_count,
            )
            for piece, vector in zip(text_segments, vectors, strict=True)
        ]

        try:
            await self.store.create_segments(segments)
        except BaseException:
            await self._discard(document.id)
            raise

        return document, segments

    # ═══════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════

    async def _check_dimension(self) -> None:
        stored = await self.store.embedding_dimension()
        if stored is not None and stored != self.embedder.dimensions:
            raise DimensionMismatchError(
                f"Embedder '{self.embedder.name}' produces {self.embedder.dimensions}-dimension "
                f"vectors but the store holds {stored}-dimension vectors; re-embed the store "
                "to switch providers",
                {"expected": stored, "actual": self.embedder.dimensions},
            )

    def _draft(self, artifact: SourceArtifact, content_hash: str) -> DocumentDraft:
        metadata = {
            **artifact.metadata,
            "tags": list(dict.fromkeys(artifact.tags)),
            "source_file": artifact.source_file,
            "content_hash": content_hash,
        }
        return DocumentDraft(
            title=artifact.title,
            source_kind=artifact.source_kind,
            raw_content=artifact.body,
            source_url=metadata.get("url") if artifact.source_kind == SourceKind.URL else None,
            file_path=artifact.source_file,
            content_hash=content_hash,
            metadata=metadata,
        )

    def _path_entry(self, artifact: SourceArtifact, content_hash: str) -> ManifestEntry | None:
        """Entry for the same path recorded with different (stale) content."""
        entry = self.manifest.find_by_path(artifact.manifest_path)
        if entry is not None and entry.content_hash != content_hash:
            return entry
        return None

    async def _recover_entry(
        self, document: Document, artifact: SourceArtifact, content_hash: str
    ) -> None:
        segments = await self.store.get_segments(document.id)
        await self.manifest.record(
            ManifestEntry(
                content_hash=content_hash,
                document_id=document.id,
                relative_path=artifact.manifest_path,
                segments_created=len(segments),
            )
        )
        logger.info(
            f"Recovered manifest entry for {artifact.manifest_path} from stored {document.id}"
        )

    async def _retire(
        self, superseded: list[ManifestEntry], new_document_id: str, content_hash: str
    ) -> None:
        """Delete documents replaced by a new ingestion and drop their stale entries."""
        for entry in superseded:
            if entry.document_id != new_document_id:
                try:
                    await self.store.delete_document(entry.document_id)
                except NotFoundError:
                    logger.debug(f"Superseded document {entry.document_id} already gone")
            if entry.content_hash != content_hash:
                await self.manifest.remove(entry.content_hash)

    async def _discard(self, document_id: str) -> None:
        try:
            await self.store.delete_document(document_id)
        except (NotFoundError, StoreError) as e:
            logger.error(f"Could not remove partially ingested document {document_id}: {e}")

    @staticmethod
    def _report(progress: ProgressCallback | None, done: int, total: int, path: str) -> None:
        if progress is None:
            return
        try:
            progress(100.0 * done / total if total else 100.0, path)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")


def _failure_reason(error: TextVaultError) -> str:
    if isinstance(error, ExternalServiceError):
        if error.timed_out:
            return "timeout"
        if error.unreachable:
            return "unreachable"
    if isinstance(error, DimensionMismatchError):
        return "dimension_mismatch"
    if isinstance(error, StoreError):
        return "store_error"
    if isinstance(error, ExternalServiceError):
        return "embedding_error"
    if isinstance(error, NotConfiguredError):
        return "not_configured"
    if isinstance(error, InvalidArgumentError):
        return "invalid_argument"
    if isinstance(error, NotFoundError):
        return "not_found"
    return "error"
