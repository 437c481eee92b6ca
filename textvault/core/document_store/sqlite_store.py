"""
SQLite document store implementation.

Documents, segments and their embeddings live in one database file.
The lexical index is an FTS5 external-content table maintained only by
triggers, so it is always a projection of title + raw body.
"""

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

import aiosqlite
import numpy as np

from textvault.core.document_store.base import (
    DocumentStore,
    RankedSegment,
    SegmentContext,
    lexical_terms,
)
from textvault.models.document import (
    Document,
    DocumentDraft,
    DocumentUpdate,
    Segment,
    SourceKind,
)
from textvault.utils.exceptions import (
    DimensionMismatchError,
    InvalidArgumentError,
    NotConfiguredError,
    NotFoundError,
    StoreError,
)
from textvault.utils.id_generator import generate_document_id
from textvault.utils.locks import KeyedLock
from textvault.utils.logger import get_logger

logger = get_logger(__name__)

# bm25 column weights: title terms count more than body terms
TITLE_WEIGHT = 10.0
BODY_WEIGHT = 1.0

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS documents (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL UNIQUE,
        title TEXT NOT NULL,
        source_kind TEXT NOT NULL CHECK (source_kind IN ('note', 'file', 'url')),
        raw_content TEXT NOT NULL,
        source_url TEXT,
        file_path TEXT,
        content_hash TEXT,
        metadata TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS segments (
        id TEXT PRIMARY KEY,
        document_id TEXT NOT NULL,
        segment_index INTEGER NOT NULL,
        start_offset INTEGER NOT NULL,
        end_offset INTEGER NOT NULL,
        content TEXT NOT NULL,
        embedding BLOB,
        token_count INTEGER NOT NULL DEFAULT 0,
        metadata TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL,
        UNIQUE (document_id, segment_index),
        CHECK (start_offset < end_offset),
        FOREIGN KEY (document_id) REFERENCES documents(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS store_meta (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS documents_fts USING fts5(
        title, raw_content,
        content='documents', content_rowid='seq',
        tokenize='porter unicode61'
    )
    """,
    """
    CREATE TRIGGER IF NOT EXISTS documents_fts_insert AFTER INSERT ON documents BEGIN
        INSERT INTO documents_fts(rowid, title, raw_content)
        VALUES (new.seq, new.title, new.raw_content);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS documents_fts_delete AFTER DELETE ON documents BEGIN
        INSERT INTO documents_fts(documents_fts, rowid, title, raw_content)
        VALUES ('delete', old.seq, old.title, old.raw_content);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS documents_fts_update AFTER UPDATE ON documents BEGIN
        INSERT INTO documents_fts(documents_fts, rowid, title, raw_content)
        VALUES ('delete', old.seq, old.title, old.raw_content);
        INSERT INTO documents_fts(rowid, title, raw_content)
        VALUES (new.seq, new.title, new.raw_content);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS documents_body_immutable
    BEFORE UPDATE OF raw_content ON documents
    WHEN new.raw_content IS NOT old.raw_content
    BEGIN
        SELECT RAISE(ABORT, 'raw_content is immutable');
    END
    """,
    "CREATE INDEX IF NOT EXISTS idx_documents_created ON documents(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_documents_source_kind ON documents(source_kind)",
    "CREATE INDEX IF NOT EXISTS idx_documents_content_hash ON documents(content_hash)",
    "CREATE INDEX IF NOT EXISTS idx_segments_document ON segments(document_id, segment_index)",
]


def build_match_query(query_text: str) -> str | None:
    """
    Turn free text into an FTS5 MATCH expression.

    Each word becomes a quoted term and terms are OR-ed, so operator
    characters in user input are never interpreted. bm25 ranks documents
    matching more terms higher.

    Returns:
        MATCH expression, or None when the text has no indexable terms
    """
    terms = lexical_terms(query_text)
    if not terms:
        return None
    return " OR ".join(f'"{term}"' for term in terms)


def _vector_to_blob(vector: list[float]) -> bytes:
    return np.asarray(vector, dtype=np.float32).tobytes()


def _blob_to_vector(blob: bytes | None) -> list[float] | None:
    if blob is None:
        return None
    return np.frombuffer(blob, dtype=np.float32).tolist()


class SQLiteDocumentStore(DocumentStore):
    """
    SQLite-based document store.

    Features:
    - FTS5 lexical index kept in sync by triggers
    - Embeddings stored as float32 blobs, ranked by cosine distance
    - Per-document write serialization
    - Cascade delete of segments
    """

    def __init__(self, db_path: str = "data/textvault.db"):
        """
        Initialize SQLite document store.

        Args:
            db_path: Path to SQLite database file

        Raises:
            NotConfiguredError: If no database path is given
        """
        if not db_path:
            raise NotConfiguredError(
                "Document store path not configured. Set TEXTVAULT_STORE_DB_PATH.",
                {"setting": "TEXTVAULT_STORE_DB_PATH"},
            )

        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = None

        # Writers of the same document are serialized; the transaction lock
        # is held only while one write transaction runs on the connection.
        self._document_locks = KeyedLock()
        self._tx_lock = asyncio.Lock()

        # Ensure directory exists
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        """Establish connection to SQLite."""
        if self.connection is None:
            try:
                self.connection = await aiosqlite.connect(self.db_path, isolation_level=None)
            except aiosqlite.Error as e:
                raise StoreError(
                    f"Failed to open document store at {self.db_path}: {e}",
                    {"db_path": self.db_path},
                ) from e
            self.connection.row_factory = aiosqlite.Row
            await self.connection.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                await self.connection.execute("PRAGMA journal_mode = WAL")
            await self.connection.execute("PRAGMA busy_timeout = 5000")

    async def initialize(self) -> None:
        """Initialize database schema."""
        async with self._transaction() as conn:
            for statement in _SCHEMA:
                await conn.execute(statement)
        logger.info(f"Document store ready at {self.db_path}")

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        await self.connect()
        async with self._tx_lock:
            await self.connection.execute("BEGIN IMMEDIATE")
            try:
                yield self.connection
            except aiosqlite.IntegrityError as e:
                await self.connection.execute("ROLLBACK")
                raise StoreError(f"Integrity violation: {e}") from e
            except aiosqlite.Error as e:
                await self.connection.execute("ROLLBACK")
                raise StoreError(f"Document store write failed: {e}") from e
            except BaseException:
                # Domain errors raised inside the block propagate unchanged
                await self.connection.execute("ROLLBACK")
                raise
            else:
                await self.connection.execute("COMMIT")

    # ═══════════════════════════════════════════════════════════
    # DOCUMENT OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def create_document(self, draft: DocumentDraft) -> Document:
        """Create a document, assigning its ID and timestamps."""
        now = datetime.now()
        document = Document(
            id=generate_document_id(),
            title=draft.title,
            source_kind=draft.source_kind,
            raw_content=draft.raw_content,
            source_url=draft.source_url,
            file_path=draft.file_path,
            content_hash=draft.content_hash,
            metadata=dict(draft.metadata),
            created_at=now,
            updated_at=now,
        )

        async with self._transaction() as conn:
            await conn.execute(
                """
                INSERT INTO documents (
                    id, title, source_kind, raw_content, source_url, file_path,
                    content_hash, metadata, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    document.id,
                    document.title,
                    document.source_kind.value,
                    document.raw_content,
                    document.source_url,
                    document.file_path,
                    document.content_hash,
                    json.dumps(document.metadata),
                    document.created_at.isoformat(),
                    document.updated_at.isoformat(),
                ),
            )

        logger.bind(title=document.title).info(f"Created document {document.id}")
        return document

    async def get_document(self, document_id: str) -> Document:
        """Retrieve a document by ID."""
        await self.connect()

        cursor = await self.connection.execute(
            "SELECT * FROM documents WHERE id = ?", (document_id,)
        )
        row = await cursor.fetchone()

        if not row:
            raise NotFoundError(f"Document not found: {document_id}", {"document_id": document_id})

        return self._row_to_document(row)

    async def list_documents(
        self,
        limit: int = 20,
        offset: int = 0,
        source_kind: SourceKind | None = None,
        tags: list[str] | None = None,
    ) -> tuple[list[Document], int]:
        """List documents newest-first with optional filters."""
        if limit < 1 or offset < 0:
            raise InvalidArgumentError(
                "limit must be positive and offset non-negative",
                {"limit": limit, "offset": offset},
            )

        await self.connect()

        where = " WHERE 1=1"
        params: list = []

        if source_kind is not None:
            where += " AND source_kind = ?"
            params.append(SourceKind(source_kind).value)

        for tag in tags or []:
            where += (
                " AND EXISTS (SELECT 1 FROM json_each(documents.metadata, '$.tags')"
                " WHERE json_each.value = ?)"
            )
            params.append(tag)

        cursor = await self.connection.execute(f"SELECT COUNT(*) FROM documents{where}", params)
        total = (await cursor.fetchone())[0]

        cursor = await self.connection.execute(
            f"SELECT * FROM documents{where} ORDER BY created_at DESC, seq DESC LIMIT ? OFFSET ?",
            [*params, limit, offset],
        )
        rows = await cursor.fetchall()

        return [self._row_to_document(row) for row in rows], total

    async def update_document(self, document_id: str, update: DocumentUpdate) -> Document:
        """Update title and/or tags, merging tags into existing metadata."""
        async with self._document_locks.hold(document_id):
            existing = await self.get_document(document_id)

            if update.is_empty():
                return existing

            title = update.title if update.title is not None else existing.title
            metadata = dict(existing.metadata)
            if update.tags is not None:
                metadata["tags"] = list(dict.fromkeys(update.tags))
            updated_at = datetime.now()

            async with self._transaction() as conn:
                await conn.execute(
                    "UPDATE documents SET title = ?, metadata = ?, updated_at = ? WHERE id = ?",
                    (title, json.dumps(metadata), updated_at.isoformat(), document_id),
                )

        logger.bind(fields=[k for k, v in update.model_dump().items() if v is not None]).info(
            f"Updated document {document_id}"
        )
        return existing.model_copy(
            update={"title": title, "metadata": metadata, "updated_at": updated_at}
        )

    async def delete_document(self, document_id: str) -> None:
        """Delete a document; segments are removed by cascade."""
        async with self._document_locks.hold(document_id):
            async with self._transaction() as conn:
                cursor = await conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
                deleted = cursor.rowcount

        if not deleted:
            raise NotFoundError(f"Document not found: {document_id}", {"document_id": document_id})

        logger.info(f"Deleted document {document_id}")

    async def find_by_content_hash(self, content_hash: str) -> Document | None:
        """Find the most recent document created from this content hash."""
        await self.connect()

        cursor = await self.connection.execute(
            "SELECT * FROM documents WHERE content_hash = ? ORDER BY seq DESC LIMIT 1",
            (content_hash,),
        )
        row = await cursor.fetchone()
        return self._row_to_document(row) if row else None

    # ═══════════════════════════════════════════════════════════
    # SEGMENT OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def create_segments(self, segments: list[Segment]) -> list[Segment]:
        """Insert segments, one transaction per document."""
        if not segments:
            return []

        by_document: dict[str, list[Segment]] = {}
        for segment in segments:
            by_document.setdefault(segment.document_id, []).append(segment)

        for document_id, batch in by_document.items():
            batch.sort(key=lambda s: s.index)
            indices = [s.index for s in batch]
            if indices != list(range(len(batch))):
                raise InvalidArgumentError(
                    f"Segment indices for {document_id} must be contiguous from 0",
                    {"document_id": document_id, "indices": indices},
                )

        created: list[Segment] = []
        for document_id, batch in by_document.items():
            async with self._document_locks.hold(document_id):
                await self._write_segment_batch(document_id, batch)
            created.extend(batch)
            logger.bind(document_id=document_id, count=len(batch)).info(
                f"Created {len(batch)} segments"
            )

        return created

    async def _write_segment_batch(self, document_id: str, batch: list[Segment]) -> None:
        widths = {len(s.embedding) for s in batch if s.embedding is not None}
        if len(widths) > 1:
            raise DimensionMismatchError(
                f"Mixed embedding dimensions in one batch: {sorted(widths)}",
                {"document_id": document_id},
            )

        async with self._transaction() as conn:
            cursor = await conn.execute("SELECT 1 FROM documents WHERE id = ?", (document_id,))
            if await cursor.fetchone() is None:
                raise NotFoundError(
                    f"Document not found: {document_id}", {"document_id": document_id}
                )

            if widths:
                width = widths.pop()
                stored = await self._read_dimension(conn)
                if stored is None:
                    await conn.execute(
                        "INSERT INTO store_meta (key, value) VALUES ('embedding_dimension', ?)",
                        (str(width),),
                    )
                elif stored != width:
                    raise DimensionMismatchError(
                        f"Embedding dimension {width} does not match the store's {stored}",
                        {"expected": stored, "actual": width},
                    )

            # Last full batch wins
            await conn.execute("DELETE FROM segments WHERE document_id = ?", (document_id,))
            await conn.executemany(
                """
                INSERT INTO segments (
                    id, document_id, segment_index, start_offset, end_offset,
                    content, embedding, token_count, metadata, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        s.id,
                        s.document_id,
                        s.index,
                        s.start_offset,
                        s.end_offset,
                        s.content,
                        _vector_to_blob(s.embedding) if s.embedding is not None else None,
                        s.token_count,
                        json.dumps(s.metadata),
                        s.created_at.isoformat(),
                    )
                    for s in batch
                ],
            )

    async def get_segments(self, document_id: str) -> list[Segment]:
        """Get a document's segments ordered by index."""
        await self.connect()

        cursor = await self.connection.execute(
            "SELECT * FROM segments WHERE document_id = ? ORDER BY segment_index",
            (document_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_segment(row) for row in rows]

    async def get_segment_contexts(self, segment_ids: list[str]) -> dict[str, SegmentContext]:
        """Load segments joined with their parent document fields."""
        if not segment_ids:
            return {}

        await self.connect()

        placeholders = ", ".join("?" for _ in segment_ids)
        cursor = await self.connection.execute(
            f"""
            SELECT s.*, d.title AS document_title, d.source_kind AS document_source_kind,
                   d.metadata AS document_metadata
            FROM segments s
            JOIN documents d ON d.id = s.document_id
            WHERE s.id IN ({placeholders})
            """,
            list(segment_ids),
        )
        rows = await cursor.fetchall()

        return {
            row["id"]: SegmentContext(
                segment=self._row_to_segment(row, with_embedding=False),
                document_title=row["document_title"],
                source_kind=SourceKind(row["document_source_kind"]),
                document_metadata=json.loads(row["document_metadata"] or "{}"),
            )
            for row in rows
        }

    # ═══════════════════════════════════════════════════════════
    # RANKING
    # ═══════════════════════════════════════════════════════════

    async def rank_lexical(self, query_text: str, limit: int) -> list[RankedSegment]:
        """Rank segments by their parent document's bm25 score."""
        match = build_match_query(query_text)
        if match is None or limit < 1:
            return []

        await self.connect()

        # bm25() is lower-is-better
        cursor = await self.connection.execute(
            f"""
            SELECT s.id, s.document_id, s.segment_index
            FROM segments s
            JOIN documents d ON d.id = s.document_id
            JOIN (
                SELECT rowid AS seq, bm25(documents_fts, {TITLE_WEIGHT}, {BODY_WEIGHT}) AS score
                FROM documents_fts
                WHERE documents_fts MATCH ?
            ) m ON m.seq = d.seq
            ORDER BY m.score ASC, s.document_id ASC, s.segment_index ASC
            LIMIT ?
            """,
            (match, limit),
        )
        rows = await cursor.fetchall()

        return [
            RankedSegment(
                segment_id=row["id"],
                document_id=row["document_id"],
                index=row["segment_index"],
                rank=position,
            )
            for position, row in enumerate(rows, start=1)
        ]

    async def rank_semantic(self, query_embedding: list[float], limit: int) -> list[RankedSegment]:
        """Rank embedded segments by ascending cosine distance."""
        if limit < 1:
            return []

        await self.connect()

        stored = await self._read_dimension(self.connection)
        if stored is not None and len(query_embedding) != stored:
            raise DimensionMismatchError(
                f"Query embedding dimension {len(query_embedding)} does not match "
                f"the store's {stored}",
                {"expected": stored, "actual": len(query_embedding)},
            )

        cursor = await self.connection.execute(
            "SELECT id, document_id, segment_index, embedding FROM segments "
            "WHERE embedding IS NOT NULL"
        )
        rows = await cursor.fetchall()
        if not rows:
            return []

        matrix = np.vstack([np.frombuffer(row["embedding"], dtype=np.float32) for row in rows])
        query = np.asarray(query_embedding, dtype=np.float32)

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        with np.errstate(divide="ignore", invalid="ignore"):
            similarity = np.where(norms > 0, (matrix @ query) / norms, 0.0)
        distances = 1.0 - similarity

        order = sorted(
            range(len(rows)),
            key=lambda i: (float(distances[i]), rows[i]["document_id"], rows[i]["segment_index"]),
        )[:limit]

        return [
            RankedSegment(
                segment_id=rows[i]["id"],
                document_id=rows[i]["document_id"],
                index=rows[i]["segment_index"],
                rank=position,
            )
            for position, i in enumerate(order, start=1)
        ]

    # ═══════════════════════════════════════════════════════════
    # STATISTICS
    # ═══════════════════════════════════════════════════════════

    async def embedding_dimension(self) -> int | None:
        await self.connect()
        return await self._read_dimension(self.connection)

    async def count_documents(self) -> int:
        await self.connect()
        cursor = await self.connection.execute("SELECT COUNT(*) FROM documents")
        return (await cursor.fetchone())[0]

    async def count_segments(self) -> int:
        await self.connect()
        cursor = await self.connection.execute("SELECT COUNT(*) FROM segments")
        return (await cursor.fetchone())[0]

    async def close(self) -> None:
        """Close database connection."""
        if self.connection:
            await self.connection.close()
            self.connection = None

    # ═══════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════

    @staticmethod
    async def _read_dimension(conn: aiosqlite.Connection) -> int | None:
        cursor = await conn.execute(
            "SELECT value FROM store_meta WHERE key = 'embedding_dimension'"
        )
        row = await cursor.fetchone()
        return int(row["value"]) if row else None

    def _row_to_document(self, row: aiosqlite.Row) -> Document:
        """Convert database row to Document."""
        return Document(
            id=row["id"],
            title=row["title"],
            source_kind=SourceKind(row["source_kind"]),
            raw_content=row["raw_content"],
            source_url=row["source_url"],
            file_path=row["file_path"],
            content_hash=row["content_hash"],
            metadata=json.loads(row["metadata"] or "{}"),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_segment(self, row: aiosqlite.Row, with_embedding: bool = True) -> Segment:
        """Convert database row to Segment."""
        return Segment(
            id=row["id"],
            document_id=row["document_id"],
            index=row["segment_index"],
            start_offset=row["start_offset"],
            end_offset=row["end_offset"],
            content=row["content"],
            embedding=_blob_to_vector(row["embedding"]) if with_embedding else None,
            token_count=row["token_count"],
            metadata=json.loads(row["metadata"] or "{}"),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
