"""
TextVault FastAPI Application

A REST API server for the TextVault knowledge base.
Provides endpoints for capturing notes, ingesting directories,
managing documents and hybrid search.
"""

import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from textvault.config import Config
from textvault.core.factory import DocumentStoreFactory, EmbedderFactory
from textvault.models.document import DocumentUpdate, SourceKind
from textvault.models.ingestion import IngestionSummary
from textvault.models.search import SearchQuery, SearchResult
from textvault.services.knowledge_base import KnowledgeBase
from textvault.utils.exceptions import (
    ExternalServiceError,
    InvalidArgumentError,
    NotConfiguredError,
    NotFoundError,
    TextVaultError,
)
from textvault.utils.logger import get_logger, setup_logging

# Global knowledge base instance
kb: KnowledgeBase | None = None
logger = get_logger(__name__)


# Pydantic models for API
class AddNoteRequest(BaseModel):
    """Request model for capturing a note."""

    title: str = Field(..., min_length=1, max_length=500, description="Note title")
    content: str = Field(..., min_length=1, description="Note body")
    tags: list[str] = Field(default_factory=list)


class DocumentResponse(BaseModel):
    """Document without its body."""

    id: str
    title: str
    source_kind: SourceKind
    source_url: str | None = None
    file_path: str | None = None
    tags: list[str]
    metadata: dict[str, Any]
    created_at: str
    updated_at: str


class DocumentDetailResponse(DocumentResponse):
    """Document with its body and segment count."""

    raw_content: str
    segment_count: int


class AddNoteResponse(BaseModel):
    """Response model for add note."""

    document: DocumentResponse
    segments_created: int


class DocumentListResponse(BaseModel):
    """Paginated document listing."""

    documents: list[DocumentResponse]
    total: int
    limit: int
    offset: int


class UpdateDocumentRequest(BaseModel):
    """Request model for updating title/tags."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    tags: list[str] | None = None


class IngestRequest(BaseModel):
    """Request model for ingesting a directory of artifacts."""

    root: str = Field(..., description="Directory containing converted artifacts")
    pattern: str | None = Field(default=None, description="Glob pattern (default **/*.md)")
    force: bool = False
    dry_run: bool = False


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    initialized: bool
    embedder: str | None = None
    embedding_dimension: int | None = None
    documents: int | None = None
    segments: int | None = None


def _document_response(document) -> DocumentResponse:
    return DocumentResponse(
        id=document.id,
        title=document.title,
        source_kind=document.source_kind,
        source_url=document.source_url,
        file_path=document.file_path,
        tags=document.tags,
        metadata=document.metadata,
        created_at=document.created_at.isoformat(),
        updated_at=document.updated_at.isoformat(),
    )


def _require_kb() -> KnowledgeBase:
    if kb is None:
        raise NotConfiguredError("Knowledge base not initialized", {"prerequisite": "store"})
    return kb


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    global kb

    # Load configuration: env vars > YAML > defaults
    config = Config.from_env_or_yaml(yaml_path=os.getenv("TEXTVAULT_CONFIG", "config.yaml"))

    setup_logging(config.logging)

    logger.info("Starting TextVault server")
    logger.info(
        f"Configuration: Embedder={config.embedder.provider}/{config.embedder.model or 'default'}, "
        f"Store={config.store.backend}:{config.store.db_path}"
    )

    logger.info("Creating embedder")
    embedder = EmbedderFactory.create(config.embedder)

    logger.info("Creating document store")
    store = DocumentStoreFactory.create(config.store)

    kb = KnowledgeBase(embedder=embedder, store=store, config=config)
    await kb.initialize()
    logger.info("TextVault knowledge base initialized")

    yield

    logger.info("Shutting down TextVault server")
    await kb.close()
    kb = None
    logger.info("Cleanup complete")


# Create FastAPI app
app = FastAPI(
    title="TextVault API",
    description="Personal knowledge base with hybrid lexical + semantic search",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error mapping
def _error_status(error: TextVaultError) -> int:
    if isinstance(error, InvalidArgumentError):
        return 400
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, NotConfiguredError):
        return 503
    if isinstance(error, ExternalServiceError):
        return 503 if error.unreachable else 502
    return 500


@app.exception_handler(TextVaultError)
async def textvault_error_handler(request: Request, exc: TextVaultError):
    status = _error_status(exc)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "message": exc.message, "context": exc.context},
    )


# Health check endpoint
@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    if kb is None:
        return HealthResponse(status="initializing", initialized=False)

    stats = await kb.stats()
    return HealthResponse(
        status="healthy",
        initialized=True,
        embedder=stats.embedder,
        embedding_dimension=stats.embedding_dimension,
        documents=stats.documents,
        segments=stats.segments,
    )


# Capture
@app.post("/notes", response_model=AddNoteResponse, status_code=201)
async def add_note(request: AddNoteRequest):
    """
    Capture a note.

    The note is segmented, embedded and stored; it becomes searchable
    immediately.
    """
    document, segments = await _require_kb().add_note(
        title=request.title, content=request.content, tags=request.tags
    )
    return AddNoteResponse(document=_document_response(document), segments_created=len(segments))


# Search
@app.post("/search", response_model=list[SearchResult])
async def search(request: SearchQuery):
    """
    Hybrid search across all documents.

    Lexical (full-text) and semantic (vector) rankings are fused with
    Reciprocal Rank Fusion. Optional tag, source type and minimum score
    filters are applied after fusion.
    """
    return await _require_kb().search(request)


# Documents
@app.get("/documents", response_model=DocumentListResponse)
async def list_documents(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    source_type: SourceKind | None = Query(default=None),
    tags: list[str] | None = Query(default=None),
):
    """List documents newest first."""
    documents, total = await _require_kb().list_documents(
        limit=limit, offset=offset, source_kind=source_type, tags=tags
    )
    return DocumentListResponse(
        documents=[_document_response(d) for d in documents],
        total=total,
        limit=limit,
        offset=offset,
    )


@app.get("/documents/{document_id}", response_model=DocumentDetailResponse)
async def get_document(document_id: str):
    """Retrieve a document with its body."""
    knowledge_base = _require_kb()
    document = await knowledge_base.get_document(document_id)
    segments = await knowledge_base.get_document_segments(document_id)
    return DocumentDetailResponse(
        **_document_response(document).model_dump(),
        raw_content=document.raw_content,
        segment_count=len(segments),
    )


@app.patch("/documents/{document_id}", response_model=DocumentResponse)
async def update_document(document_id: str, request: UpdateDocumentRequest):
    """Update a document's title and/or tags. The body never changes."""
    document = await _require_kb().update_document(
        document_id, DocumentUpdate(title=request.title, tags=request.tags)
    )
    return _document_response(document)


@app.delete("/documents/{document_id}")
async def delete_document(document_id: str):
    """Delete a document and its segments."""
    await _require_kb().delete_document(document_id)
    return {"document_id": document_id, "status": "deleted"}


# Ingestion
@app.post("/ingest", response_model=IngestionSummary)
async def ingest(request: IngestRequest):
    """
    Ingest a directory of converted artifacts.

    Unchanged content already recorded in the directory's manifest is
    skipped unless ``force`` is set. Per-file failures are reported in
    the summary and never abort the batch.
    """
    return await _require_kb().ingest_directory(
        request.root, pattern=request.pattern, force=request.force, dry_run=request.dry_run
    )
