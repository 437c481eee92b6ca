"""
Document store implementations for TextVault.

Provides abstract base and concrete implementations for document storage.
"""

from textvault.core.document_store.base import (
    DocumentStore,
    RankedSegment,
    SegmentContext,
    lexical_terms,
)
from textvault.core.document_store.sqlite_store import SQLiteDocumentStore

__all__ = [
    "DocumentStore",
    "RankedSegment",
    "SegmentContext",
    "lexical_terms",
    "SQLiteDocumentStore",
]
