"""
Shared test fixtures for all test modules.

Provides a deterministic in-process embedder and a temporary SQLite
document store so pipeline tests run without external services.
"""

import asyncio
import hashlib
import re
from collections.abc import AsyncGenerator

import pytest

from textvault.config import Config
from textvault.core.document_store.sqlite_store import SQLiteDocumentStore
from textvault.core.embeddings.base import Embedder
from textvault.utils.exceptions import EmbeddingError


class FakeEmbedder(Embedder):
    """
    Deterministic bag-of-words embedder.

    Each word is hashed into one of ``dimensions`` buckets, so texts that
    share words get similar vectors. Texts containing a ``fail_on`` marker
    raise EmbeddingError; ``delay`` slows every batch down.
    """

    name = "fake"

    def __init__(
        self,
        dimensions: int = 32,
        max_batch_size: int = 8,
        fail_on: set[str] | None = None,
        delay: float = 0.0,
        unreachable: bool = False,
    ):
        super().__init__(dimensions=dimensions, max_batch_size=max_batch_size)
        self.fail_on = fail_on or set()
        self.delay = delay
        self.unreachable = unreachable
        self.batches: list[list[str]] = []

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(list(texts))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.unreachable:
            raise EmbeddingError("Cannot connect to fake provider", unreachable=True)
        for text in texts:
            if any(marker in text for marker in self.fail_on):
                raise EmbeddingError("Forced embedding failure", status_code=500, body="boom")
        return [self.vector(text) for text in texts]

    def vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dimensions
        for word in re.findall(r"\w+", text.lower()):
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % (self.dimensions - 1)
            vector[bucket] += 1.0
        # Keeps every vector non-zero
        vector[-1] = 0.01
        return vector


@pytest.fixture
def make_embedder():
    """Factory for FakeEmbedder instances with custom behaviour."""
    return FakeEmbedder


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def test_config(tmp_path) -> Config:
    """Small segments so multi-segment documents are easy to build."""
    return Config(
        store={"db_path": str(tmp_path / "test.db")},
        segmenter={"max_tokens": 32, "overlap_tokens": 4},
        ingestion={"concurrency": 3, "embed_timeout": 5.0},
    )


@pytest.fixture
async def store(tmp_path) -> AsyncGenerator[SQLiteDocumentStore, None]:
    """Initialized SQLite store in a temporary directory."""
    sqlite_store = SQLiteDocumentStore(db_path=str(tmp_path / "test.db"))
    await sqlite_store.initialize()
    yield sqlite_store
    await sqlite_store.close()
