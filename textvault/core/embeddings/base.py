"""
Abstract base class for embedding providers.
Handles text to vector embeddings for semantic search.
"""

from abc import ABC, abstractmethod

from textvault.utils.exceptions import EmbeddingError


class Embedder(ABC):
    """
    Abstract base for embedding providers.

    Responsibilities:
    - Generate vector embeddings for text
    - Split batch requests at the provider's batch ceiling
    - Consistent, provider-fixed vector dimensions

    Subclasses implement ``_embed_batch`` for a single upstream request of
    at most ``max_batch_size`` texts.
    """

    name: str = "embedder"

    def __init__(self, dimensions: int, max_batch_size: int):
        self._dimensions = dimensions
        self._max_batch_size = max_batch_size

    @property
    def dimensions(self) -> int:
        """Length of every vector this provider returns."""
        return self._dimensions

    @property
    def max_batch_size(self) -> int:
        """Maximum number of texts sent in one upstream request."""
        return self._max_batch_size

    @abstractmethod
    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed one batch of texts with a single upstream call.

        Args:
            texts: Between 1 and ``max_batch_size`` texts

        Returns:
            One vector per text, in input order

        Raises:
            EmbeddingError: If the upstream call fails
        """
        pass

    async def embed_one(self, text: str) -> list[float]:
        """
        Generate embedding vector for text.

        Args:
            text: Text to embed

        Returns:
            List of floats representing the embedding vector
        """
        vectors = await self._embed_batch([text])
        self._check(vectors, 1)
        return vectors[0]

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for multiple texts.

        Input is chunked into requests of at most ``max_batch_size`` texts
        and the results are concatenated in input order.

        Args:
            texts: Texts to embed

        Returns:
            List of embedding vectors (same order and length as input)
        """
        if not texts:
            return []

        embeddings: list[list[float]] = []
        for i in range(0, len(texts), self.max_batch_size):
            batch = texts[i : i + self.max_batch_size]
            vectors = await self._embed_batch(batch)
            self._check(vectors, len(batch))
            embeddings.extend(vectors)

        return embeddings

    def _check(self, vectors: list[list[float]], expected: int) -> None:
        if len(vectors) != expected:
            raise EmbeddingError(
                f"{self.name} returned {len(vectors)} embeddings for {expected} inputs",
                {"provider": self.name},
            )
        for vector in vectors:
            if len(vector) != self.dimensions:
                raise EmbeddingError(
                    f"{self.name} returned a {len(vector)}-dimension vector, "
                    f"expected {self.dimensions}",
                    {"provider": self.name},
                )

    async def close(self) -> None:
        """
        Close any open connections.

        Optional to override if provider needs cleanup.
        """
        pass
