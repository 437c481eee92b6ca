"""
OpenAI embedder using official SDK.
"""

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from textvault.core.embeddings.base import Embedder
from textvault.utils.exceptions import EmbeddingError, NotConfiguredError
from textvault.utils.logger import get_logger

logger = get_logger(__name__)

OPENAI_DEFAULT_MODEL = "text-embedding-3-small"
OPENAI_MAX_BATCH_SIZE = 2048


class OpenAIEmbedder(Embedder):
    """
    OpenAI embedder for generating text embeddings.

    Uses the official OpenAI SDK against any OpenAI-compatible batch
    embedding endpoint. Batch responses are re-sorted by the index the
    API returns for each item.
    """

    name = "openai"

    # Known dimensions for OpenAI embedding models
    _MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        api_key: str | None,
        model: str = OPENAI_DEFAULT_MODEL,
        organization: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
        dimensions: int | None = None,
        max_batch_size: int = OPENAI_MAX_BATCH_SIZE,
    ):
        """
        Initialize OpenAI embedder.

        Args:
            api_key: OpenAI API key
            model: Embedding model name (e.g., "text-embedding-3-small")
            organization: Optional organization ID
            base_url: Optional custom base URL
            timeout: Request timeout in seconds
            dimensions: Vector size; defaults to the model's known size
            max_batch_size: Inputs per request (API maximum is 2048)

        Raises:
            NotConfiguredError: If the API key is missing or the model's
                dimension is unknown and not given
        """
        if not api_key:
            raise NotConfiguredError(
                "OpenAI API key not configured. Set TEXTVAULT_EMBEDDER_API_KEY or OPENAI_API_KEY.",
                {"setting": "TEXTVAULT_EMBEDDER_API_KEY"},
            )

        resolved = dimensions or self._MODEL_DIMENSIONS.get(model)
        if resolved is None:
            raise NotConfiguredError(
                f"Unknown dimension for OpenAI model '{model}'. Set TEXTVAULT_EMBEDDER_DIMENSION.",
                {"setting": "TEXTVAULT_EMBEDDER_DIMENSION", "model": model},
            )

        super().__init__(
            dimensions=resolved, max_batch_size=min(max_batch_size, OPENAI_MAX_BATCH_SIZE)
        )
        self.model = model
        self.timeout = timeout

        self.client = AsyncOpenAI(
            api_key=api_key, organization=organization, base_url=base_url, timeout=timeout
        )

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed one batch using OpenAI's native batch API.

        Raises:
            EmbeddingError: If the OpenAI API call fails
        """
        try:
            response = await self.client.embeddings.create(
                model=self.model, input=texts, encoding_format="float"
            )
        except APITimeoutError as e:
            logger.bind(model=self.model, num_texts=len(texts)).error(
                f"OpenAI embedding timed out: {e}"
            )
            raise EmbeddingError(
                f"OpenAI embedding timed out after {self.timeout}s",
                {"provider": self.name, "model": self.model},
                timed_out=True,
            ) from e
        except APIConnectionError as e:
            logger.bind(model=self.model, error=str(e)).error(f"Cannot reach OpenAI: {e}")
            raise EmbeddingError(
                f"Cannot connect to the OpenAI embedding endpoint: {e}",
                {"provider": self.name, "model": self.model},
                unreachable=True,
            ) from e
        except APIStatusError as e:
            body = e.response.text if e.response is not None else None
            logger.bind(model=self.model, status_code=e.status_code, body=body).error(
                f"OpenAI embedding error: {e.status_code}"
            )
            raise EmbeddingError(
                f"OpenAI returned {e.status_code}: {body}",
                {"provider": self.name, "model": self.model},
                status_code=e.status_code,
                body=body,
            ) from e

        if not response.data:
            raise EmbeddingError("OpenAI returned empty embedding response", {"provider": self.name})

        ordered = sorted(response.data, key=lambda item: item.index)
        return [item.embedding for item in ordered]

    async def close(self):
        """Close OpenAI client."""
        await self.client.close()
