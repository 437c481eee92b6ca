"""
Ollama embedder using native ollama-python SDK.
"""

import httpx
import ollama

from textvault.core.embeddings.base import Embedder
from textvault.utils.exceptions import EmbeddingError, NotConfiguredError
from textvault.utils.logger import get_logger

logger = get_logger(__name__)

OLLAMA_DEFAULT_HOST = "http://localhost:11434"
OLLAMA_DEFAULT_MODEL = "mxbai-embed-large"
OLLAMA_DIMENSIONS = 1024
OLLAMA_MAX_BATCH_SIZE = 100


class OllamaEmbedder(Embedder):
    """
    Ollama embedder for generating text embeddings.

    Uses the SDK's batch ``embed`` call (``/api/embed``), which accepts a
    list of inputs and returns vectors in input order.
    """

    name = "ollama"

    def __init__(
        self,
        host: str | None = OLLAMA_DEFAULT_HOST,
        model: str = OLLAMA_DEFAULT_MODEL,
        timeout: float = 120.0,
        dimensions: int = OLLAMA_DIMENSIONS,
        max_batch_size: int = OLLAMA_MAX_BATCH_SIZE,
    ):
        """
        Initialize Ollama embedder.

        Args:
            host: Ollama server URL
            model: Embedding model name (e.g., "mxbai-embed-large")
            timeout: Request timeout in seconds
            dimensions: Vector size produced by the model
            max_batch_size: Inputs per request

        Raises:
            NotConfiguredError: If no host is configured
        """
        if not host:
            raise NotConfiguredError(
                "Ollama endpoint not configured. Set TEXTVAULT_EMBEDDER_BASE_URL.",
                {"setting": "TEXTVAULT_EMBEDDER_BASE_URL"},
            )

        super().__init__(dimensions=dimensions, max_batch_size=max_batch_size)
        self.host = host
        self.model = model
        self.timeout = timeout

        # Create async client
        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed one batch with a single ``/api/embed`` request.

        Raises:
            EmbeddingError: If Ollama embedding fails
        """
        try:
            response = await self.client.embed(model=self.model, input=texts)
        except ollama.ResponseError as e:
            logger.bind(model=self.model, host=self.host, error=e.error).error(
                f"Ollama embedding error: {e.status_code}"
            )
            raise EmbeddingError(
                f"Ollama returned {e.status_code}: {e.error}",
                {"provider": self.name, "model": self.model},
                status_code=e.status_code,
                body=e.error,
            ) from e
        except httpx.TimeoutException as e:
            raise EmbeddingError(
                f"Ollama embedding timed out after {self.timeout}s",
                {"provider": self.name, "model": self.model},
                timed_out=True,
            ) from e
        except (ConnectionError, httpx.ConnectError) as e:
            logger.bind(host=self.host, error=str(e)).error(
                f"Cannot connect to Ollama at {self.host}"
            )
            raise EmbeddingError(
                f"Cannot connect to Ollama at {self.host}. Is Ollama running?",
                {"provider": self.name, "host": self.host},
                unreachable=True,
            ) from e
        except httpx.HTTPError as e:
            raise EmbeddingError(
                f"Ollama batch embedding failed: {e}",
                {"provider": self.name, "model": self.model},
            ) from e

        embeddings = response["embeddings"] if response else None
        if not embeddings:
            raise EmbeddingError("Invalid response format from Ollama", {"provider": self.name})

        return [list(vector) for vector in embeddings]
