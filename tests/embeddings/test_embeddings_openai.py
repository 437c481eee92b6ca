"""
Tests for OpenAI embedder.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from openai import APIConnectionError, APIStatusError, APITimeoutError

from textvault.core.embeddings.openai import OpenAIEmbedder
from textvault.utils.exceptions import EmbeddingError, NotConfiguredError

EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"


def _response(*items: tuple[int, list[float]]):
    return SimpleNamespace(
        data=[SimpleNamespace(index=index, embedding=vector) for index, vector in items]
    )


@pytest.fixture
def openai_embedder():
    """Create OpenAI embedder with a tiny vector size for testing."""
    return OpenAIEmbedder(api_key="sk-test-key", dimensions=2, max_batch_size=2)


@pytest.mark.unit
@pytest.mark.asyncio
class TestOpenAIEmbedder:
    """Test OpenAI embedder."""

    async def test_initialization(self):
        """Test known model dimensions are applied."""
        embedder = OpenAIEmbedder(api_key="sk-test-key")

        assert embedder.model == "text-embedding-3-small"
        assert embedder.dimensions == 1536
        assert embedder.max_batch_size == 2048

    async def test_batch_size_capped(self):
        """Test batch size never exceeds the API maximum."""
        embedder = OpenAIEmbedder(api_key="sk-test-key", max_batch_size=5000)
        assert embedder.max_batch_size == 2048

    async def test_missing_api_key(self):
        """Test that a missing key is a configuration error naming the setting."""
        with pytest.raises(NotConfiguredError, match="TEXTVAULT_EMBEDDER_API_KEY"):
            OpenAIEmbedder(api_key=None)

    async def test_unknown_model_needs_dimension(self):
        """Test unknown models require an explicit dimension."""
        with pytest.raises(NotConfiguredError, match="TEXTVAULT_EMBEDDER_DIMENSION"):
            OpenAIEmbedder(api_key="sk-test-key", model="custom-embedder")

        embedder = OpenAIEmbedder(api_key="sk-test-key", model="custom-embedder", dimensions=8)
        assert embedder.dimensions == 8

    async def test_embed_one(self, openai_embedder):
        """Test single embedding request."""
        with patch.object(
            openai_embedder.client.embeddings, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.return_value = _response((0, [0.1, 0.2]))

            result = await openai_embedder.embed_one("hello")

            assert result == [0.1, 0.2]
            mock_create.assert_awaited_once_with(
                model="text-embedding-3-small", input=["hello"], encoding_format="float"
            )

    async def test_reorders_by_index(self, openai_embedder):
        """Test out-of-order batch items are re-sorted by index."""
        with patch.object(
            openai_embedder.client.embeddings, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.return_value = _response((1, [0.3, 0.4]), (0, [0.1, 0.2]))

            results = await openai_embedder.embed_many(["first", "second"])

            assert results == [[0.1, 0.2], [0.3, 0.4]]

    async def test_batch_equivalence(self, openai_embedder):
        """Test embed_many()[i] matches embed_one() of the same text."""
        vectors = {"a": [1.0, 0.0], "b": [0.0, 1.0], "c": [0.5, 0.5]}

        async def fake_create(model, input, encoding_format):
            return _response(*[(i, vectors[text]) for i, text in enumerate(input)])

        with patch.object(openai_embedder.client.embeddings, "create", side_effect=fake_create):
            many = await openai_embedder.embed_many(["a", "b", "c"])
            one = await openai_embedder.embed_one("b")

        assert len(many) == 3
        assert many[1] == one

    async def test_status_error(self, openai_embedder):
        """Test non-2xx responses carry status and body."""
        request = httpx.Request("POST", EMBEDDINGS_URL)
        response = httpx.Response(429, text='{"error": "rate limited"}', request=request)
        error = APIStatusError("rate limited", response=response, body=None)

        with patch.object(
            openai_embedder.client.embeddings, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.side_effect = error

            with pytest.raises(EmbeddingError) as exc_info:
                await openai_embedder.embed_one("hello")

        assert exc_info.value.status_code == 429
        assert "rate limited" in exc_info.value.body

    async def test_connection_error(self, openai_embedder):
        """Test refused connections are flagged unreachable."""
        request = httpx.Request("POST", EMBEDDINGS_URL)

        with patch.object(
            openai_embedder.client.embeddings, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.side_effect = APIConnectionError(request=request)

            with pytest.raises(EmbeddingError) as exc_info:
                await openai_embedder.embed_one("hello")

        assert exc_info.value.unreachable

    async def test_timeout_error(self, openai_embedder):
        """Test timeouts are flagged."""
        request = httpx.Request("POST", EMBEDDINGS_URL)

        with patch.object(
            openai_embedder.client.embeddings, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.side_effect = APITimeoutError(request=request)

            with pytest.raises(EmbeddingError) as exc_info:
                await openai_embedder.embed_one("hello")

        assert exc_info.value.timed_out
        assert not exc_info.value.unreachable

    async def test_close(self, openai_embedder):
        """Test close method."""
        await openai_embedder.close()
