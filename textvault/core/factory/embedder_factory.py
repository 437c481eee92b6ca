"""
Factory for creating embedder providers.
"""

from textvault.config import EmbedderConfig
from textvault.core.embeddings.base import Embedder
from textvault.core.embeddings.ollama import OLLAMA_DEFAULT_HOST, OllamaEmbedder
from textvault.core.embeddings.openai import OpenAIEmbedder
from textvault.utils.exceptions import NotConfiguredError


class EmbedderFactory:
    """Factory for creating embedder providers from configuration."""

    @staticmethod
    def create(config: EmbedderConfig) -> Embedder:
        """
        Create embedder from configuration.

        The provider is chosen once here; the returned instance never
        re-checks the provider name.

        Args:
            config: Embedder configuration

        Returns:
            Embedder instance

        Raises:
            NotConfiguredError: If the provider is not supported or its
                credentials are missing
        """
        # Unset options fall back to the provider's own defaults
        options = {}
        if config.model:
            options["model"] = config.model
        if config.dimension:
            options["dimensions"] = config.dimension
        if config.max_batch_size:
            options["max_batch_size"] = config.max_batch_size

        if config.provider == "ollama":
            return OllamaEmbedder(
                host=config.base_url or OLLAMA_DEFAULT_HOST,
                timeout=config.timeout,
                **options,
            )
        elif config.provider == "openai":
            return OpenAIEmbedder(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout,
                **options,
            )
        else:
            raise NotConfiguredError(
                f"Unsupported embedder provider: {config.provider}",
                {"setting": "TEXTVAULT_EMBEDDER_PROVIDER", "provider": config.provider},
            )
