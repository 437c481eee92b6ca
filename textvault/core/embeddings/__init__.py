"""
Embedder abstraction layer for text embeddings.

Supported providers:
- Ollama (native SDK)
- OpenAI (official SDK)
"""
from textvault.core.embeddings.base import Embedder
from textvault.core.embeddings.ollama import OllamaEmbedder
from textvault.core.embeddings.openai import OpenAIEmbedder

__all__ = [
    "Embedder",
    "OllamaEmbedder",
    "OpenAIEmbedder",
]
