"""
Factory modules for creating TextVault components.

Provides modular factories for the Embedder and the Document Store.
"""

from textvault.core.factory.embedder_factory import EmbedderFactory
from textvault.core.factory.store_factory import DocumentStoreFactory

__all__ = [
    "EmbedderFactory",
    "DocumentStoreFactory",
]
