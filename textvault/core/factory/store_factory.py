"""
Factory for creating document store backends.
"""

from textvault.config import StoreConfig
from textvault.core.document_store.base import DocumentStore
from textvault.core.document_store.sqlite_store import SQLiteDocumentStore
from textvault.utils.exceptions import NotConfiguredError


class DocumentStoreFactory:
    """Factory for creating document store backends from configuration."""

    @staticmethod
    def create(config: StoreConfig) -> DocumentStore:
        """
        Create document store from configuration.

        Args:
            config: Store configuration

        Returns:
            Document store instance (not yet initialized)

        Raises:
            NotConfiguredError: If backend is not supported
        """
        if config.backend == "sqlite":
            return SQLiteDocumentStore(db_path=config.db_path)
        else:
            raise NotConfiguredError(
                f"Unsupported store backend: {config.backend}",
                {"setting": "TEXTVAULT_STORE_BACKEND", "backend": config.backend},
            )
