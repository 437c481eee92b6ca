"""Utility modules for TextVault."""

from textvault.utils.exceptions import (
    DimensionMismatchError,
    EmbeddingError,
    ExternalServiceError,
    InvalidArgumentError,
    NotConfiguredError,
    NotFoundError,
    StoreError,
    TextVaultError,
)
from textvault.utils.id_generator import generate_document_id, generate_segment_id
from textvault.utils.locks import KeyedLock
from textvault.utils.logger import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # ID Generators
    "generate_document_id",
    "generate_segment_id",
    # Concurrency
    "KeyedLock",
    # Exceptions
    "TextVaultError",
    "InvalidArgumentError",
    "DimensionMismatchError",
    "NotFoundError",
    "NotConfiguredError",
    "ExternalServiceError",
    "EmbeddingError",
    "StoreError",
]
