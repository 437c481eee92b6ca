"""
Ingestion manifest (content hash idempotency ledger).
"""

from textvault.core.manifest.manifest import (
    DEFAULT_MANIFEST_FILENAME,
    MANIFEST_VERSION,
    ManifestManager,
    ManifestStats,
)

__all__ = [
    "DEFAULT_MANIFEST_FILENAME",
    "MANIFEST_VERSION",
    "ManifestManager",
    "ManifestStats",
]
