"""
Upload manifest tracking.

The manifest is a JSON ledger kept at the root of an ingestion directory
mapping content hashes to the documents they produced, so unchanged
content is never ingested twice.

File format::

    {"version": 1, "entries": {"<content_hash>": {...}}, "updated_at": "..."}
"""

import asyncio
import json
import os
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ValidationError

from textvault.models.ingestion import ManifestEntry
from textvault.utils.locks import KeyedLock
from textvault.utils.logger import get_logger

logger = get_logger(__name__)

MANIFEST_VERSION = 1
DEFAULT_MANIFEST_FILENAME = ".manifest.json"


class ManifestStats(BaseModel):
    """Manifest summary."""

    total_files: int
    total_segments: int
    last_updated: datetime


class ManifestManager:
    """
    Manifest manager for tracking ingested content.

    Every mutation runs a load-merge-save cycle under a manifest-wide lock
    and replaces the file atomically, so the file is current after each
    completed artifact. Per-hash locks let callers hold a hash across a
    check-then-write sequence.
    """

    def __init__(self, root: str | Path, filename: str = DEFAULT_MANIFEST_FILENAME):
        """
        Initialize manifest for an ingestion root.

        Args:
            root: Ingestion root directory
            filename: Manifest file name inside the root
        """
        self.path = Path(root) / filename
        self._lock = asyncio.Lock()
        self._hash_locks = KeyedLock()
        self._removed: set[str] = set()
        self._entries, self._updated_at = self._load()

    def _load(self) -> tuple[dict[str, ManifestEntry], datetime]:
        """Load manifest from disk, or start fresh."""
        if not self.path.exists():
            return {}, datetime.now()

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to parse manifest {self.path}, starting fresh: {e}")
            return {}, datetime.now()

        if not isinstance(data, dict) or data.get("version") != MANIFEST_VERSION:
            version = data.get("version") if isinstance(data, dict) else None
            logger.warning(f"Unknown manifest version {version!r} in {self.path}, starting fresh")
            return {}, datetime.now()

        entries: dict[str, ManifestEntry] = {}
        for content_hash, raw in (data.get("entries") or {}).items():
            try:
                entries[content_hash] = ManifestEntry.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Dropping invalid manifest entry {content_hash}: {e}")

        try:
            updated_at = datetime.fromisoformat(data["updated_at"])
        except (KeyError, TypeError, ValueError):
            updated_at = datetime.now()

        return entries, updated_at

    def _write(self, entries: dict[str, ManifestEntry], updated_at: datetime) -> None:
        payload = {
            "version": MANIFEST_VERSION,
            "entries": {h: e.model_dump(mode="json") for h, e in entries.items()},
            "updated_at": updated_at.isoformat(),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.{os.getpid()}.tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    async def _save(self) -> None:
        """Merge with the on-disk state and write atomically. Caller holds the lock."""
        disk_entries, _ = await asyncio.to_thread(self._load)
        merged = {**disk_entries, **self._entries}
        for content_hash in self._removed:
            merged.pop(content_hash, None)

        self._entries = merged
        self._updated_at = datetime.now()
        await asyncio.to_thread(self._write, dict(merged), self._updated_at)

    def hash_lock(self, content_hash: str) -> AbstractAsyncContextManager[None]:
        """Lock guarding check-then-write sequences for one content hash."""
        return self._hash_locks.hold(content_hash)

    def is_recorded(self, content_hash: str) -> bool:
        """Check if content with this hash has been ingested."""
        return content_hash in self._entries

    def get_entry(self, content_hash: str) -> ManifestEntry | None:
        return self._entries.get(content_hash)

    def find_by_path(self, relative_path: str) -> ManifestEntry | None:
        """Find the entry recorded for an artifact path."""
        for entry in self._entries.values():
            if entry.relative_path == relative_path:
                return entry
        return None

    def entries(self) -> list[ManifestEntry]:
        return list(self._entries.values())

    def count(self) -> int:
        return len(self._entries)

    def stats(self) -> ManifestStats:
        """Get manifest stats."""
        return ManifestStats(
            total_files=len(self._entries),
            total_segments=sum(e.segments_created for e in self._entries.values()),
            last_updated=self._updated_at,
        )

    async def record(self, entry: ManifestEntry) -> None:
        """Record a successful ingestion and persist the manifest."""
        async with self._lock:
            self._removed.discard(entry.content_hash)
            self._entries[entry.content_hash] = entry
            await self._save()

    async def remove(self, content_hash: str) -> bool:
        """Remove an entry and persist the manifest. Returns whether it existed."""
        async with self._lock:
            existed = content_hash in self._entries
            self._entries.pop(content_hash, None)
            self._removed.add(content_hash)
            await self._save()
        return existed

    async def clear(self) -> None:
        """Clear all entries."""
        async with self._lock:
            self._removed.update(self._entries)
            self._entries = {}
            await self._save()
