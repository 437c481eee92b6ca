"""
Services for TextVault.

High-level business logic services:
- KnowledgeBase: Unified interface for capture, ingestion and search
- IngestionOrchestrator: Batch ingestion with dedup and bounded concurrency
"""

from textvault.services.ingestion_orchestrator import IngestionOrchestrator
from textvault.services.knowledge_base import KnowledgeBase, KnowledgeStats

__all__ = [
    "KnowledgeBase",
    "KnowledgeStats",
    "IngestionOrchestrator",
]
