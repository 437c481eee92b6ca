"""
Hybrid lexical + semantic search.
"""

from textvault.core.search.engine import HybridSearchEngine
from textvault.core.search.fusion import DEFAULT_RRF_K, FusedSegment, reciprocal_rank_fusion

__all__ = [
    "DEFAULT_RRF_K",
    "FusedSegment",
    "HybridSearchEngine",
    "reciprocal_rank_fusion",
]
