"""
Reciprocal Rank Fusion.

Combines a lexical and a semantic ranking by summing weighted
``1 / (k + rank)`` contributions. Only rank positions are used, so the
two rankings' native scores never need to be made comparable.
"""

from pydantic import BaseModel

from textvault.core.document_store.base import RankedSegment
from textvault.utils.exceptions import InvalidArgumentError

DEFAULT_RRF_K = 60


class FusedSegment(BaseModel):
    """A segment in the fused ranking."""

    segment_id: str
    document_id: str
    index: int
    score: float
    lexical_rank: int | None = None
    semantic_rank: int | None = None


def reciprocal_rank_fusion(
    lexical: list[RankedSegment],
    semantic: list[RankedSegment],
    k: int = DEFAULT_RRF_K,
    full_text_weight: float = 1.0,
    semantic_weight: float = 1.0,
) -> list[FusedSegment]:
    """
    Fuse two rankings with weighted RRF.

    ``score = full_text_weight / (k + rank_lex) + semantic_weight / (k + rank_sem)``
    where a missing rank contributes 0. Equal scores are ordered by
    (document_id, index) so repeated queries return identical orderings.

    Args:
        lexical: Lexical ranking (1-based ranks)
        semantic: Semantic ranking (1-based ranks)
        k: Smoothing constant; larger values flatten rank influence
        full_text_weight: Weight of the lexical term
        semantic_weight: Weight of the semantic term

    Returns:
        Union of both rankings ordered by fused score descending

    Raises:
        InvalidArgumentError: If k is not positive or a weight is negative
    """
    if k <= 0:
        raise InvalidArgumentError(f"RRF k must be positive, got {k}", {"k": k})
    if full_text_weight < 0 or semantic_weight < 0:
        raise InvalidArgumentError(
            "Fusion weights must not be negative",
            {"full_text_weight": full_text_weight, "semantic_weight": semantic_weight},
        )

    fused: dict[str, FusedSegment] = {}

    for entry in lexical:
        fused[entry.segment_id] = FusedSegment(
            segment_id=entry.segment_id,
            document_id=entry.document_id,
            index=entry.index,
            score=full_text_weight / (k + entry.rank),
            lexical_rank=entry.rank,
        )

    for entry in semantic:
        contribution = semantic_weight / (k + entry.rank)
        existing = fused.get(entry.segment_id)
        if existing is None:
            fused[entry.segment_id] = FusedSegment(
                segment_id=entry.segment_id,
                document_id=entry.document_id,
                index=entry.index,
                score=contribution,
                semantic_rank=entry.rank,
            )
        else:
            existing.score += contribution
            existing.semantic_rank = entry.rank

    return sorted(fused.values(), key=lambda f: (-f.score, f.document_id, f.index))
