"""
Hybrid search engine.

Runs a lexical and a semantic ranking against the document store, fuses
them with Reciprocal Rank Fusion and annotates the winners with their
parent document's fields.
"""

from textvault.config import SearchConfig
from textvault.core.document_store.base import DocumentStore, lexical_terms
from textvault.core.search.fusion import DEFAULT_RRF_K, FusedSegment, reciprocal_rank_fusion
from textvault.models.search import SearchFilters, SearchResult
from textvault.utils.exceptions import InvalidArgumentError
from textvault.utils.logger import get_logger

logger = get_logger(__name__)


class HybridSearchEngine:
    """
    Lexical + semantic search with RRF score fusion.

    Each ranking contributes its top ``limit * 2`` candidates. A ranking
    whose weight is 0 is not run, so it can never pad the result set with
    zero-score entries.
    """

    def __init__(
        self,
        store: DocumentStore,
        rrf_k: int = DEFAULT_RRF_K,
        filter_overfetch: int = 3,
    ):
        """
        Initialize search engine.

        Args:
            store: Document store to rank against
            rrf_k: RRF smoothing constant
            filter_overfetch: Candidate multiplier used when post-filters are present
        """
        if rrf_k <= 0:
            raise InvalidArgumentError(f"rrf_k must be positive, got {rrf_k}")
        if filter_overfetch < 1:
            raise InvalidArgumentError(f"filter_overfetch must be >= 1, got {filter_overfetch}")

        self.store = store
        self.rrf_k = rrf_k
        self.filter_overfetch = filter_overfetch

    @classmethod
    def from_config(cls, store: DocumentStore, config: SearchConfig) -> "HybridSearchEngine":
        return cls(store, rrf_k=config.rrf_k, filter_overfetch=config.filter_overfetch)

    async def search(
        self,
        query_text: str,
        query_embedding: list[float],
        limit: int,
        full_text_weight: float = 1.0,
        semantic_weight: float = 1.0,
    ) -> list[SearchResult]:
        """
        Hybrid search.

        Args:
            query_text: Text matched against the lexical index
            query_embedding: Query vector for the semantic ranking
            limit: Maximum results
            full_text_weight: Weight of the lexical ranking
            semantic_weight: Weight of the semantic ranking

        Returns:
            Up to ``limit`` results ordered by fused score; empty when
            neither ranking matches
        """
        _check_limit(limit)
        candidates = limit * 2

        lexical = (
            await self.store.rank_lexical(query_text, candidates) if full_text_weight > 0 else []
        )
        semantic = (
            await self.store.rank_semantic(query_embedding, candidates)
            if semantic_weight > 0
            else []
        )

        fused = reciprocal_rank_fusion(
            lexical,
            semantic,
            k=self.rrf_k,
            full_text_weight=full_text_weight,
            semantic_weight=semantic_weight,
        )[:limit]

        results = await self._annotate(fused)
        logger.bind(
            lexical_candidates=len(lexical),
            semantic_candidates=len(semantic),
            limit=limit,
        ).info(f"Hybrid search returned {len(results)} results")
        return results

    async def search_semantic(self, query_embedding: list[float], limit: int) -> list[SearchResult]:
        """
        Semantic-only search, for queries with no lexical terms.

        Scores follow the same ``1 / (k + rank)`` scale as hybrid search.
        """
        _check_limit(limit)
        semantic = await self.store.rank_semantic(query_embedding, limit * 2)
        fused = reciprocal_rank_fusion([], semantic, k=self.rrf_k)[:limit]
        return await self._annotate(fused)

    async def search_filtered(
        self,
        query_text: str,
        query_embedding: list[float],
        limit: int,
        filters: SearchFilters | None = None,
        full_text_weight: float = 1.0,
        semantic_weight: float = 1.0,
    ) -> list[SearchResult]:
        """
        Hybrid search followed by tag / source kind / minimum score filters.

        Filtering happens after fusion, so ``limit * filter_overfetch``
        candidates are requested whenever a filter is active, then the
        filtered list is truncated to ``limit``. Query text without any
        word terms is ranked semantically only.
        """
        _check_limit(limit)
        filters = filters or SearchFilters()
        fetch_limit = limit * self.filter_overfetch if filters.is_active() else limit

        if lexical_terms(query_text):
            results = await self.search(
                query_text,
                query_embedding,
                fetch_limit,
                full_text_weight=full_text_weight,
                semantic_weight=semantic_weight,
            )
        else:
            results = await self.search_semantic(query_embedding, fetch_limit)

        if filters.is_active():
            results = [r for r in results if r.matches(filters)]

        return results[:limit]

    async def _annotate(self, fused: list[FusedSegment]) -> list[SearchResult]:
        if not fused:
            return []

        contexts = await self.store.get_segment_contexts([f.segment_id for f in fused])

        results = []
        for entry in fused:
            context = contexts.get(entry.segment_id)
            if context is None:
                # Deleted between ranking and annotation
                continue
            results.append(
                SearchResult(
                    segment_id=entry.segment_id,
                    document_id=entry.document_id,
                    segment_index=entry.index,
                    content=context.segment.content,
                    document_title=context.document_title,
                    source_kind=context.source_kind,
                    document_metadata=context.document_metadata,
                    score=entry.score,
                )
            )
        return results


def _check_limit(limit: int) -> None:
    if limit < 1:
        raise InvalidArgumentError(f"limit must be at least 1, got {limit}", {"limit": limit})
