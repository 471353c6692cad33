"""
Hybrid query engine.

Ranks chunks by reciprocal-rank fusion of a BM25 lexical ranking and a
cosine-similarity ranking over one index snapshot:

    score = w_lex / (k + rank_lex) + w_sem / (k + rank_sem)

Ranks are 1-based and equal raw scores share a rank; a chunk absent from
one ranking gets nothing from it.
Ties are broken by document id, then chunk index.
"""

import logging
from typing import Any, Iterator, Mapping, Optional, Union

import numpy as np

from docindex.config import SearchConfig
from docindex.index import HybridIndex, IndexSnapshot, tokenize
from docindex.models import SearchResult
from docindex.protocols import EmbeddingProvider
from docindex.search.filters import compile_filter
from docindex.search.request import QueryRequest

logger = logging.getLogger(__name__)


def _ranked(indices: list[int], scores: np.ndarray) -> Iterator[tuple[int, int]]:
    """Yield (index, rank) by descending score; equal scores share a rank."""
    rank = 0
    previous = None
    for position, i in enumerate(sorted(indices, key=lambda i: -scores[i]), 1):
        if scores[i] != previous:
            rank, previous = position, scores[i]
        yield i, rank


class SearchEngine:
    """Read-only hybrid search over a HybridIndex."""

    def __init__(
        self,
        index: HybridIndex,
        embedder: Optional[EmbeddingProvider] = None,
        config: Optional[SearchConfig] = None,
    ):
        self.index = index
        self.embedder = embedder
        self.config = config or SearchConfig()

    def search(
        self,
        query: str,
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> list[SearchResult]:
        """Search the current index snapshot.

        Args:
            query: Free-text query
            filters: Attribute filter (see docindex.search.filters)
            limit: Maximum number of results

        Returns:
            Results ordered by fused score; empty when nothing matches

        Raises:
            QueryError: If the request is malformed
        """
        request = QueryRequest(
            query=query,
            filters=dict(filters) if isinstance(filters, Mapping) else filters,
            limit=self.config.default_limit if limit is None else limit,
        ).validate(self.config)
        return self.execute(request)

    def execute(self, request: QueryRequest) -> list[SearchResult]:
        """Run a validated request."""
        predicate = compile_filter(request.filters)
        snapshot = self.index.snapshot()
        if not len(snapshot):
            return []

        candidates = [i for i, e in enumerate(snapshot.entries) if predicate(e.chunk)]
        if not candidates:
            return []

        fused = self._fuse(snapshot, request.query, candidates)
        ordered = sorted(
            fused.items(),
            key=lambda item: (
                -item[1],
                snapshot.entries[item[0]].document_id,
                snapshot.entries[item[0]].chunk.chunk_index,
            ),
        )[: request.limit]

        return [
            SearchResult(
                chunk=snapshot.entries[i].chunk,
                score=float(score),
                rank=rank,
                source_url=snapshot.entries[i].source_url,
            )
            for rank, (i, score) in enumerate(ordered, 1)
        ]

    def preview(self, request: Union[Mapping[str, Any], str]) -> dict[str, Any]:
        """Run a request given as a dict or JSON and return serialized results.

        Does not touch index state.
        """
        parsed = QueryRequest.from_dict(request, self.config)
        results = self.execute(parsed)
        return {"results": [r.to_dict(parsed.columns) for r in results]}

    def _fuse(
        self,
        snapshot: IndexSnapshot,
        query: str,
        candidates: list[int],
    ) -> dict[int, float]:
        fused: dict[int, float] = {}
        k = self.config.rrf_k

        query_tokens = tokenize(query)
        if self.config.lexical_weight > 0 and query_tokens:
            wanted = set(query_tokens)
            matched = [i for i in candidates if snapshot.token_sets[i] & wanted]
            lexical = snapshot.lexical_scores(query_tokens)
            for i, rank in _ranked(matched, lexical):
                fused[i] = fused.get(i, 0.0) + self.config.lexical_weight / (k + rank)

        semantic = self._semantic_scores(snapshot, query)
        if semantic is not None:
            matched = [i for i in candidates if semantic[i] >= self.config.min_semantic_score]
            for i, rank in _ranked(matched, semantic):
                fused[i] = fused.get(i, 0.0) + self.config.semantic_weight / (k + rank)

        return fused

    def _semantic_scores(self, snapshot: IndexSnapshot, query: str) -> Optional[np.ndarray]:
        """Cosine scores, or None when semantic ranking is off or unavailable."""
        if self.embedder is None or self.config.semantic_weight == 0:
            return None
        try:
            embedding = np.asarray(self.embedder.embed([query]), dtype=np.float32)[0]
            return snapshot.semantic_scores(embedding)
        except Exception as e:
            logger.warning(f"Semantic ranking unavailable, using lexical only: {e}")
            return None
