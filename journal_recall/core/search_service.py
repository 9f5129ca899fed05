"""
Similarity Search Engine - brute-force cosine ranking over the store.

Every candidate is scored; there is no approximate index. Ties in score
are broken by ascending record id so rankings are reproducible.
"""

import time
from typing import Dict, List, Optional

import numpy as np

from .exceptions import DimensionMismatchError
from .schemas import SearchRequest, VectorSearchRequest
from ..util.logging import logger
from ..vector.embeddings import IEmbeddingProvider
from ..vector.index import IEmbeddingStore
from ..vector.similarity import cosine_similarity
from ..vector.types import SearchHit


def rank_hits(hits: List[SearchHit], limit: int, unique_documents: bool = False) -> List[SearchHit]:
    """Sort by score descending then id ascending, optionally keep one hit per document, truncate."""
    ordered = sorted(hits, key=lambda hit: (-hit.score, hit.record.id))

    if unique_documents:
        seen = set()
        best_per_document = []
        for hit in ordered:
            if hit.document_id not in seen:
                seen.add(hit.document_id)
                best_per_document.append(hit)
        ordered = best_per_document

    return ordered[:limit]


class SimilaritySearchEngine:
    """Embeds queries and ranks stored records against them."""

    def __init__(self, store: IEmbeddingStore, embedder: IEmbeddingProvider):
        self.store = store
        self.embedder = embedder

    async def search(self, query: str, limit: int = 10, threshold: float = 0.5,
                     document_id: Optional[str] = None, unique_documents: bool = False) -> List[SearchHit]:
        """
        Rank stored chunks by similarity to a text query.

        Args:
            query: Query text
            limit: Maximum number of hits returned
            threshold: Minimum similarity; lower scores are dropped
            document_id: Restrict candidates to one document
            unique_documents: Keep only the best chunk of each document

        Returns:
            Hits in descending score order

        Raises:
            EmbeddingGenerationError: If the query cannot be embedded
        """
        request = SearchRequest(
            query=query,
            limit=limit,
            threshold=threshold,
            document_id=document_id,
            unique_documents=unique_documents,
        )
        query_vector = await self.embedder.embed(request.query)
        return await self._rank(query_vector, request.query, request.limit, request.threshold,
                                request.document_id, request.unique_documents)

    async def search_by_vector(self, vector, limit: int = 10, threshold: float = 0.5,
                               document_id: Optional[str] = None, unique_documents: bool = False) -> List[SearchHit]:
        """Same ranking as search() for a query vector computed elsewhere."""
        request = VectorSearchRequest(
            limit=limit,
            threshold=threshold,
            document_id=document_id,
            unique_documents=unique_documents,
        )
        query_vector = np.asarray(vector, dtype=np.float64).reshape(-1)
        return await self._rank(query_vector, "<vector>", request.limit, request.threshold,
                                request.document_id, request.unique_documents)

    async def _rank(self, query_vector: np.ndarray, query_label: str, limit: int, threshold: float,
                    document_id: Optional[str], unique_documents: bool) -> List[SearchHit]:
        start_time = time.time()

        candidates = await self.store.all()
        if document_id is not None:
            candidates = [r for r in candidates if r.metadata.document_id == document_id]

        hits = []
        skipped = []
        for record in candidates:
            try:
                score = cosine_similarity(query_vector, record.vector)
            except DimensionMismatchError as e:
                skipped.append(f"{record.id}: {e}")
                continue

            if score < threshold:
                continue
            hits.append(SearchHit(record=record, score=score))

        if skipped:
            logger.log_skipped("search.candidates", skipped)

        ranked = rank_hits(hits, limit, unique_documents)

        details: Dict[str, object] = {"threshold": threshold, "limit": limit}
        if document_id is not None:
            details["document_id"] = document_id
        logger.log_search(
            query_label,
            candidates=len(candidates),
            returned=len(ranked),
            duration_ms=(time.time() - start_time) * 1000,
            details=details,
        )
        return ranked
