"""
Cosine-similarity ranking over stored chunk embeddings.
"""

import logging
from typing import List, Sequence

import numpy as np

from ..models import RetrievalResult, StoredChunk

logger = logging.getLogger(__name__)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """
    Cosine similarity `dot(a, b) / (|a| |b|)`.

    Returns 0.0 when either vector has zero length.

    Raises:
        ValueError: If the vectors differ in shape
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Cannot compare vectors of shape {a.shape} and {b.shape}")

    denominator = np.linalg.norm(a) * np.linalg.norm(b)
    if denominator == 0:
        return 0.0
    return float(np.dot(a, b) / denominator)


class Retriever:
    """
    Ranks stored chunks against a query embedding.

    Results are ordered by descending similarity; equal scores keep the
    order in which the chunks were stored.
    """

    def score(self, query_vector: np.ndarray, entries: Sequence[StoredChunk]) -> List[float]:
        """Score every entry against the query vector."""
        return [cosine_similarity(query_vector, entry.embedding) for entry in entries]

    def rank(self, query_vector: np.ndarray, entries: Sequence[StoredChunk], k: int) -> List[RetrievalResult]:
        """
        Return the top `min(k, len(entries))` entries for the query.

        Args:
            query_vector: Embedding of the query
            entries: Stored chunks in insertion order
            k: Number of results wanted

        Returns:
            Ranked retrieval results, best first
        """
        if k <= 0 or not entries:
            return []

        scores = self.score(query_vector, entries)
        # sorted() is stable, so ties stay in insertion order
        order = sorted(range(len(entries)), key=lambda i: scores[i], reverse=True)

        results = [
            RetrievalResult(chunk=entries[i].chunk, similarity_score=scores[i], rank=rank)
            for rank, i in enumerate(order[:k], 1)
        ]

        if results:
            logger.debug(
                f"Ranked {len(entries)} chunks, top score {results[0].similarity_score:.4f}"
            )
        return results
