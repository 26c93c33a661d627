"""Semantic retriever — brute-force cosine similarity over every stored chunk.

Usage::

    from docrag.retrieval.retriever import SemanticRetriever

    retriever = SemanticRetriever(store, embedder)
    results = await retriever.search("What does the contract say about fees?", limit=5)
    for r in results:
        print(r.short_ref(), f"{r.similarity:.3f}", r.content[:80])
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import numpy as np

from docrag.exceptions import SearchError
from docrag.ingestion.embedder import EmbeddingProvider
from docrag.retrieval.base import VectorStoreBase
from docrag.retrieval.models import EmbeddingRecord, ScoredChunk

logger = logging.getLogger(__name__)


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    Returns ``0.0`` when either vector has zero magnitude instead of NaN.

    Raises
    ------
    ValueError
        If the dimensions differ.
    """
    a = np.asarray(vec_a, dtype=float)
    b = np.asarray(vec_b, dtype=float)
    if a.shape != b.shape:
        raise ValueError(f"Vector dimensions must match: {a.size} != {b.size}")

    magnitude = float(np.linalg.norm(a)) * float(np.linalg.norm(b))
    if magnitude == 0 or not math.isfinite(magnitude):
        return 0.0
    # Clamp float rounding just outside [-1, 1]
    return max(-1.0, min(1.0, float(np.dot(a, b)) / magnitude))


def rank_records(
    query_vector: Sequence[float],
    records: Sequence[EmbeddingRecord],
    limit: int,
) -> list[ScoredChunk]:
    """Score every record against *query_vector* and keep the best *limit*.

    Sorting is stable, so equal scores keep their scan order.
    """
    scored = [
        ScoredChunk(
            document_id=record.document_id,
            chunk_index=record.chunk_index,
            content=record.content,
            file_name=record.file_name,
            file_type=record.file_type,
            total_chunks=record.total_chunks,
            similarity=cosine_similarity(query_vector, record.vector),
        )
        for record in records
    ]
    scored.sort(key=lambda hit: hit.similarity, reverse=True)
    return scored[: max(limit, 0)]


class SemanticRetriever:
    """Query-time search over a :class:`VectorStoreBase`.

    Parameters
    ----------
    store:
        Vector store to scan.
    embedder:
        Provider used to embed the query; must be the same model used at
        ingestion time.
    default_limit:
        Number of results returned when :meth:`search` gets no limit.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingProvider,
        *,
        default_limit: int = 10,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self.default_limit = default_limit

    async def search(self, query: str, limit: int | None = None) -> list[ScoredChunk]:
        """Return the chunks most similar to *query*, best first.

        An empty store and a failed search both yield ``[]``; failures are
        logged rather than raised.
        """
        limit = self.default_limit if limit is None else limit
        logger.info("Searching for similar chunks to query: %r", query[:100])
        try:
            results = await self._search(query, limit)
        except SearchError:
            logger.exception("Search error")
            return []

        logger.info(
            "Returning top %d similar chunks: %s",
            len(results),
            [(r.file_name, f"{r.similarity:.3f}") for r in results],
        )
        return results

    async def _search(self, query: str, limit: int) -> list[ScoredChunk]:
        try:
            query_vector = await self._embedder.embed(query)
            records = self._store.scan_all()
            logger.debug("Found %d chunks in store", len(records))
            return rank_records(query_vector, records, limit)
        except Exception as exc:
            raise SearchError(f"Search failed: {exc}") from exc
