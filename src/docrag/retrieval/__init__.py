"""
Retrieval — storage interfaces, the SQLite backend, and similarity search.

The pipeline and the retriever talk to storage only through the abstract
bases, so the agent-facing layers never need to know which engine is
backing them.

Public surface
--------------
- :class:`SemanticRetriever` — query → ranked :class:`ScoredChunk` list.
- :class:`VectorStoreBase`, :class:`DocumentStoreBase` — abstract backends.
- :class:`SQLiteStore` — default backend holding both tables.
- :class:`Document`, :class:`Chunk`, :class:`EmbeddingRecord` — data models.
- :func:`cosine_similarity` — scoring function used for ranking.
"""

from docrag.retrieval.base import DocumentStoreBase, VectorStoreBase
from docrag.retrieval.models import Chunk, Document, DocumentStatus, EmbeddingRecord, ScoredChunk
from docrag.retrieval.retriever import SemanticRetriever, cosine_similarity, rank_records
from docrag.retrieval.sqlite_store import SQLiteStore

__all__ = [
    "Chunk",
    "Document",
    "DocumentStatus",
    "DocumentStoreBase",
    "EmbeddingRecord",
    "SQLiteStore",
    "ScoredChunk",
    "SemanticRetriever",
    "VectorStoreBase",
    "cosine_similarity",
    "rank_records",
]
