"""
Ingestion — text extraction, chunking, and embedding into the vector store.

This module turns an uploaded file (PDF, XML, plain text, Markdown) into
tagged chunks and drives them through the embedding provider into
storage, reporting progress as it goes.
"""

from docrag.ingestion.chunker import Chunker, split_into_chunks
from docrag.ingestion.embedder import (
    EmbeddingProvider,
    HuggingFaceEmbeddingProvider,
    OllamaEmbeddingProvider,
    RetryingEmbeddingProvider,
    build_embedding_provider,
)
from docrag.ingestion.loader import extract_text, guess_mime_type
from docrag.ingestion.pipeline import ChunkTally, EmbeddingPipeline, should_abort

__all__ = [
    "ChunkTally",
    "Chunker",
    "EmbeddingPipeline",
    "EmbeddingProvider",
    "HuggingFaceEmbeddingProvider",
    "OllamaEmbeddingProvider",
    "RetryingEmbeddingProvider",
    "build_embedding_provider",
    "extract_text",
    "guess_mime_type",
    "should_abort",
    "split_into_chunks",
]
