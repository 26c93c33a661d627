"""Domain models for documents, chunks, stored embeddings, and search hits."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DocumentStatus(str, Enum):
    """Processing lifecycle of an uploaded document.

    ``processing`` is the only non-terminal state; a document moves to
    ``completed`` or ``failed`` exactly once and never leaves it.
    """

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not DocumentStatus.PROCESSING


class Chunk(BaseModel):
    """A bounded text segment with its position inside the source document.

    Attributes
    ----------
    content:
        Text handed to the embedding provider (source tag included).
    file_name:
        Human-readable name of the originating file.
    file_type:
        MIME type of the originating file.
    chunk_index:
        0-based position of the chunk within its document.
    total_chunks:
        Number of chunks produced for the document; identical across
        every chunk of one document.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    file_name: str
    file_type: str
    chunk_index: int = Field(ge=0)
    total_chunks: int = Field(ge=1)


class EmbeddingRecord(BaseModel):
    """One persisted chunk together with its embedding vector."""

    document_id: str
    chunk_index: int
    content: str
    vector: list[float]
    file_name: str
    file_type: str
    total_chunks: int

    @classmethod
    def from_chunk(cls, document_id: str, chunk: Chunk, vector: list[float]) -> EmbeddingRecord:
        return cls(
            document_id=document_id,
            chunk_index=chunk.chunk_index,
            content=chunk.content,
            vector=vector,
            file_name=chunk.file_name,
            file_type=chunk.file_type,
            total_chunks=chunk.total_chunks,
        )


class Document(BaseModel):
    """Metadata row for an uploaded document and its processing state."""

    id: str
    name: str
    type: str
    size: int = 0
    path: str = ""
    chunk_count: int = 0
    status: DocumentStatus = DocumentStatus.PROCESSING
    progress: int = Field(default=0, ge=0, le=100)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ScoredChunk(BaseModel):
    """A stored chunk ranked against a query."""

    document_id: str
    chunk_index: int
    content: str
    file_name: str
    file_type: str
    total_chunks: int
    similarity: float

    def short_ref(self) -> str:
        """Return a compact ``[file§chunk/total]`` reference string."""
        return f"[{self.file_name}§{self.chunk_index + 1}/{self.total_chunks}]"
