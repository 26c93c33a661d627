"""Sentence-based text chunking with word overlap."""

from __future__ import annotations

import logging
import re

from docrag.retrieval.models import Chunk

logger = logging.getLogger(__name__)

_SENTENCE_BOUNDARY = re.compile(r"[.!?]+")

SOURCE_TAG = "[Source: {file_name}]\n\n"


def split_into_chunks(text: str, chunk_size: int = 1000, overlap: int = 200) -> list[str]:
    """Split *text* into overlapping chunks along sentence boundaries.

    Sentences are accumulated greedily until the next one would push the
    running size over *chunk_size*; the closed chunk then seeds the next
    one with its trailing ``overlap // 10`` words.

    Parameters
    ----------
    text:
        Raw extracted document text.
    chunk_size:
        Target chunk size in characters. A single sentence longer than
        this becomes its own oversized chunk.
    overlap:
        Overlap budget. Note the unit: ``overlap // 10`` *words* are
        carried over, not characters. When that count is zero the whole
        closed chunk is carried over.

    Returns
    -------
    list[str]
        Chunk texts in document order. Empty input yields an empty list.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0:
        raise ValueError("overlap must be non-negative")

    sentences = [s for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]

    chunks: list[str] = []
    current = ""
    current_size = 0
    overlap_words = overlap // 10

    for sentence in sentences:
        if current_size + len(sentence) > chunk_size and current:
            chunks.append(current.strip())

            # words[-0:] is every word
            words = current.split(" ")
            current = " ".join(words[-overlap_words:]) + " " + sentence
            current_size = len(current)
        else:
            current += sentence + ". "
            current_size += len(sentence)

    if current.strip():
        chunks.append(current.strip())

    return chunks


class Chunker:
    """Turns extracted document text into tagged :class:`Chunk` objects.

    Example::

        chunker = Chunker(chunk_size=1000, overlap=200)
        chunks = chunker.chunk_document(text, "report.pdf", "application/pdf")
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if overlap < 0:
            raise ValueError("overlap must be non-negative")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk_document(self, text: str, file_name: str, file_type: str) -> list[Chunk]:
        """Split *text* and tag each piece with its source and position."""
        pieces = split_into_chunks(text, self.chunk_size, self.overlap)
        tag = SOURCE_TAG.format(file_name=file_name)
        total = len(pieces)

        chunks = [
            Chunk(
                content=f"{tag}{piece}",
                file_name=file_name,
                file_type=file_type,
                chunk_index=index,
                total_chunks=total,
            )
            for index, piece in enumerate(pieces)
        ]
        logger.debug("Created %d chunks from %s", total, file_name)
        return chunks
