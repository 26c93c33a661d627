"""Embedding pipeline — chunk → embedding → vector store, with progress.

One :meth:`EmbeddingPipeline.run` call processes one document's chunks
strictly in order.  A chunk whose embedding (or write) fails is skipped;
the run is aborted and the document marked ``failed`` only when the
cumulative error rate crosses the failure threshold.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from docrag.exceptions import EmbeddingError, PipelineAbortedError, StorageError
from docrag.ingestion.embedder import EmbeddingProvider
from docrag.retrieval.base import VectorStoreBase
from docrag.retrieval.models import Chunk, EmbeddingRecord
from docrag.tracking.tracker import DocumentStatusTracker, percent

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 0.5


@dataclass
class ChunkTally:
    """Running counts for one pipeline run."""

    total: int
    attempted: int = 0
    succeeded: int = 0

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    @property
    def error_rate(self) -> float:
        return self.failed / self.attempted if self.attempted else 0.0

    @property
    def progress(self) -> int:
        return percent(self.succeeded, self.total)


def should_abort(attempted: int, succeeded: int, threshold: float = DEFAULT_FAILURE_THRESHOLD) -> bool:
    """``True`` when more than *threshold* of the attempted chunks failed."""
    if attempted <= 0:
        return False
    return (attempted - succeeded) / attempted > threshold


class EmbeddingPipeline:
    """Drives chunk embedding for a document and records its status.

    Parameters
    ----------
    store:
        Destination for :class:`EmbeddingRecord` rows.
    embedder:
        Provider used per chunk, normally a
        :class:`~docrag.ingestion.embedder.RetryingEmbeddingProvider`.
    tracker:
        Status tracker updated after every successful chunk.
    failure_threshold:
        Error rate above which the run is aborted.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingProvider,
        tracker: DocumentStatusTracker,
        *,
        failure_threshold: float = DEFAULT_FAILURE_THRESHOLD,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._tracker = tracker
        self.failure_threshold = failure_threshold

    async def run(self, document_id: str, chunks: Sequence[Chunk]) -> ChunkTally:
        """Embed and store every chunk of *document_id*.

        Returns
        -------
        ChunkTally
            Final counts for the run.

        Raises
        ------
        PipelineAbortedError
            If the error rate crossed the threshold; the document has
            already been marked ``failed``.
        Exception
            Any error outside the per-chunk failure policy is re-raised
            after the document has been marked ``failed``.
        """
        tally = ChunkTally(total=len(chunks))
        logger.info("Starting embedding creation for document %s with %d chunks", document_id, tally.total)

        try:
            await self._process_chunks(document_id, chunks, tally)
        except PipelineAbortedError:
            raise
        except Exception:
            logger.exception("Unexpected error while embedding document %s", document_id)
            self._tracker.mark_failed(document_id)
            raise

        self._tracker.mark_completed(document_id)
        if tally.failed:
            logger.warning(
                "Document %s completed with %d/%d chunks skipped",
                document_id,
                tally.failed,
                tally.total,
            )
        else:
            logger.info("Successfully created embeddings for document %s", document_id)
        return tally

    async def _process_chunks(self, document_id: str, chunks: Sequence[Chunk], tally: ChunkTally) -> None:
        for chunk in chunks:
            tally.attempted += 1
            try:
                await self._embed_chunk(document_id, chunk)
            except (EmbeddingError, StorageError) as exc:
                logger.warning(
                    "Failed to create embedding for chunk %d of %s: %s",
                    chunk.chunk_index,
                    document_id,
                    exc,
                )
                if should_abort(tally.attempted, tally.succeeded, self.failure_threshold):
                    logger.error(
                        "Too many embedding failures (%d%%), marking document %s as failed",
                        round(tally.error_rate * 100),
                        document_id,
                    )
                    self._tracker.mark_failed(document_id)
                    raise PipelineAbortedError(document_id, tally.attempted, tally.succeeded) from exc
                continue

            tally.succeeded += 1
            self._tracker.update_progress(document_id, tally.progress)
            logger.debug("Progress: %d%% (%d/%d)", tally.progress, tally.succeeded, tally.total)

    async def _embed_chunk(self, document_id: str, chunk: Chunk) -> None:
        vector = await self._embedder.embed(chunk.content)
        self._store.put(EmbeddingRecord.from_chunk(document_id, chunk, vector))
