"""Document service — wires extraction, chunking, the embedding pipeline,
status tracking, and search behind one object.

All collaborators are injected so callers (CLI, HTTP app, tests) choose
the store and the embedding provider::

    store = SQLiteStore(settings.database_path)
    service = DocumentService(store, build_embedding_provider(settings))
    doc = await service.ingest_file("handbook.pdf")
    await service.wait_for_pending()
    hits = await service.search("vacation policy")
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Iterable
from pathlib import Path

from docrag.config import Settings
from docrag.config import settings as default_settings
from docrag.exceptions import (
    DocumentNotFoundError,
    InputTooLargeError,
    PipelineAbortedError,
    UnsupportedInputError,
)
from docrag.ingestion.chunker import Chunker
from docrag.ingestion.embedder import EmbeddingProvider
from docrag.ingestion.loader import extract_text, guess_mime_type, is_supported
from docrag.ingestion.pipeline import EmbeddingPipeline
from docrag.retrieval.models import Chunk, Document, DocumentStatus, ScoredChunk
from docrag.retrieval.retriever import SemanticRetriever
from docrag.retrieval.sqlite_store import SQLiteStore
from docrag.tracking.stream import StatusSubscription
from docrag.tracking.tracker import DocumentStatusTracker

logger = logging.getLogger(__name__)


class DocumentService:
    """High-level entry point for ingestion, deletion, status, and search.

    Parameters
    ----------
    store:
        Combined document and vector store.
    embedder:
        Provider shared by ingestion and query-time embedding.
    settings:
        Chunking, threshold, and limit configuration.
    """

    def __init__(
        self,
        store: SQLiteStore,
        embedder: EmbeddingProvider,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.store = store
        self.embedder = embedder
        self.tracker = DocumentStatusTracker(store)
        self.chunker = Chunker(self.settings.chunk_size, self.settings.chunk_overlap)
        self.pipeline = EmbeddingPipeline(
            store,
            embedder,
            self.tracker,
            failure_threshold=self.settings.failure_threshold,
        )
        self.retriever = SemanticRetriever(store, embedder, default_limit=self.settings.search_limit)
        self._pending: set[asyncio.Task[None]] = set()

    # ── ingestion ─────────────────────────────────────────────────────

    async def ingest_file(
        self,
        path: str | Path,
        mime_type: str | None = None,
        name: str | None = None,
    ) -> Document:
        """Extract and chunk *path*, record the document, and start embedding.

        Returns as soon as the document row exists; embedding continues in a
        background task.

        Raises
        ------
        UnsupportedInputError
            For unknown types or files over ``max_file_size``; nothing is
            stored in that case.
        """
        path = Path(path)
        name = name or path.name
        mime_type = mime_type or guess_mime_type(path)
        if not is_supported(mime_type):
            raise UnsupportedInputError(mime_type, name)
        size = path.stat().st_size
        if size > self.settings.max_file_size:
            raise InputTooLargeError(name, size, self.settings.max_file_size)

        text = await asyncio.to_thread(extract_text, path, mime_type)
        chunks = self.chunker.chunk_document(text, name, mime_type)

        document = self.store.create_document(
            Document(
                id=str(uuid.uuid4()),
                name=name,
                type=mime_type,
                size=size,
                path=str(path),
                chunk_count=len(chunks),
                status=DocumentStatus.PROCESSING,
                progress=0,
            )
        )
        logger.info("Saved document %s (%s, %d chunks)", document.id, name, len(chunks))
        self.schedule(document.id, chunks)
        return document

    def schedule(self, document_id: str, chunks: list[Chunk]) -> asyncio.Task[None]:
        """Run the pipeline for *document_id* in the background."""
        task = asyncio.get_running_loop().create_task(
            self._process_in_background(document_id, chunks),
            name=f"embed-{document_id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _process_in_background(self, document_id: str, chunks: list[Chunk]) -> None:
        try:
            await self.pipeline.run(document_id, chunks)
        except PipelineAbortedError as exc:
            logger.error("Failed to process embeddings for document %s: %s", document_id, exc.detail)
        except Exception:
            logger.exception("Failed to process embeddings for document %s", document_id)

    async def wait_for_pending(self) -> None:
        """Wait until every scheduled pipeline run has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # ── documents ─────────────────────────────────────────────────────

    def list_documents(self) -> list[Document]:
        return self.tracker.list_documents()

    def get_document(self, document_id: str) -> Document:
        document = self.tracker.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    def delete_document(self, document_id: str) -> None:
        """Remove the document and all of its embeddings in one transaction.

        A pipeline still running for the document is not stopped; records it
        writes afterwards are not cleaned up.
        """
        if not self.store.delete_document(document_id):
            raise DocumentNotFoundError(document_id)

    # ── retrieval and status ──────────────────────────────────────────

    async def search(self, query: str, limit: int | None = None) -> list[ScoredChunk]:
        return await self.retriever.search(query, limit)

    def subscribe(
        self,
        document_ids: Iterable[str] | None = None,
        interval: float | None = None,
    ) -> StatusSubscription:
        """Status snapshots every *interval* seconds until the documents settle."""
        return StatusSubscription(
            self.tracker,
            document_ids,
            interval=interval or self.settings.progress_stream_interval,
        )
