"""Document status tracker — forward-only state machine with progress.

Allowed moves::

    processing ──► completed   (progress forced to 100)
        │
        └──────► failed        (progress frozen at its last value)

Terminal states are final and ``progress`` never decreases while a
document is ``processing``.
"""

from __future__ import annotations

import logging

from docrag.exceptions import StatusTransitionError
from docrag.retrieval.base import DocumentStoreBase
from docrag.retrieval.models import Document, DocumentStatus

logger = logging.getLogger(__name__)


def percent(done: int, total: int) -> int:
    """Integer percentage of *done* over *total*, rounding halves up."""
    if total <= 0:
        return 100
    return int(100 * done / total + 0.5)


class DocumentStatusTracker:
    """Validates and records status/progress changes for documents.

    Parameters
    ----------
    store:
        Document store holding the status rows.
    """

    def __init__(self, store: DocumentStoreBase) -> None:
        self._store = store

    def get_by_id(self, document_id: str) -> Document | None:
        return self._store.get_document(document_id)

    def list_documents(self) -> list[Document]:
        return self._store.list_documents()

    def update_progress(self, document_id: str, progress: int) -> None:
        """Record intermediate *progress* for a ``processing`` document."""
        current = self._require_processing(document_id)
        if current is None:
            return
        if not 0 <= progress <= 100:
            raise StatusTransitionError(f"Progress out of range: {progress}")
        if progress < current.progress:
            raise StatusTransitionError(
                f"Progress of {document_id} cannot go from {current.progress} to {progress}"
            )
        self._store.update_document_progress(document_id, progress)

    def mark_completed(self, document_id: str) -> None:
        """Move to ``completed`` and force progress to 100."""
        if self._require_processing(document_id) is None:
            return
        self._store.update_document_progress(document_id, 100, DocumentStatus.COMPLETED)
        logger.info("Document %s completed", document_id)

    def mark_failed(self, document_id: str) -> None:
        """Move to ``failed`` keeping the last recorded progress."""
        current = self._require_processing(document_id)
        if current is None:
            return
        self._store.update_document_progress(document_id, current.progress, DocumentStatus.FAILED)
        logger.error("Document %s failed at %d%%", document_id, current.progress)

    def _require_processing(self, document_id: str) -> Document | None:
        """Return the current row, or ``None`` when it has been deleted.

        Raises
        ------
        StatusTransitionError
            If the document already reached a terminal state.
        """
        current = self._store.get_document(document_id)
        if current is None:
            # Deleted while its pipeline was still running
            logger.warning("Status update for unknown document %s ignored", document_id)
            return None
        if current.status.is_terminal:
            raise StatusTransitionError(
                f"Document {document_id} is already {current.status.value}"
            )
        return current
