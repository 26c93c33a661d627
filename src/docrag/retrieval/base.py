"""Abstract storage interfaces for documents and embedding records.

The pipeline, tracker, and retriever depend only on these classes, so a
test double or another engine can replace :class:`SQLiteStore` without
touching the rest of the stack.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from docrag.retrieval.models import Document, DocumentStatus, EmbeddingRecord


class VectorStoreBase(ABC):
    """Persists chunk vectors keyed by document."""

    @abstractmethod
    def put(self, record: EmbeddingRecord) -> None:
        """Persist one record. Visible to :meth:`scan_all` once this returns."""
        ...

    @abstractmethod
    def scan_all(self) -> Sequence[EmbeddingRecord]:
        """Return every stored record, in no particular order."""
        ...

    @abstractmethod
    def delete_by_document(self, document_id: str) -> int:
        """Remove every record of *document_id* and return how many were removed."""
        ...

    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        return True


class DocumentStoreBase(ABC):
    """Persists document metadata and processing state."""

    @abstractmethod
    def create_document(self, document: Document) -> Document:
        ...

    @abstractmethod
    def get_document(self, document_id: str) -> Document | None:
        ...

    @abstractmethod
    def list_documents(self) -> list[Document]:
        """All documents, newest first."""
        ...

    @abstractmethod
    def update_document_progress(
        self,
        document_id: str,
        progress: int,
        status: DocumentStatus | None = None,
    ) -> bool:
        """Set *progress* (and *status* when given) on a ``processing`` document.

        Returns ``False`` when no ``processing`` row matched.
        """
        ...

    @abstractmethod
    def delete_document(self, document_id: str) -> bool:
        """Delete the document and all of its embedding records together."""
        ...
