"""
Exception hierarchy shared by ingestion, storage, and retrieval.
"""

from __future__ import annotations


class DocRagError(Exception):
    """Base exception for all docrag errors."""

    def __init__(self, message: str, detail: str | None = None) -> None:
        self.message = message
        self.detail = detail
        super().__init__(message)


class UnsupportedInputError(DocRagError):
    """Raised when a document cannot be extracted. Aborts before chunking."""

    def __init__(self, mime_type: str, file_name: str = "", message: str | None = None) -> None:
        self.mime_type = mime_type
        self.file_name = file_name
        super().__init__(
            message=message or f"Unsupported file type: {mime_type}",
            detail=f"File '{file_name}' cannot be processed." if file_name else None,
        )


class InputTooLargeError(UnsupportedInputError):
    """Raised when a file exceeds the configured size limit."""

    def __init__(self, file_name: str, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            mime_type="",
            file_name=file_name,
            message=f"File '{file_name}' is {size} bytes, limit is {limit}",
        )


class EmbeddingError(DocRagError):
    """Base class for embedding-provider failures."""


class EmbeddingTransientError(EmbeddingError):
    """Retryable provider failure (rate limiting, network errors, 5xx)."""


class EmbeddingFatalError(EmbeddingError):
    """Non-retryable provider failure, or retries exhausted."""

    def __init__(self, message: str, attempts: int = 1, detail: str | None = None) -> None:
        self.attempts = attempts
        super().__init__(message=message, detail=detail)


class PipelineAbortedError(DocRagError):
    """Raised when the per-document error rate crosses the failure threshold."""

    def __init__(self, document_id: str, attempted: int, succeeded: int) -> None:
        self.document_id = document_id
        self.attempted = attempted
        self.succeeded = succeeded
        failed = attempted - succeeded
        super().__init__(
            message=f"Too many embedding failures for document {document_id}",
            detail=f"{failed}/{attempted} chunks failed",
        )


class SearchError(DocRagError):
    """Embedding or scan failure during a query. Logged, never propagated."""


class StorageError(DocRagError):
    """Raised when the underlying storage engine rejects an operation."""


class DocumentNotFoundError(DocRagError):
    """Raised when a document id does not exist."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(message=f"Document not found: {document_id}")


class StatusTransitionError(DocRagError):
    """Raised on an illegal status change or a progress regression."""
