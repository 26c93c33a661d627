"""SQLite implementation of the document and vector stores.

Vectors are stored as little-endian float32 blobs.  Search is a full scan
(:meth:`SQLiteStore.scan_all`) scored in Python, so no index is kept.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import numpy as np

from docrag.exceptions import StorageError
from docrag.retrieval.base import DocumentStoreBase, VectorStoreBase
from docrag.retrieval.models import Document, DocumentStatus, EmbeddingRecord

logger = logging.getLogger(__name__)

VECTOR_DTYPE = np.dtype("<f4")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    size INTEGER NOT NULL,
    path TEXT NOT NULL,
    chunks INTEGER NOT NULL,
    status TEXT DEFAULT 'processing' CHECK (status IN ('processing', 'completed', 'failed')),
    progress INTEGER DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS embeddings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id TEXT NOT NULL,
    chunk_index INTEGER NOT NULL,
    content TEXT NOT NULL,
    embedding BLOB NOT NULL,
    file_name TEXT NOT NULL,
    file_type TEXT NOT NULL,
    total_chunks INTEGER NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (document_id) REFERENCES documents (id)
);

CREATE INDEX IF NOT EXISTS idx_embeddings_document_id ON embeddings(document_id);
CREATE INDEX IF NOT EXISTS idx_embeddings_file_name ON embeddings(file_name);
CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(status);
"""

_DOCUMENT_COLUMNS = "id, name, type, size, path, chunks, status, progress, created_at"


def encode_vector(vector: list[float]) -> bytes:
    """Pack *vector* as a little-endian float32 blob."""
    return np.asarray(vector, dtype=VECTOR_DTYPE).tobytes()


def decode_vector(blob: bytes) -> list[float]:
    """Inverse of :func:`encode_vector`."""
    return np.frombuffer(blob, dtype=VECTOR_DTYPE).astype(float).tolist()


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        name=row["name"],
        type=row["type"],
        size=row["size"],
        path=row["path"],
        chunk_count=row["chunks"],
        status=DocumentStatus(row["status"]),
        progress=row["progress"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class SQLiteStore(VectorStoreBase, DocumentStoreBase):
    """Documents table plus embeddings table in one SQLite database.

    Parameters
    ----------
    path:
        Database file, created together with its parent directory when
        missing.  ``":memory:"`` keeps everything in-process.
    """

    def __init__(self, path: str | Path = ":memory:") -> None:
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._transaction() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Opened SQLite store at %s", self.path)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Serialize access and commit (or roll back) as one unit."""
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as exc:
                raise StorageError(f"SQLite operation failed: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ── VectorStoreBase ───────────────────────────────────────────────

    def put(self, record: EmbeddingRecord) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO embeddings
                    (document_id, chunk_index, content, embedding, file_name, file_type, total_chunks)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.document_id,
                    record.chunk_index,
                    record.content,
                    encode_vector(record.vector),
                    record.file_name,
                    record.file_type,
                    record.total_chunks,
                ),
            )

    def scan_all(self) -> list[EmbeddingRecord]:
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT document_id, chunk_index, content, embedding, file_name, file_type, total_chunks
                FROM embeddings
                """
            ).fetchall()
        return [
            EmbeddingRecord(
                document_id=row["document_id"],
                chunk_index=row["chunk_index"],
                content=row["content"],
                vector=decode_vector(row["embedding"]),
                file_name=row["file_name"],
                file_type=row["file_type"],
                total_chunks=row["total_chunks"],
            )
            for row in rows
        ]

    def delete_by_document(self, document_id: str) -> int:
        with self._transaction() as conn:
            cur = conn.execute("DELETE FROM embeddings WHERE document_id = ?", (document_id,))
        return cur.rowcount

    def health_check(self) -> bool:
        try:
            with self._transaction() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except StorageError:
            logger.warning("SQLite health-check failed", exc_info=True)
            return False

    # ── DocumentStoreBase ─────────────────────────────────────────────

    def create_document(self, document: Document) -> Document:
        with self._transaction() as conn:
            conn.execute(
                f"INSERT INTO documents ({_DOCUMENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    document.id,
                    document.name,
                    document.type,
                    document.size,
                    document.path,
                    document.chunk_count,
                    document.status.value,
                    document.progress,
                    document.created_at.isoformat(),
                ),
            )
        return document

    def get_document(self, document_id: str) -> Document | None:
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?",
                (document_id,),
            ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self) -> list[Document]:
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        return [_row_to_document(row) for row in rows]

    def update_document_progress(
        self,
        document_id: str,
        progress: int,
        status: DocumentStatus | None = None,
    ) -> bool:
        with self._transaction() as conn:
            cur = conn.execute(
                """
                UPDATE documents
                SET progress = ?, status = COALESCE(?, status)
                WHERE id = ? AND status = 'processing'
                """,
                (progress, status.value if status else None, document_id),
            )
        return cur.rowcount > 0

    def delete_document(self, document_id: str) -> bool:
        with self._transaction() as conn:
            removed = conn.execute(
                "DELETE FROM embeddings WHERE document_id = ?", (document_id,)
            ).rowcount
            cur = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        if cur.rowcount:
            logger.info("Document %s and its %d embeddings deleted", document_id, removed)
        return cur.rowcount > 0
