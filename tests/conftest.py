"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest

from docrag.ingestion.embedder import EmbeddingProvider
from docrag.retrieval.models import Document
from docrag.retrieval.sqlite_store import SQLiteStore


# ── Test doubles ────────────────────────────────────────────────────────


class FakeEmbedder(EmbeddingProvider):
    """Deterministic embedder with scripted vectors and failures.

    ``vectors`` maps exact texts to vectors; anything else gets
    ``default``.  ``fail_when`` receives the 1-based call number and the
    text and returns an exception to raise, or ``None``.
    """

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        default: list[float] | None = None,
        fail_when: Callable[[int, str], Exception | None] | None = None,
    ) -> None:
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0, 0.0]
        self.fail_when = fail_when
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_when is not None:
            exc = self.fail_when(len(self.calls), text)
            if exc is not None:
                raise exc
        return list(self.vectors.get(text, self.default))


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def store() -> Iterator[SQLiteStore]:
    s = SQLiteStore(":memory:")
    yield s
    s.close()


@pytest.fixture()
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture()
def make_embedder() -> type[FakeEmbedder]:
    """The FakeEmbedder class, for tests that script vectors or failures."""
    return FakeEmbedder


@pytest.fixture()
def make_document(store: SQLiteStore) -> Callable[..., Document]:
    """Insert a ``processing`` document row and return it."""

    def _make(document_id: str = "doc-1", name: str = "report.txt", chunk_count: int = 0) -> Document:
        return store.create_document(
            Document(id=document_id, name=name, type="text/plain", chunk_count=chunk_count)
        )

    return _make
