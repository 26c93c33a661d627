"""Unit tests for the serving layer."""

from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from docrag.config import Settings
from docrag.retrieval.models import Chunk, Document, DocumentStatus, EmbeddingRecord
from docrag.retrieval.sqlite_store import SQLiteStore
from docrag.service import DocumentService
from docrag.serving.app import create_app


@pytest.fixture()
def service(store: SQLiteStore, make_embedder: Any) -> DocumentService:
    cfg = Settings(progress_stream_interval=0.01, embedding_provider="ollama")
    return DocumentService(store, make_embedder(default=[1.0, 0.0]), cfg)


@pytest.fixture()
def client(service: DocumentService) -> Iterator[TestClient]:
    with TestClient(create_app(service)) as c:
        yield c


def _seed(store: SQLiteStore, document_id: str, status: DocumentStatus, vector: list[float]) -> None:
    store.create_document(Document(id=document_id, name=f"{document_id}.txt", type="text/plain", chunk_count=1))
    chunk = Chunk(
        content=f"content of {document_id}",
        file_name=f"{document_id}.txt",
        file_type="text/plain",
        chunk_index=0,
        total_chunks=1,
    )
    store.put(EmbeddingRecord.from_chunk(document_id, chunk, vector))
    if status is not DocumentStatus.PROCESSING:
        store.update_document_progress(document_id, 100, status)


def test_health_endpoint(client: TestClient) -> None:
    """GET /health should return 200 with status ok."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_list_documents(client: TestClient, store: SQLiteStore) -> None:
    _seed(store, "a", DocumentStatus.COMPLETED, [1.0, 0.0])
    _seed(store, "b", DocumentStatus.PROCESSING, [0.0, 1.0])

    body = client.get("/documents").json()
    assert body["success"] is True
    assert [d["id"] for d in body["documents"]] == ["b", "a"]
    assert body["documents"][1]["status"] == "completed"


def test_progress_by_id(client: TestClient, store: SQLiteStore) -> None:
    _seed(store, "a", DocumentStatus.PROCESSING, [1.0, 0.0])
    store.update_document_progress("a", 40)

    assert client.get("/progress/a").json() == {"id": "a", "status": "processing", "progress": 40}
    assert client.get("/progress/missing").status_code == 404


def test_delete_document(client: TestClient, store: SQLiteStore) -> None:
    _seed(store, "a", DocumentStatus.COMPLETED, [1.0, 0.0])

    assert client.delete("/documents/a").json() == {"success": True}
    assert store.get_document("a") is None
    assert store.scan_all() == []
    assert client.delete("/documents/a").status_code == 404


def test_search(client: TestClient, store: SQLiteStore) -> None:
    _seed(store, "a", DocumentStatus.COMPLETED, [1.0, 0.0])
    _seed(store, "b", DocumentStatus.COMPLETED, [0.0, 1.0])

    response = client.post("/search", json={"query": "anything", "limit": 1})
    assert response.status_code == 200
    results = response.json()["results"]
    assert len(results) == 1
    assert results[0]["document_id"] == "a"
    assert results[0]["similarity"] == pytest.approx(1.0)


def test_search_rejects_bad_limit(client: TestClient) -> None:
    assert client.post("/search", json={"query": "q", "limit": 0}).status_code == 422


def test_progress_stream_closes_when_settled(client: TestClient, store: SQLiteStore) -> None:
    _seed(store, "a", DocumentStatus.COMPLETED, [1.0, 0.0])

    with client.stream("GET", "/progress/stream") as response:
        assert response.headers["content-type"].startswith("text/event-stream")
        frames = [line for line in response.iter_lines() if line.startswith("data: ")]

    events = [json.loads(frame[len("data: ") :]) for frame in frames]
    assert [e["type"] for e in events] == ["initial", "update"]
    assert events[-1]["documents"][0]["status"] == "completed"


def test_embedding_status(client: TestClient) -> None:
    assert client.get("/embedding/status").json() == {"connected": True, "provider": "ollama"}
