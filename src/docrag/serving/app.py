"""FastAPI application exposing document status, deletion, and search."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from docrag.exceptions import DocumentNotFoundError
from docrag.retrieval.models import Document, ScoredChunk
from docrag.service import DocumentService
from docrag.tracking.stream import to_sse


# ── Request / Response schemas ────────────────────────────────────────
class SearchRequest(BaseModel):
    """Free-text query against the stored chunks."""

    query: str
    limit: int = Field(default=10, ge=1, le=100)


class SearchResponse(BaseModel):
    results: list[ScoredChunk] = []


class DocumentsResponse(BaseModel):
    success: bool = True
    documents: list[Document] = []


class ProgressResponse(BaseModel):
    id: str
    status: str
    progress: int


def _build_default_service() -> DocumentService:
    from docrag.config import settings
    from docrag.ingestion.embedder import build_embedding_provider
    from docrag.retrieval.sqlite_store import SQLiteStore

    return DocumentService(SQLiteStore(settings.database_path), build_embedding_provider(settings), settings)


def create_app(service: DocumentService | None = None) -> FastAPI:
    """Build the app around *service* (created from settings on startup if omitted)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "service", None) is None:
            app.state.service = _build_default_service()
        yield
        await app.state.service.wait_for_pending()

    app = FastAPI(
        title="docrag API",
        version="0.1.0",
        description="Document status, deletion, and similarity search.",
        lifespan=lifespan,
    )
    app.state.service = service

    def get_service(request: Request) -> DocumentService:
        svc = request.app.state.service
        if svc is None:
            raise HTTPException(status_code=503, detail="Service not initialised")
        return svc

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    @app.get("/documents", response_model=DocumentsResponse)
    async def list_documents(request: Request) -> DocumentsResponse:
        return DocumentsResponse(documents=get_service(request).list_documents())

    @app.delete("/documents/{document_id}")
    async def delete_document(document_id: str, request: Request) -> dict[str, bool]:
        try:
            get_service(request).delete_document(document_id)
        except DocumentNotFoundError as exc:
            raise HTTPException(status_code=404, detail=exc.message) from exc
        return {"success": True}

    @app.get("/progress/stream")
    async def progress_stream(
        request: Request,
        ids: list[str] | None = Query(default=None),
    ) -> StreamingResponse:
        """Server-sent events with status snapshots until every document settles."""
        subscription = get_service(request).subscribe(ids)

        async def events() -> AsyncIterator[str]:
            async with subscription:
                async for event in subscription:
                    yield to_sse(event)

        return StreamingResponse(
            events(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.get("/progress/{document_id}", response_model=ProgressResponse)
    async def progress(document_id: str, request: Request) -> ProgressResponse:
        try:
            document = get_service(request).get_document(document_id)
        except DocumentNotFoundError as exc:
            raise HTTPException(status_code=404, detail=exc.message) from exc
        return ProgressResponse(id=document.id, status=document.status.value, progress=document.progress)

    @app.post("/search", response_model=SearchResponse)
    async def search(body: SearchRequest, request: Request) -> SearchResponse:
        results = await get_service(request).search(body.query, body.limit)
        return SearchResponse(results=results)

    @app.get("/embedding/status")
    def embedding_status(request: Request) -> dict[str, object]:
        svc = get_service(request)
        return {
            "connected": svc.embedder.health_check(),
            "provider": svc.settings.embedding_provider,
        }

    return app


app = create_app()
