"""Periodic status snapshots as a cancellable async subscription.

A :class:`StatusSubscription` owns one producer task that polls the
tracker on a fixed period and queues ``{"type": ..., "documents": [...]}``
events.  The producer closes the subscription once every tracked
document is terminal; a consumer calling :meth:`StatusSubscription.close`
only stops the producer, never the pipelines being observed.

Usage::

    async with StatusSubscription(tracker, interval=1.0) as events:
        async for event in events:
            print(event["type"], [d["progress"] for d in event["documents"]])
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Iterable
from typing import Any

from docrag.retrieval.models import Document
from docrag.tracking.tracker import DocumentStatusTracker

logger = logging.getLogger(__name__)

_CLOSED = object()


def snapshot_event(event_type: str, documents: list[Document]) -> dict[str, Any]:
    """Build one stream event from the current document rows."""
    return {
        "type": event_type,
        "documents": [doc.model_dump(mode="json") for doc in documents],
    }


def to_sse(event: dict[str, Any]) -> str:
    """Render *event* as a server-sent-events ``data:`` frame."""
    return f"data: {json.dumps(event)}\n\n"


class StatusSubscription:
    """Async iterator over periodic status snapshots.

    Parameters
    ----------
    tracker:
        Source of document rows.
    document_ids:
        Documents to observe.  ``None`` observes every document; the
        stream then ends once at least one exists and all are terminal.
        With explicit ids it ends once each id is terminal or gone.
    interval:
        Seconds between ``update`` snapshots.
    """

    def __init__(
        self,
        tracker: DocumentStatusTracker,
        document_ids: Iterable[str] | None = None,
        *,
        interval: float = 1.0,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._tracker = tracker
        self._ids = frozenset(document_ids) if document_ids is not None else None
        self.interval = interval
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    # ── lifecycle ─────────────────────────────────────────────────────

    def start(self) -> StatusSubscription:
        """Start the producer task (idempotent)."""
        if self._task is None and not self._closed:
            self._task = asyncio.get_running_loop().create_task(self._produce())
        return self

    async def close(self) -> None:
        """Detach from the stream. Observed pipelines keep running."""
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._queue.put_nowait(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> StatusSubscription:
        return self.start()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── iteration ─────────────────────────────────────────────────────

    def __aiter__(self) -> StatusSubscription:
        self.start()
        return self

    async def __anext__(self) -> dict[str, Any]:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._closed = True
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            self._closed = True
            raise item
        return item

    # ── producer ──────────────────────────────────────────────────────

    def _snapshot(self) -> list[Document]:
        documents = self._tracker.list_documents()
        if self._ids is None:
            return documents
        return [doc for doc in documents if doc.id in self._ids]

    def _all_terminal(self, documents: list[Document]) -> bool:
        if self._ids is None and not documents:
            return False
        return all(doc.status.is_terminal for doc in documents)

    async def _produce(self) -> None:
        try:
            self._queue.put_nowait(snapshot_event("initial", self._snapshot()))
            while True:
                await asyncio.sleep(self.interval)
                documents = self._snapshot()
                self._queue.put_nowait(snapshot_event("update", documents))
                if self._all_terminal(documents):
                    logger.debug("All tracked documents terminal, closing status stream")
                    break
        except Exception as exc:
            logger.exception("Status stream error")
            self._queue.put_nowait(exc)
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
