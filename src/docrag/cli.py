"""
Command-line interface for ingesting, searching, and managing documents.

Usage:
    python -m docrag --help
    python -m docrag ingest handbook.pdf notes.md
    python -m docrag search "vacation policy" -k 5
    python -m docrag ask "How many vacation days do I get?"
    python -m docrag list
    python -m docrag delete 6f1c...
    python -m docrag watch
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

from docrag.config import Settings, settings
from docrag.exceptions import DocumentNotFoundError, UnsupportedInputError
from docrag.service import DocumentService


def setup_logging(level: str, verbose: bool = False) -> None:
    """Configure root logging for the CLI process."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_service(cfg: Settings) -> DocumentService:
    from docrag.ingestion.embedder import build_embedding_provider
    from docrag.retrieval.sqlite_store import SQLiteStore

    return DocumentService(SQLiteStore(cfg.database_path), build_embedding_provider(cfg), cfg)


# ── Commands ────────────────────────────────────────────────────────────


async def _ingest(service: DocumentService, paths: list[str]) -> int:
    ids: list[str] = []
    rc = 0
    for path in paths:
        try:
            document = await service.ingest_file(path)
        except (UnsupportedInputError, OSError) as exc:
            print(f"error: {path}: {exc}", file=sys.stderr)
            rc = 1
            continue
        print(f"queued  {document.id}  {document.name}  ({document.chunk_count} chunks)")
        ids.append(document.id)

    await service.wait_for_pending()

    for document_id in ids:
        document = service.get_document(document_id)
        print(f"{document.status.value:<10} {document.progress:>3}%  {document.id}  {document.name}")
        if document.status.value == "failed":
            rc = 1
    return rc


def cmd_ingest(service: DocumentService, args: argparse.Namespace) -> int:
    """Ingest files and wait for their embeddings."""
    return asyncio.run(_ingest(service, args.files))


def cmd_search(service: DocumentService, args: argparse.Namespace) -> int:
    """Print the chunks most similar to a query."""
    results = asyncio.run(service.search(args.query, args.limit))
    if not results:
        print("No results.")
        return 0
    for rank, hit in enumerate(results, start=1):
        snippet = " ".join(hit.content.split())[:120]
        print(f"{rank:>2}. {hit.similarity:.3f} {hit.short_ref()} {snippet}")
    return 0


def cmd_list(service: DocumentService, args: argparse.Namespace) -> int:
    """List documents, newest first."""
    documents = service.list_documents()
    if not documents:
        print("No documents.")
        return 0
    for doc in documents:
        print(
            f"{doc.id}  {doc.status.value:<10} {doc.progress:>3}%  "
            f"{doc.chunk_count:>5} chunks  {doc.name}"
        )
    return 0


def cmd_delete(service: DocumentService, args: argparse.Namespace) -> int:
    """Delete a document and its embeddings."""
    try:
        service.delete_document(args.document_id)
    except DocumentNotFoundError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    print(f"Deleted {args.document_id}")
    return 0


async def _ask(service: DocumentService, question: str, limit: int) -> None:
    from langchain_core.messages import HumanMessage

    from docrag.chat.llm import get_llm
    from docrag.chat.service import ChatService

    chat = ChatService(service.retriever, get_llm(settings=service.settings), context_limit=limit)
    async for piece in chat.stream_answer([HumanMessage(content=question)]):
        print(piece, end="", flush=True)
    print()


def cmd_ask(service: DocumentService, args: argparse.Namespace) -> int:
    """Answer a question from the stored documents, streaming the reply."""
    asyncio.run(_ask(service, args.question, args.limit))
    return 0


async def _watch(service: DocumentService, document_ids: list[str] | None, interval: float) -> None:
    async with service.subscribe(document_ids, interval=interval) as events:
        async for event in events:
            print(f"[{event['type']}]")
            for doc in event["documents"]:
                print(f"  {doc['status']:<10} {doc['progress']:>3}%  {doc['name']}")


def cmd_watch(service: DocumentService, args: argparse.Namespace) -> int:
    """Print status snapshots until the watched documents settle."""
    try:
        asyncio.run(_watch(service, args.ids or None, args.interval))
    except KeyboardInterrupt:
        pass
    return 0


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="docrag",
        description="Document ingestion and semantic search",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--db", help=f"SQLite database path (default: {settings.database_path})")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    ingest_parser = subparsers.add_parser("ingest", help="Ingest one or more files")
    ingest_parser.add_argument("files", nargs="+", help="PDF, XML, text or Markdown files")
    ingest_parser.set_defaults(func=cmd_ingest)

    search_parser = subparsers.add_parser("search", help="Search the stored chunks")
    search_parser.add_argument("query", help="Free-text query")
    search_parser.add_argument("-k", "--limit", type=int, default=settings.search_limit, help="Number of results")
    search_parser.set_defaults(func=cmd_search)

    ask_parser = subparsers.add_parser("ask", help="Ask a question about the stored documents")
    ask_parser.add_argument("question", help="Question to answer")
    ask_parser.add_argument(
        "-k",
        "--limit",
        type=int,
        default=settings.chat_context_limit,
        help="Number of chunks given to the model as context",
    )
    ask_parser.set_defaults(func=cmd_ask)

    list_parser = subparsers.add_parser("list", help="List documents and their status")
    list_parser.set_defaults(func=cmd_list)

    delete_parser = subparsers.add_parser("delete", help="Delete a document and its embeddings")
    delete_parser.add_argument("document_id", help="Document id")
    delete_parser.set_defaults(func=cmd_delete)

    watch_parser = subparsers.add_parser("watch", help="Stream document status updates")
    watch_parser.add_argument("ids", nargs="*", help="Document ids to watch (default: all)")
    watch_parser.add_argument(
        "--interval",
        type=float,
        default=settings.progress_stream_interval,
        help="Seconds between updates",
    )
    watch_parser.set_defaults(func=cmd_watch)

    args = parser.parse_args(argv)

    setup_logging(settings.log_level, args.verbose)

    if not args.command:
        parser.print_help()
        return 1

    cfg = settings.model_copy(update={"database_path": args.db}) if args.db else settings
    service = build_service(cfg)
    try:
        return args.func(service, args)
    finally:
        service.store.close()


if __name__ == "__main__":
    sys.exit(main())
