"""Unit tests for prompt assembly and the chat service."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import pytest
from langchain_core.messages import AIMessage, AIMessageChunk, HumanMessage, SystemMessage

from docrag.chat.prompts import (
    CONTEXT_HEADER,
    NO_CONTEXT,
    SYSTEM_PROMPT,
    build_chat_prompt,
    build_system_prompt,
    format_context,
    group_by_file,
)
from docrag.chat.service import ChatService, last_user_message
from docrag.retrieval.models import ScoredChunk


def _hit(file_name: str, chunk_index: int, similarity: float, total: int = 4) -> ScoredChunk:
    return ScoredChunk(
        document_id=f"id-{file_name}",
        chunk_index=chunk_index,
        content=f"{file_name} content {chunk_index}",
        file_name=file_name,
        file_type="text/plain",
        total_chunks=total,
        similarity=similarity,
    )


# ── Fakes ───────────────────────────────────────────────────────────────


class FakeRetriever:
    def __init__(self, results: list[ScoredChunk]) -> None:
        self.results = results
        self.queries: list[tuple[str, int | None]] = []

    async def search(self, query: str, limit: int | None = None) -> list[ScoredChunk]:
        self.queries.append((query, limit))
        return self.results[: limit or len(self.results)]


class FakeStreamingLLM:
    """Yields canned pieces and records the prompt it was given."""

    def __init__(self, pieces: list[str]) -> None:
        self.pieces = pieces
        self.prompts: list[list[Any]] = []

    async def astream(self, prompt: list[Any]) -> AsyncIterator[AIMessageChunk]:
        self.prompts.append(prompt)
        for piece in self.pieces:
            yield AIMessageChunk(content=piece)


# ── Prompt assembly ─────────────────────────────────────────────────────


class TestFormatContext:
    def test_groups_by_file_in_first_hit_order(self) -> None:
        hits = [_hit("b.pdf", 2, 0.9), _hit("a.txt", 0, 0.8), _hit("b.pdf", 0, 0.7)]
        groups = group_by_file(hits)

        assert list(groups) == ["b.pdf", "a.txt"]
        assert [h.chunk_index for h in groups["b.pdf"]] == [2, 0]

    def test_exact_layout(self) -> None:
        hits = [_hit("b.pdf", 2, 0.87349), _hit("a.txt", 0, 0.5), _hit("b.pdf", 0, 0.25)]

        assert format_context(hits) == (
            CONTEXT_HEADER
            + "=== From file: b.pdf ===\n"
            + "Chunk 3/4 (similarity: 0.873):\nb.pdf content 2\n\n"
            + "Chunk 1/4 (similarity: 0.250):\nb.pdf content 0\n\n"
            + "\n"
            + "=== From file: a.txt ===\n"
            + "Chunk 1/4 (similarity: 0.500):\na.txt content 0\n\n"
            + "\n"
        )

    def test_no_results(self) -> None:
        assert format_context([]) == NO_CONTEXT

    def test_system_prompt_ends_with_context(self) -> None:
        prompt = build_system_prompt("CTX")
        assert prompt.startswith(SYSTEM_PROMPT)
        assert prompt.endswith("CTX")

    def test_chat_prompt_prepends_system_message(self) -> None:
        history = [HumanMessage(content="hi"), AIMessage(content="hello"), HumanMessage(content="fees?")]
        prompt = build_chat_prompt([_hit("a.txt", 0, 0.5)], history)

        assert isinstance(prompt[0], SystemMessage)
        assert "=== From file: a.txt ===" in prompt[0].content
        assert prompt[1:] == history


# ── ChatService ─────────────────────────────────────────────────────────


def test_last_user_message() -> None:
    messages = [HumanMessage(content="first"), AIMessage(content="reply"), HumanMessage(content="second")]
    assert last_user_message(messages) == "second"
    assert last_user_message([AIMessage(content="only ai")]) == ""
    assert last_user_message([]) == ""


class TestChatService:
    @pytest.mark.asyncio
    async def test_searches_with_last_user_message(self) -> None:
        retriever = FakeRetriever([_hit("a.txt", 0, 0.9)])
        llm = FakeStreamingLLM(["ok"])
        service = ChatService(retriever, llm, context_limit=3)  # type: ignore[arg-type]

        await service.answer([HumanMessage(content="old"), AIMessage(content="x"), HumanMessage(content="new")])

        assert retriever.queries == [("new", 3)]

    @pytest.mark.asyncio
    async def test_streams_pieces_in_order(self) -> None:
        llm = FakeStreamingLLM(["According ", "to ", "", "a.txt"])
        service = ChatService(FakeRetriever([_hit("a.txt", 0, 0.9)]), llm)  # type: ignore[arg-type]

        pieces = [p async for p in service.stream_answer([HumanMessage(content="q")])]

        assert pieces == ["According ", "to ", "a.txt"]
        system = llm.prompts[0][0]
        assert isinstance(system, SystemMessage)
        assert "Chunk 1/4 (similarity: 0.900)" in system.content

    @pytest.mark.asyncio
    async def test_answer_without_results_uses_no_context_text(self) -> None:
        llm = FakeStreamingLLM(["I do not know."])
        service = ChatService(FakeRetriever([]), llm)  # type: ignore[arg-type]

        assert await service.answer([HumanMessage(content="q")]) == "I do not know."
        assert llm.prompts[0][0].content.endswith(NO_CONTEXT)

    @pytest.mark.asyncio
    async def test_no_user_message_skips_search(self) -> None:
        retriever = FakeRetriever([_hit("a.txt", 0, 0.9)])
        service = ChatService(retriever, FakeStreamingLLM(["hi"]))  # type: ignore[arg-type]

        await service.answer([])
        assert retriever.queries == []


def test_get_llm_uses_compatible_endpoint() -> None:
    from docrag.chat.llm import get_llm
    from docrag.config import Settings

    llm = get_llm(settings=Settings(llm_base_url="http://vllm:8000/v1", llm_model_name="local-model"))
    assert llm.model_name == "local-model"
    assert llm.streaming is True
    assert llm.openai_api_base == "http://vllm:8000/v1"
