"""Grounded chat — retrieve context for the latest question, stream the answer."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from typing import TYPE_CHECKING

from langchain_core.messages import BaseMessage, HumanMessage

from docrag.chat.prompts import build_chat_prompt, group_by_file

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from docrag.retrieval.retriever import SemanticRetriever

logger = logging.getLogger(__name__)


def last_user_message(messages: Sequence[BaseMessage]) -> str:
    """Text of the most recent human message (``""`` when there is none)."""
    for message in reversed(messages):
        if isinstance(message, HumanMessage):
            return message.content if isinstance(message.content, str) else ""
    return ""


class ChatService:
    """Answers questions over the uploaded documents.

    Parameters
    ----------
    retriever:
        Similarity search over the vector store.
    llm:
        Any LangChain chat model supporting ``astream``.
    context_limit:
        Number of chunks placed in the system prompt.
    """

    def __init__(
        self,
        retriever: SemanticRetriever,
        llm: BaseChatModel,
        *,
        context_limit: int = 5,
    ) -> None:
        self._retriever = retriever
        self._llm = llm
        self.context_limit = context_limit

    async def build_prompt(self, messages: Sequence[BaseMessage]) -> list[BaseMessage]:
        """Search with the last user message and assemble the full prompt."""
        query = last_user_message(messages)
        logger.info("Processing chat request: %r", query[:100])
        results = await self._retriever.search(query, limit=self.context_limit) if query else []
        if results:
            logger.info("Found relevant content from %d files", len(group_by_file(results)))
        else:
            logger.info("No relevant chunks found for the query")
        return build_chat_prompt(results, messages)

    async def stream_answer(self, messages: Sequence[BaseMessage]) -> AsyncIterator[str]:
        """Yield the answer text piece by piece as the model produces it."""
        prompt = await self.build_prompt(messages)
        async for chunk in self._llm.astream(prompt):
            text = chunk.content if isinstance(chunk.content, str) else ""
            if text:
                yield text

    async def answer(self, messages: Sequence[BaseMessage]) -> str:
        """Collect :meth:`stream_answer` into one string."""
        return "".join([piece async for piece in self.stream_answer(messages)])
