"""
Chat — prompt assembly over retrieved chunks and streaming answers.

Public API
----------
- :class:`ChatService` — retrieve, build the grounded prompt, stream text.
- :func:`format_context` — grouped-by-file context block.
- :func:`get_llm` — configured LangChain chat model.
"""

from docrag.chat.prompts import build_chat_prompt, build_system_prompt, format_context
from docrag.chat.service import ChatService

__all__ = [
    "ChatService",
    "build_chat_prompt",
    "build_system_prompt",
    "format_context",
    "get_llm",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import get_llm to avoid pulling in langchain_openai at import time."""
    if name == "get_llm":
        from docrag.chat.llm import get_llm

        return get_llm
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
