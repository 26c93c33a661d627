"""Prompt assembly for grounded chat answers.

The context block groups retrieved chunks by file, in ranking order of
each file's first hit.  Its layout is relied on by the system prompt and
must stay stable:

    Context from the uploaded documents:

    === From file: report.pdf ===
    Chunk 3/12 (similarity: 0.873):
    <chunk content>

"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from langchain_core.messages import SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from docrag.retrieval.models import ScoredChunk

CONTEXT_HEADER = "Context from the uploaded documents:\n\n"

NO_CONTEXT = "No relevant information was found in the uploaded documents for this question."

SYSTEM_PROMPT = """\
You are an AI assistant specialised in document analysis.

IMPORTANT INSTRUCTIONS:
1. Use ONLY the information in the provided context to answer questions.
2. When you quote information, ALWAYS mention the name of the source file.
3. If the information comes from several files, name each source.
4. If the context does not contain the answer, say clearly that you do
   not have enough information.
5. When referring to tables or specific figures, mention the file they
   come from.
6. Be precise and concise.

Citation format: "According to the file [file_name], ..."

"""


def group_by_file(results: Sequence[ScoredChunk]) -> dict[str, list[ScoredChunk]]:
    """Group *results* by file name, preserving first-appearance order."""
    groups: dict[str, list[ScoredChunk]] = {}
    for result in results:
        groups.setdefault(result.file_name, []).append(result)
    return groups


def format_context(results: Sequence[ScoredChunk]) -> str:
    """Render retrieved chunks as the grouped-by-file context block."""
    if not results:
        return NO_CONTEXT

    parts = [CONTEXT_HEADER]
    for file_name, chunks in group_by_file(results).items():
        parts.append(f"=== From file: {file_name} ===\n")
        for chunk in chunks:
            parts.append(
                f"Chunk {chunk.chunk_index + 1}/{chunk.total_chunks} "
                f"(similarity: {chunk.similarity:.3f}):\n{chunk.content}\n\n"
            )
        parts.append("\n")
    return "".join(parts)


def build_system_prompt(context: str) -> str:
    """Instructions followed by the context block."""
    return f"{SYSTEM_PROMPT}{context}"


def build_chat_prompt(
    results: Sequence[ScoredChunk],
    messages: Sequence[BaseMessage],
) -> list[BaseMessage]:
    """Prepend the grounded system prompt to the conversation *messages*."""
    return [SystemMessage(content=build_system_prompt(format_context(results))), *messages]
