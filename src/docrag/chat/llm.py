"""Chat model initialisation — single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenAI-compatible server** — set ``LLM_BASE_URL`` to a local
   endpoint (vLLM, Ollama's ``/v1``, ...).  ``ChatOpenAI`` works
   unchanged against any ``/v1/chat/completions`` implementation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from langchain_openai import ChatOpenAI

from docrag.config import settings as default_settings

if TYPE_CHECKING:
    from docrag.config import Settings

logger = logging.getLogger(__name__)


def get_llm(temperature: float = 0.0, settings: Settings | None = None) -> ChatOpenAI:
    """Return the configured streaming chat model.

    When ``settings.llm_base_url`` is set the client is pointed at that
    endpoint instead of the OpenAI cloud API, with a dummy key when none
    is configured.
    """
    settings = settings or default_settings
    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": temperature,
        "streaming": True,
    }

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # Local servers don't need a real key; LangChain requires a non-empty value.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)
