"""Embedding providers and the retrying wrapper used by ingestion and search.

Every provider exposes a single coroutine, :meth:`EmbeddingProvider.embed`,
that turns one text into a fixed-length vector.  Providers signal
retryable failures with :class:`~docrag.exceptions.EmbeddingTransientError`
and permanent ones with :class:`~docrag.exceptions.EmbeddingFatalError`;
:class:`RetryingEmbeddingProvider` applies the backoff policy on top.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import requests
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from docrag.exceptions import EmbeddingFatalError, EmbeddingTransientError

if TYPE_CHECKING:
    from docrag.config import Settings

logger = logging.getLogger(__name__)


class EmbeddingProvider(ABC):
    """Backend-agnostic text → vector capability."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return the embedding of *text*.

        Raises
        ------
        EmbeddingTransientError
            The call may succeed if retried.
        EmbeddingFatalError
            Retrying will not help.
        """
        ...

    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        return True


class HuggingFaceEmbeddingProvider(EmbeddingProvider):
    """Local sentence-transformer embeddings via LangChain.

    Parameters
    ----------
    model_name:
        HuggingFace model id used for text → embedding conversion.
    """

    def __init__(self, model_name: str) -> None:
        from langchain_huggingface import HuggingFaceEmbeddings

        self.model_name = model_name
        self._embedder = HuggingFaceEmbeddings(model_name=model_name)

    async def embed(self, text: str) -> list[float]:
        try:
            return await self._embedder.aembed_query(text)
        except (RuntimeError, OSError) as exc:
            raise EmbeddingTransientError(f"Embedding failed with {self.model_name}: {exc}") from exc
        except Exception as exc:
            raise EmbeddingFatalError(f"Embedding rejected by {self.model_name}: {exc}") from exc


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Embeddings from an Ollama server's ``/api/embeddings`` endpoint.

    Parameters
    ----------
    base_url:
        Ollama server root, e.g. ``http://localhost:11434``.
    model:
        Embedding model name (``nomic-embed-text`` by default).
    timeout:
        Per-request timeout in seconds.
    """

    _RETRYABLE_STATUS = frozenset({408, 429})

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        *,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._session = session or requests.Session()

    async def embed(self, text: str) -> list[float]:
        return await asyncio.to_thread(self._embed_sync, text)

    def _embed_sync(self, text: str) -> list[float]:
        url = f"{self.base_url}/api/embeddings"
        try:
            resp = self._session.post(
                url,
                json={"model": self.model, "prompt": text},
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise EmbeddingTransientError(f"Failed to connect to Ollama at {self.base_url}: {exc}") from exc

        if resp.status_code in self._RETRYABLE_STATUS or resp.status_code >= 500:
            raise EmbeddingTransientError(f"Ollama embed API error: status {resp.status_code}")
        if not resp.ok:
            raise EmbeddingFatalError(
                f"Ollama embed API error: status {resp.status_code}",
                detail=resp.text[:500],
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise EmbeddingFatalError(f"Invalid JSON response from Ollama embed: {exc}") from exc

        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not isinstance(embedding, list) or not embedding:
            raise EmbeddingFatalError("Invalid embedding response format")
        try:
            return [float(v) for v in embedding]
        except (TypeError, ValueError) as exc:
            raise EmbeddingFatalError(f"Non-numeric value in Ollama embedding: {exc}") from exc

    def list_models(self) -> list[str]:
        """Names of the models installed on the server (empty on error)."""
        try:
            resp = self._session.get(f"{self.base_url}/api/tags", timeout=self.timeout)
            resp.raise_for_status()
            return [m.get("name", "") for m in resp.json().get("models", [])]
        except (requests.RequestException, ValueError):
            logger.warning("Failed to list Ollama models", exc_info=True)
            return []

    def health_check(self) -> bool:
        try:
            resp = self._session.get(f"{self.base_url}/api/tags", timeout=self.timeout)
        except requests.RequestException:
            logger.warning("Ollama health-check failed", exc_info=True)
            return False
        if not resp.ok:
            return False

        try:
            names = [m.get("name", "") for m in resp.json().get("models", [])]
        except (ValueError, AttributeError, TypeError):
            logger.warning("Ollama health-check returned an unexpected body", exc_info=True)
            return False
        base_name = self.model.split(":")[0]
        if not any(base_name in name for name in names):
            logger.warning("Embedding model %s not found. Available models: %s", self.model, names)
        return True


class RetryingEmbeddingProvider(EmbeddingProvider):
    """Wrap *inner* with bounded exponential-backoff retries.

    The delay before attempt ``n + 1`` is ``base_delay * 2 ** (n - 1)``.
    Only :class:`EmbeddingTransientError` is retried; once *max_retries*
    attempts are used up an :class:`EmbeddingFatalError` is raised.

    Parameters
    ----------
    inner:
        Provider doing the actual work.
    max_retries:
        Total number of attempts per :meth:`embed` call.
    base_delay:
        Backoff base in seconds.
    sleep:
        Coroutine used to wait between attempts (injectable for tests).
    """

    def __init__(
        self,
        inner: EmbeddingProvider,
        *,
        max_retries: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.inner = inner
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    def _log_retry(self, retry_state: Any) -> None:
        logger.warning(
            "Error creating embedding, retrying in %.1fs (attempt %d/%d): %s",
            retry_state.next_action.sleep,
            retry_state.attempt_number,
            self.max_retries,
            retry_state.outcome.exception(),
        )

    async def embed(self, text: str) -> list[float]:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(EmbeddingTransientError),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2, min=0),
            sleep=self._sleep,
            before_sleep=self._log_retry,
        )
        try:
            return await retrying(self.inner.embed, text)
        except RetryError as exc:
            last = exc.last_attempt.exception()
            logger.error("Max retries reached for embedding creation: %s", last)
            raise EmbeddingFatalError(
                f"Failed to create embedding after {self.max_retries} attempts: {last}",
                attempts=self.max_retries,
            ) from last

    def health_check(self) -> bool:
        return self.inner.health_check()


def build_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """Return the configured provider wrapped with the retry policy."""
    if settings.embedding_provider == "ollama":
        inner: EmbeddingProvider = OllamaEmbeddingProvider(
            settings.ollama_base_url,
            settings.ollama_embedding_model,
            timeout=settings.ollama_timeout,
        )
    elif settings.embedding_provider == "huggingface":
        inner = HuggingFaceEmbeddingProvider(settings.embedding_model)
    else:
        raise ValueError(
            f"Unsupported embedding_provider={settings.embedding_provider!r}. "
            "Choose from: huggingface, ollama."
        )
    return RetryingEmbeddingProvider(
        inner,
        max_retries=settings.embedding_max_retries,
        base_delay=settings.embedding_retry_delay,
    )
