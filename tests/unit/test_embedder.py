"""Unit tests for the embedding providers and the retry wrapper."""

from __future__ import annotations

from typing import Any

import pytest
import requests

from docrag.config import Settings
from docrag.exceptions import EmbeddingFatalError, EmbeddingTransientError
from docrag.ingestion.embedder import (
    HuggingFaceEmbeddingProvider,
    OllamaEmbeddingProvider,
    RetryingEmbeddingProvider,
    build_embedding_provider,
)


# ── Fakes ───────────────────────────────────────────────────────────────


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"status {self.status_code}")


class FakeSession:
    """Stands in for requests.Session; replays a canned response or error."""

    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response or FakeResponse()
        self.error = error
        self.posts: list[tuple[str, dict[str, Any]]] = []

    def post(self, url: str, json: dict[str, Any], timeout: float) -> FakeResponse:
        self.posts.append((url, json))
        if self.error is not None:
            raise self.error
        return self.response

    def get(self, url: str, timeout: float) -> FakeResponse:
        if self.error is not None:
            raise self.error
        return self.response


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _ollama(session: FakeSession) -> OllamaEmbeddingProvider:
    return OllamaEmbeddingProvider("http://ollama:11434/", "nomic-embed-text", session=session)  # type: ignore[arg-type]


# ── RetryingEmbeddingProvider ───────────────────────────────────────────


class TestRetryingEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_success_needs_no_sleep(self, make_embedder: Any) -> None:
        sleep = RecordingSleep()
        provider = RetryingEmbeddingProvider(make_embedder(default=[0.5, 0.5]), sleep=sleep)

        assert await provider.embed("hi") == [0.5, 0.5]
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried_with_exponential_backoff(self, make_embedder: Any) -> None:
        sleep = RecordingSleep()
        inner = make_embedder(
            default=[1.0],
            fail_when=lambda call, _t: EmbeddingTransientError("rate limited") if call < 3 else None,
        )
        provider = RetryingEmbeddingProvider(inner, max_retries=3, base_delay=1.0, sleep=sleep)

        assert await provider.embed("hi") == [1.0]
        assert len(inner.calls) == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_fatal(self, make_embedder: Any) -> None:
        sleep = RecordingSleep()
        inner = make_embedder(fail_when=lambda _c, _t: EmbeddingTransientError("down"))
        provider = RetryingEmbeddingProvider(inner, max_retries=3, base_delay=0.5, sleep=sleep)

        with pytest.raises(EmbeddingFatalError) as exc_info:
            await provider.embed("hi")

        assert exc_info.value.attempts == 3
        assert len(inner.calls) == 3
        assert sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_fatal_error_is_not_retried(self, make_embedder: Any) -> None:
        sleep = RecordingSleep()
        inner = make_embedder(fail_when=lambda _c, _t: EmbeddingFatalError("bad request"))
        provider = RetryingEmbeddingProvider(inner, sleep=sleep)

        with pytest.raises(EmbeddingFatalError, match="bad request"):
            await provider.embed("hi")

        assert len(inner.calls) == 1
        assert sleep.delays == []

    def test_rejects_zero_attempts(self, make_embedder: Any) -> None:
        with pytest.raises(ValueError):
            RetryingEmbeddingProvider(make_embedder(), max_retries=0)


# ── OllamaEmbeddingProvider ─────────────────────────────────────────────


class TestOllamaEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_embed_posts_prompt_and_returns_vector(self) -> None:
        session = FakeSession(FakeResponse(payload={"embedding": [1, 2.5, -3]}))
        vector = await _ollama(session).embed("hello")

        assert vector == [1.0, 2.5, -3.0]
        url, body = session.posts[0]
        assert url == "http://ollama:11434/api/embeddings"
        assert body == {"model": "nomic-embed-text", "prompt": "hello"}

    @pytest.mark.parametrize("status", [408, 429, 500, 503])
    def test_retryable_statuses_are_transient(self, status: int) -> None:
        provider = _ollama(FakeSession(FakeResponse(status_code=status)))
        with pytest.raises(EmbeddingTransientError):
            provider._embed_sync("x")

    def test_connection_error_is_transient(self) -> None:
        provider = _ollama(FakeSession(error=requests.ConnectionError("refused")))
        with pytest.raises(EmbeddingTransientError):
            provider._embed_sync("x")

    @pytest.mark.parametrize("status", [400, 404])
    def test_client_errors_are_fatal(self, status: int) -> None:
        provider = _ollama(FakeSession(FakeResponse(status_code=status, text="model not found")))
        with pytest.raises(EmbeddingFatalError) as exc_info:
            provider._embed_sync("x")
        assert exc_info.value.detail == "model not found"

    @pytest.mark.parametrize(
        "payload",
        [
            ValueError("not json"),
            {"embedding": []},
            {"embedding": [None, 1.0]},
            {"embedding": ["a", "b"]},
            {"other": 1},
            ["not", "a", "dict"],
        ],
    )
    def test_malformed_responses_are_fatal(self, payload: Any) -> None:
        provider = _ollama(FakeSession(FakeResponse(payload=payload)))
        with pytest.raises(EmbeddingFatalError):
            provider._embed_sync("x")

    def test_list_models(self) -> None:
        session = FakeSession(FakeResponse(payload={"models": [{"name": "nomic-embed-text:latest"}]}))
        assert _ollama(session).list_models() == ["nomic-embed-text:latest"]

    def test_list_models_on_error_is_empty(self) -> None:
        session = FakeSession(error=requests.ConnectionError("refused"))
        assert _ollama(session).list_models() == []

    def test_health_check(self) -> None:
        ok = FakeSession(FakeResponse(payload={"models": [{"name": "nomic-embed-text:latest"}]}))
        assert _ollama(ok).health_check() is True

        down = FakeSession(error=requests.ConnectionError("refused"))
        assert _ollama(down).health_check() is False

    def test_health_check_with_non_json_body(self) -> None:
        session = FakeSession(FakeResponse(payload=ValueError("Expecting value")))
        assert _ollama(session).health_check() is False

        assert _ollama(FakeSession(FakeResponse(payload=["not", "a", "dict"]))).health_check() is False


# ── HuggingFaceEmbeddingProvider ────────────────────────────────────────


class RaisingEmbeddings:
    """Stands in for HuggingFaceEmbeddings; every query raises *error*."""

    def __init__(self, error: Exception) -> None:
        self.error = error

    async def aembed_query(self, text: str) -> list[float]:
        raise self.error


def _huggingface(error: Exception) -> HuggingFaceEmbeddingProvider:
    provider = HuggingFaceEmbeddingProvider.__new__(HuggingFaceEmbeddingProvider)
    provider.model_name = "all-MiniLM-L6-v2"
    provider._embedder = RaisingEmbeddings(error)  # type: ignore[assignment]
    return provider


class TestHuggingFaceEmbeddingProvider:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [RuntimeError("CUDA out of memory"), OSError("disk")])
    async def test_runtime_errors_are_transient(self, error: Exception) -> None:
        with pytest.raises(EmbeddingTransientError):
            await _huggingface(error).embed("x")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [TypeError("bad input"), ValueError("too long"), KeyError("tok")])
    async def test_other_errors_are_fatal(self, error: Exception) -> None:
        with pytest.raises(EmbeddingFatalError) as exc_info:
            await _huggingface(error).embed("x")
        assert exc_info.value.__cause__ is error


# ── Factory ─────────────────────────────────────────────────────────────


def test_build_embedding_provider_ollama() -> None:
    provider = build_embedding_provider(
        Settings(embedding_provider="ollama", embedding_max_retries=5, embedding_retry_delay=0.1)
    )
    assert isinstance(provider, RetryingEmbeddingProvider)
    assert isinstance(provider.inner, OllamaEmbeddingProvider)
    assert provider.max_retries == 5
    assert provider.base_delay == 0.1


def test_build_embedding_provider_rejects_unknown() -> None:
    with pytest.raises(ValueError, match="Unsupported embedding_provider"):
        build_embedding_provider(Settings(embedding_provider="word2vec"))
