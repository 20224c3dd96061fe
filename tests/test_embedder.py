import httpx
import pytest

from interview_rag.core.errors import (
    EmbeddingFailure,
    ModelNotFound,
    ServiceUnavailable,
    Timeout,
)
from interview_rag.embeddings.embedder import Embedder

from conftest import OLLAMA_URL, FakeOllama, keyword_vector


def _embedder(transport, **kwargs) -> Embedder:
    kwargs.setdefault("batch_size", 2)
    kwargs.setdefault("backoff_base", 0.0)
    return Embedder(base_url=OLLAMA_URL, model="nomic-embed-text", transport=transport, **kwargs)


@pytest.mark.asyncio
async def test_embed_batches_requests_and_keeps_order():
    fake = FakeOllama()
    embedder = _embedder(fake.transport, batch_size=2)
    texts = ["likes pricing", "wants mobile", "fast onboarding", "note"]

    vectors = await embedder.embed(texts)

    assert vectors == [keyword_vector(t) for t in texts]
    calls = fake.calls("/api/embed")
    assert [body["input"] for _, _, body in calls] == [texts[:2], texts[2:]]
    assert all(body["model"] == "nomic-embed-text" for _, _, body in calls)


@pytest.mark.asyncio
async def test_empty_input_makes_no_request():
    fake = FakeOllama()
    assert await _embedder(fake.transport).embed([]) == []
    assert fake.requests == []


@pytest.mark.asyncio
async def test_transient_failure_is_retried():
    attempts = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["n"] += 1
        if attempts["n"] < 3:
            return httpx.Response(503, json={"error": "busy"})
        return httpx.Response(200, json={"embeddings": [[1.0, 2.0]]})

    embedder = _embedder(httpx.MockTransport(handler), max_attempts=3)

    assert await embedder.embed(["x"]) == [[1.0, 2.0]]
    assert attempts["n"] == 3


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts():
    attempts = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["n"] += 1
        return httpx.Response(500, json={"error": "boom"})

    embedder = _embedder(httpx.MockTransport(handler), max_attempts=3)

    with pytest.raises(EmbeddingFailure):
        await embedder.embed(["x"])
    assert attempts["n"] == 3


@pytest.mark.asyncio
async def test_connection_refused_maps_to_service_unavailable():
    fake = FakeOllama(unreachable=True)
    embedder = _embedder(fake.transport, max_attempts=2)

    with pytest.raises(ServiceUnavailable):
        await embedder.embed(["x"])
    assert len(fake.calls("/api/embed")) == 2


@pytest.mark.asyncio
async def test_timeout_maps_to_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(Timeout):
        await _embedder(httpx.MockTransport(handler), max_attempts=1).embed(["x"])


@pytest.mark.asyncio
async def test_missing_model_is_not_retried():
    attempts = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["n"] += 1
        return httpx.Response(404, json={"error": 'model "nomic-embed-text" not found'})

    with pytest.raises(ModelNotFound):
        await _embedder(httpx.MockTransport(handler)).embed(["x"])
    assert attempts["n"] == 1


@pytest.mark.asyncio
async def test_malformed_response_is_rejected():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"embeddings": [[1.0], [2.0]]})

    with pytest.raises(EmbeddingFailure):
        await _embedder(httpx.MockTransport(handler)).embed(["only one"])


@pytest.mark.asyncio
async def test_embed_batches_drops_only_failed_batch():
    fake = FakeOllama(fail_embed=lambda inputs: "bad" in inputs)
    embedder = _embedder(fake.transport, batch_size=2, max_attempts=2)

    result = await embedder.embed_batches(["one", "two", "bad", "four", "five"])

    assert result.vectors[0] is not None
    assert result.vectors[1] is not None
    assert result.vectors[2] is None
    assert result.vectors[3] is None
    assert result.vectors[4] is not None
    assert len(result.failures) == 1
    assert result.failures[0].start == 2
    assert result.dropped == 2


@pytest.mark.asyncio
async def test_embed_batches_propagates_missing_model():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "model not found"})

    with pytest.raises(ModelNotFound):
        await _embedder(httpx.MockTransport(handler)).embed_batches(["a", "b", "c"])


@pytest.mark.asyncio
async def test_long_texts_are_truncated():
    fake = FakeOllama()

    await _embedder(fake.transport, max_chars=5).embed(["abcdefghij", "abc"])

    _, _, body = fake.calls("/api/embed")[0]
    assert body["input"] == ["abcde", "abc"]


@pytest.mark.asyncio
async def test_truncation_limit_defaults_to_settings(monkeypatch):
    from interview_rag.config import settings

    monkeypatch.setattr(settings, "embed_max_chars", 3)
    fake = FakeOllama()

    await _embedder(fake.transport).embed(["abcdefghij"])

    _, _, body = fake.calls("/api/embed")[0]
    assert body["input"] == ["abc"]


@pytest.mark.asyncio
async def test_unknown_endpoint_404_is_not_a_missing_model():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="404 page not found")

    with pytest.raises(EmbeddingFailure):
        await _embedder(httpx.MockTransport(handler)).embed(["x"])


@pytest.mark.asyncio
async def test_ping_reports_unreachable_service():
    with pytest.raises(ServiceUnavailable):
        await _embedder(FakeOllama(unreachable=True).transport).ping()

    await _embedder(FakeOllama().transport).ping()
