"""
Embedding Client

This module implements the embedding client for the local Ollama service.
It is responsible for:

- Batching chunk texts per outbound request
- Retrying transient failures with exponential backoff
- Strict response validation
- Reporting per-batch failures so ingestion can drop only the affected chunks

The same `embed` call is used for the single-text case of a user query.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import httpx

from ..config import settings
from ..core.errors import EmbeddingFailure, EngineError, ModelNotFound, ServiceUnavailable
from ..core.http import is_transient, raise_for_ollama_status, translate_transport_error

logger = logging.getLogger("rag.embedder")


@dataclass
class BatchFailure:
    """One batch that could not be embedded after all attempts."""
    start: int
    size: int
    reason: str


@dataclass
class BatchedEmbeddings:
    """
    Embeddings aligned by position with the input texts.

    `vectors[i]` is None when text i belonged to a failed batch.
    """
    vectors: List[Optional[List[float]]] = field(default_factory=list)
    failures: List[BatchFailure] = field(default_factory=list)

    @property
    def dropped(self) -> int:
        return sum(f.size for f in self.failures)


class Embedder:
    """
    Asynchronous embedding generator backed by Ollama's /api/embed.

    The class holds no connection state and is safe to reuse across requests.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        batch_size: Optional[int] = None,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
        timeout: Optional[float] = None,
        max_chars: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize an Embedder.

        Every parameter defaults to the matching field of `settings`;
        `transport` lets tests substitute an in-process httpx transport.
        """
        self.base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self.model = model or settings.embedding_model
        self.batch_size = batch_size or settings.embed_batch_size
        self.max_attempts = max_attempts or settings.embed_max_attempts
        self.backoff_base = settings.embed_backoff_base if backoff_base is None else backoff_base
        self.timeout = timeout or settings.request_timeout
        self.max_chars = max_chars or settings.embed_max_chars
        self._transport = transport

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed every text, failing as a whole if any batch fails.

        Raises
        ------
        ServiceUnavailable, Timeout, ModelNotFound, EmbeddingFailure
        """
        if not texts:
            return []

        vectors: List[List[float]] = []
        async with self._client() as client:
            for start in range(0, len(texts), self.batch_size):
                batch = list(texts[start : start + self.batch_size])
                vectors.extend(await self._embed_batch_with_retry(client, batch))
        return vectors

    async def embed_batches(self, texts: Sequence[str]) -> BatchedEmbeddings:
        """
        Embed texts batch by batch, recording failed batches instead of raising.

        ModelNotFound still propagates: no batch can succeed without the model.
        """
        result = BatchedEmbeddings(vectors=[None] * len(texts))
        if not texts:
            return result

        async with self._client() as client:
            for start in range(0, len(texts), self.batch_size):
                batch = list(texts[start : start + self.batch_size])
                try:
                    batch_vectors = await self._embed_batch_with_retry(client, batch)
                except ModelNotFound:
                    raise
                except EngineError as exc:
                    logger.warning(
                        "Dropping embedding batch at %d (size=%d): %s",
                        start,
                        len(batch),
                        exc.message,
                    )
                    result.failures.append(
                        BatchFailure(start=start, size=len(batch), reason=exc.message)
                    )
                    continue

                result.vectors[start : start + len(batch)] = batch_vectors

        return result

    async def ping(self) -> None:
        """
        Check that the service answers at all.

        Raises
        ------
        ServiceUnavailable, Timeout
        """
        async with self._client() as client:
            try:
                response = await client.get(f"{self.base_url}/api/tags")
            except httpx.TransportError as exc:
                raise translate_transport_error(exc, self.base_url) from exc
        if response.status_code >= 500:
            raise ServiceUnavailable(
                f"Inference service at {self.base_url} returned status {response.status_code}"
            )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _truncate(self, text: str) -> str:
        return text[: self.max_chars] if len(text) > self.max_chars else text

    async def _embed_batch_with_retry(
        self,
        client: httpx.AsyncClient,
        batch: List[str],
    ) -> List[List[float]]:
        payload = {
            "model": self.model,
            "input": [self._truncate(t) for t in batch],
        }

        attempt = 0
        while True:
            attempt += 1
            try:
                response = await client.post(f"{self.base_url}/api/embed", json=payload)
                raise_for_ollama_status(response, self.model)
                return self._extract_embeddings(response.json(), expected=len(batch))
            except (httpx.TransportError, httpx.HTTPStatusError) as exc:
                if not is_transient(exc) or attempt >= self.max_attempts:
                    logger.error(
                        "Embedding request failed (%s) after %d attempt(s): batch size=%d",
                        type(exc).__name__,
                        attempt,
                        len(batch),
                    )
                    if isinstance(exc, httpx.TransportError):
                        raise translate_transport_error(exc, self.base_url) from exc
                    raise EmbeddingFailure(
                        f"Embedding request failed with status {exc.response.status_code}"
                    ) from exc

                delay = self.backoff_base * (2 ** (attempt - 1))
                logger.info(
                    "Transient embedding failure (%s), retrying in %.2fs (attempt %d/%d)",
                    type(exc).__name__,
                    delay,
                    attempt,
                    self.max_attempts,
                )
                await asyncio.sleep(delay)
            except ValueError as exc:
                raise EmbeddingFailure("Embedding response is not valid JSON.") from exc

    @staticmethod
    def _extract_embeddings(data: dict, expected: int) -> List[List[float]]:
        """
        Parse and validate embedding output format.

        Ollama returns:
            { "model": "...", "embeddings": [[...], ...] }

        Raises
        ------
        EmbeddingFailure
            If the response has an unexpected structure or count.
        """
        if not isinstance(data, dict) or "embeddings" not in data:
            raise EmbeddingFailure("Embedding response missing 'embeddings' field.")

        records = data["embeddings"]
        if not isinstance(records, list):
            raise EmbeddingFailure("'embeddings' field must be a list.")

        if len(records) != expected:
            raise EmbeddingFailure(
                f"Expected {expected} embeddings, got {len(records)}."
            )

        embeddings: List[List[float]] = []
        for index, emb in enumerate(records):
            if (
                not isinstance(emb, list)
                or not emb
                or not all(isinstance(x, (float, int)) for x in emb)
            ):
                raise EmbeddingFailure(
                    f"Invalid embedding vector at index {index}: must be a non-empty float list."
                )
            embeddings.append([float(x) for x in emb])

        return embeddings
