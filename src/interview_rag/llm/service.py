"""
Inference Service Probe

Queries Ollama's /api/tags to report whether the service is up, whether the
embedding model is installed, and which chat models are available.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..api.models import ModelInfo, ServiceStatus
from ..config import settings
from ..core.errors import ServiceUnavailable
from ..core.http import translate_transport_error

logger = logging.getLogger("rag.service")


# Name fragments of models that only produce embeddings.
EMBEDDING_MODEL_MARKERS = (
    "nomic-embed-text",
    "mxbai-embed-large",
    "all-minilm",
    "snowflake-arctic-embed",
    "bge-m3",
    "bge-large",
)


def is_embedding_model(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in EMBEDDING_MODEL_MARKERS)


class OllamaService:
    """
    Thin client for the model catalog of the local inference service.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        embedding_model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self.embedding_model = embedding_model or settings.embedding_model
        self.timeout = timeout or settings.request_timeout
        self._transport = transport

    async def _get_tags(self) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return await client.get(f"{self.base_url}/api/tags")

    @staticmethod
    def _parse_models(resp: httpx.Response) -> List[Dict[str, Any]]:
        try:
            data = resp.json()
        except ValueError as exc:
            raise ServiceUnavailable("Failed to parse inference service response.") from exc
        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            raise ServiceUnavailable("Inference service response has no 'models' list.")
        return [m for m in models if isinstance(m, dict) and m.get("name")]

    async def list_chat_models(self) -> List[ModelInfo]:
        """
        Return installed chat models, excluding embedding-only models.

        Raises ServiceUnavailable or Timeout if the service cannot be queried.
        """
        try:
            resp = await self._get_tags()
        except httpx.TransportError as exc:
            raise translate_transport_error(exc, self.base_url) from exc

        if not resp.is_success:
            raise ServiceUnavailable(f"Ollama returned error status: {resp.status_code}")

        return [
            ModelInfo(
                name=m["name"],
                size_bytes=int(m.get("size") or 0),
                modified_at=str(m.get("modified_at") or ""),
            )
            for m in self._parse_models(resp)
            if not is_embedding_model(m["name"])
        ]

    async def check_status(self) -> ServiceStatus:
        """
        Probe the service. Never raises for an unreachable service; the
        outcome is reported in the returned status instead.
        """
        try:
            resp = await self._get_tags()
        except httpx.TransportError as exc:
            logger.info("Inference service not reachable: %s", type(exc).__name__)
            return ServiceStatus(
                running=False,
                has_embedding_model=False,
                chat_model_count=0,
                message="Ollama is not running. Start it with: ollama serve",
            )

        if not resp.is_success:
            return ServiceStatus(
                running=False,
                has_embedding_model=False,
                chat_model_count=0,
                message=f"Ollama returned error: {resp.status_code}",
            )

        try:
            models = self._parse_models(resp)
        except ServiceUnavailable as exc:
            return ServiceStatus(
                running=False,
                has_embedding_model=False,
                chat_model_count=0,
                message=exc.message,
            )

        wanted = self.embedding_model.lower()
        has_embedding_model = any(
            m["name"].lower() == wanted or m["name"].lower().startswith(f"{wanted}:")
            for m in models
        )
        chat_count = sum(1 for m in models if not is_embedding_model(m["name"]))

        if has_embedding_model:
            message = "Ollama is ready"
        else:
            message = (
                f"Ollama is running but {self.embedding_model} is not installed. "
                f"Run: ollama pull {self.embedding_model}"
            )

        return ServiceStatus(
            running=True,
            has_embedding_model=has_embedding_model,
            chat_model_count=chat_count,
            message=message,
        )
