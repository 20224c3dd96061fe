from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.errors import CompletionFailure
from ..core.http import error_message, raise_for_ollama_status, translate_transport_error

logger = logging.getLogger("rag.llm")


class LLMClient:
    """
    Single-shot, non-streaming chat completions against Ollama's /api/chat.

    Completions are never retried here; failures surface to the caller.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self.timeout = timeout or settings.completion_timeout
        self._transport = transport

    async def complete(
        self,
        prompt: str,
        model: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.2,
    ) -> str:
        """
        Returns the assistant message text for `prompt`.

        Raises ServiceUnavailable, Timeout, ModelNotFound or CompletionFailure.
        """
        messages: List[Dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": temperature},
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.post(f"{self.base_url}/api/chat", json=payload)
            except httpx.TransportError as exc:
                logger.error("Completion request to %s failed: %s", model, type(exc).__name__)
                raise translate_transport_error(exc, self.base_url) from exc

        try:
            raise_for_ollama_status(resp, model)
        except httpx.HTTPStatusError as exc:
            raise CompletionFailure(
                f"Chat request failed with status {resp.status_code}: {error_message(resp)}"
            ) from exc

        try:
            data = resp.json()
            content = data["message"]["content"]
        except (ValueError, KeyError, TypeError) as exc:
            raise CompletionFailure("Malformed chat response from inference service.") from exc

        if not isinstance(content, str):
            raise CompletionFailure("Chat response content is not text.")

        return content.strip()
