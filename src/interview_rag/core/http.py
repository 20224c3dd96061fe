"""
Shared helpers for talking to the local Ollama service over httpx.

Low-level transport and status errors are translated here so every client
raises the same engine errors for the same conditions.
"""

from __future__ import annotations

import httpx

from .errors import EngineError, ModelNotFound, ServiceUnavailable, Timeout


def error_message(response: httpx.Response) -> str:
    """Return Ollama's `{"error": ...}` text, or the raw body."""
    try:
        data = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return response.text.strip()


def is_missing_model(response: httpx.Response) -> bool:
    """
    True for Ollama's `{"error": "model \"x\" not found, ..."}` 404.

    A 404 for an unknown route (an Ollama build without the endpoint)
    reads "404 page not found" and does not count.
    """
    if response.status_code != 404:
        return False
    message = error_message(response).lower()
    return "model" in message and "not found" in message


def raise_for_ollama_status(response: httpx.Response, model: str) -> None:
    """
    Raise ModelNotFound when Ollama reports the model missing,
    httpx.HTTPStatusError for any other non-2xx status. 5xx errors are
    left as HTTPStatusError so callers can decide whether to retry.
    """
    if response.is_success:
        return

    if is_missing_model(response):
        raise ModelNotFound(
            f"Model '{model}' not found: {error_message(response)}"
        )

    response.raise_for_status()


def is_transient(exc: Exception) -> bool:
    """Timeouts, refused connections and 5xx responses are worth retrying."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


def translate_transport_error(exc: httpx.TransportError, base_url: str) -> EngineError:
    if isinstance(exc, httpx.TimeoutException):
        return Timeout(f"Request to {base_url} timed out ({type(exc).__name__})")
    return ServiceUnavailable(
        f"Cannot reach the inference service at {base_url} ({type(exc).__name__}). "
        "Is Ollama running?"
    )
