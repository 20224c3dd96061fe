"""
Engine Errors and Global Error Handling

This module defines the engine's error taxonomy and the FastAPI exception
handlers that translate it into HTTP responses.

Design Goals
------------
- Every failure the UI can see carries a distinguishable, stable code
- Never leak internal exception details to clients
- Log full stack traces internally for unexpected failures
- Keep the taxonomy framework-agnostic; only the handlers know about FastAPI
"""

from __future__ import annotations

import logging
from typing import Dict, Any

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("rag.errors")


# ---------------------------------------------------------------------
# Error Taxonomy
# ---------------------------------------------------------------------

class EngineError(RuntimeError):
    """Base class for all engine failures surfaced to callers."""

    code: str = "engine_error"
    status_code: int = 500

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message())

    @classmethod
    def default_message(cls) -> str:
        return cls.code.replace("_", " ")

    @property
    def message(self) -> str:
        return str(self)


class ServiceUnavailable(EngineError):
    """The local inference service cannot be reached."""

    code = "service_unavailable"
    status_code = 503


class ModelNotFound(EngineError):
    """The requested model is not installed in the inference service."""

    code = "model_not_found"
    status_code = 404


class ParseFailure(EngineError):
    """A single file could not be parsed. Collected as a warning, never raised to callers."""

    code = "parse_failure"
    status_code = 422


class EmbeddingFailure(EngineError):
    """An embedding request failed or returned a malformed response."""

    code = "embedding_failure"
    status_code = 502


class CompletionFailure(EngineError):
    """The chat endpoint answered with an error status or a malformed body."""

    code = "completion_failure"
    status_code = 502


class NotIndexed(EngineError):
    """A query was made while no corpus is ready."""

    code = "not_indexed"
    status_code = 409

    @classmethod
    def default_message(cls) -> str:
        return "No data has been indexed yet. Please ingest a data folder first."


class AlreadyIndexing(EngineError):
    """An ingestion was requested while another one is running."""

    code = "already_indexing"
    status_code = 409

    @classmethod
    def default_message(cls) -> str:
        return "ingestion already in progress"


class Timeout(EngineError):
    """A call to the inference service exceeded its bounded wait."""

    code = "timeout"
    status_code = 504


class InvalidFolder(EngineError):
    """The data folder does not exist or is not a directory."""

    code = "invalid_folder"
    status_code = 400


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

async def engine_error_handler(
    request: Request,
    exc: EngineError,
) -> JSONResponse:
    """
    Translate an EngineError into its deterministic JSON error response.

    Engine errors are expected outcomes (service down, nothing indexed yet),
    so they are logged at warning level without a traceback.
    """
    logger.warning(
        "Engine error during request %s %s: %s (%s)",
        request.method,
        request.url.path,
        exc.code,
        exc.message,
    )

    payload: Dict[str, Any] = {
        "error": exc.code,
        "detail": exc.message,
    }

    return JSONResponse(
        status_code=exc.status_code,
        content=payload,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Returns a generic 500 error to the client with no internal details.
    """
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    payload: Dict[str, Any] = {
        "error": "internal_server_error",
        "detail": "Internal server error",
    }

    return JSONResponse(
        status_code=500,
        content=payload,
    )
