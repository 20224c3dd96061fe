"""
Interview RAG Application Entry Point

This module defines the FastAPI application instance that exposes the
engine to a UI collaborator, registers routers and exception handlers,
and provides a test-friendly application factory.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .core.errors import EngineError, engine_error_handler, unhandled_exception_handler
from .core.log_config import configure_logging

from .api import (
    engine_routes,
    health_routes,
)


logger = logging.getLogger("rag.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info(
        "Starting interview-rag (ollama=%s, embedding_model=%s, default_chat_model=%s)",
        settings.ollama_base_url,
        settings.embedding_model,
        settings.default_chat_model,
    )
    yield
    logger.info("Shutting down interview-rag")


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    app = FastAPI(
        title="interview-rag",
        version="0.1.0",
        lifespan=lifespan,
    )

    # --------------------------------------------------------------
    # Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(EngineError, engine_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(engine_routes.router)

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn)
# ---------------------------------------------------------------------

app = create_app()
