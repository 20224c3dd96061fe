"""
Engine Routes

This module exposes the engine command surface over HTTP for the desktop or
web UI: service probing, model selection, ingestion, questions and status.

Engine errors raised by these handlers are translated into JSON error
responses by the handlers registered in main.py.
"""

from typing import List, Annotated

from fastapi import APIRouter, Depends, status

from .models import (
    AskRequest,
    AskResponse,
    EngineStatus,
    IngestRequest,
    IngestResult,
    ModelInfo,
    SelectModelRequest,
    ServiceStatus,
)
from .dependencies import get_engine
from ..engine import Engine

router = APIRouter(tags=["engine"])


@router.get(
    "/service/status",
    response_model=ServiceStatus,
    summary="Probe the local inference service",
)
async def check_service_status(
    engine: Annotated[Engine, Depends(get_engine)],
) -> ServiceStatus:
    return await engine.check_service_status()


@router.get(
    "/models",
    response_model=List[ModelInfo],
    summary="List installed chat models",
)
async def list_available_models(
    engine: Annotated[Engine, Depends(get_engine)],
) -> List[ModelInfo]:
    return await engine.list_available_models()


@router.put(
    "/models/selected",
    response_model=EngineStatus,
    summary="Select the chat model used for answers",
)
async def set_chat_model(
    req: SelectModelRequest,
    engine: Annotated[Engine, Depends(get_engine)],
) -> EngineStatus:
    """
    Record the selection and return the updated engine status.
    Unknown models are rejected with `model_not_found`.
    """
    await engine.set_chat_model(req.name)
    return engine.get_status()


@router.post(
    "/ingest",
    response_model=IngestResult,
    summary="Index every CSV/Excel file in a folder",
    status_code=status.HTTP_200_OK,
)
async def ingest(
    req: IngestRequest,
    engine: Annotated[Engine, Depends(get_engine)],
) -> IngestResult:
    """
    Replace the current corpus with the folder's rows.

    A second request while one is running is rejected with
    `already_indexing` (409) rather than queued.
    """
    return await engine.ingest(req.folder_path)


@router.post(
    "/ask",
    response_model=AskResponse,
    summary="Ask a question about the indexed interview data",
)
async def ask(
    req: AskRequest,
    engine: Annotated[Engine, Depends(get_engine)],
) -> AskResponse:
    return await engine.ask(req.query)


@router.get(
    "/status",
    response_model=EngineStatus,
    summary="Current engine status",
)
async def get_status(
    engine: Annotated[Engine, Depends(get_engine)],
) -> EngineStatus:
    return engine.get_status()
