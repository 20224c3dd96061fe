"""
API Models

This module defines the Pydantic models that form the engine's command
surface contracts: service status, model catalog, ingestion, questions and
engine status. The same models are returned by the in-process Engine and
by the HTTP routes.

Design Goals
------------
- Strong typing
- Safe defaults (no shared mutable state)
- Clear schema documentation
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict


# ---------------------------------------------------------------------
# Inference Service
# ---------------------------------------------------------------------

class ServiceStatus(BaseModel):
    """
    Result of probing the local inference service.
    """
    running: bool
    has_embedding_model: bool
    chat_model_count: int = Field(..., ge=0)
    message: str

    model_config = ConfigDict(extra="forbid")


class ModelInfo(BaseModel):
    """
    One installed chat model.
    """
    name: str = Field(..., min_length=1)
    size_bytes: int = Field(default=0, ge=0)
    modified_at: str = ""

    model_config = ConfigDict(extra="forbid")


class SelectModelRequest(BaseModel):
    name: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------

class IngestRequest(BaseModel):
    folder_path: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


class IngestResult(BaseModel):
    """
    Summary of one ingestion run.
    """
    success: bool
    files_processed: int = Field(..., ge=0)
    documents_ingested: int = Field(..., ge=0)
    message: str
    files_failed: int = Field(default=0, ge=0)
    warnings: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------

class AskRequest(BaseModel):
    query: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


class AskResponse(BaseModel):
    """
    Answer plus human-readable citations of the rows it used.
    """
    answer: str
    sources: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# Engine Status
# ---------------------------------------------------------------------

class EngineStatus(BaseModel):
    """
    Pull-based view over the engine state, for rendering.
    """
    indexed: bool
    chunk_count: int = Field(..., ge=0)
    data_folder: Optional[str] = None
    selected_model: Optional[str] = None
    ingestion_in_progress: bool = False
    built_at: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")
