"""
Engine Command Surface

The single object a UI collaborator talks to. Every operation is a plain
request/response coroutine; status is pulled with `get_status()`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .ingestion import IngestionOutcome, run_ingestion
from .state import EngineState
from ..api.models import AskResponse, EngineStatus, IngestResult, ModelInfo, ServiceStatus
from ..config import settings
from ..core.errors import ModelNotFound
from ..embeddings.embedder import Embedder
from ..llm.client import LLMClient
from ..llm.service import OllamaService
from ..rag.orchestrator import RetrievalOrchestrator, RetrievalResult

logger = logging.getLogger("rag.engine")


def _model_matches(requested: str, installed: str) -> bool:
    """'llama3' matches an installed 'llama3:latest'."""
    if requested == installed:
        return True
    if ":" not in requested:
        return installed == f"{requested}:latest"
    return False


class Engine:
    """
    Owns one EngineState and the clients that act on it.

    Collaborators are injectable so tests can substitute doubles.
    """

    def __init__(
        self,
        embedder: Optional[Embedder] = None,
        llm: Optional[LLMClient] = None,
        service: Optional[OllamaService] = None,
        state: Optional[EngineState] = None,
        top_k: Optional[int] = None,
    ) -> None:
        self.embedder = embedder or Embedder()
        self.llm = llm or LLMClient()
        self.service = service or OllamaService()
        self.state = state or EngineState(selected_model=settings.default_chat_model)
        self.orchestrator = RetrievalOrchestrator(self.embedder, self.llm, top_k=top_k)

    # ------------------------------------------------------------------
    # Inference service
    # ------------------------------------------------------------------

    async def check_service_status(self) -> ServiceStatus:
        return await self.service.check_status()

    async def list_available_models(self) -> List[ModelInfo]:
        return await self.service.list_chat_models()

    async def set_chat_model(self, name: str) -> None:
        """
        Record the chat model for subsequent questions.

        Raises
        ------
        ModelNotFound
            If `name` is not an installed chat model.
        """
        models = await self.service.list_chat_models()
        if not any(_model_matches(name, m.name) for m in models):
            raise ModelNotFound(f"Model '{name}' is not installed.")
        self.state.select_model(name)
        logger.info("Selected chat model %s", name)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest(self, folder_path: str) -> IngestResult:
        """
        Replace the corpus with the contents of `folder_path`.

        Raises
        ------
        AlreadyIndexing
            If another ingestion is running.
        InvalidFolder, ServiceUnavailable, Timeout, ModelNotFound
            Ingestion aborted; the previously installed index stays in place.
        """
        self.state.begin_ingestion()
        installed = False
        try:
            outcome = await run_ingestion(folder_path, self.embedder)

            if outcome.rows_parsed and not outcome.documents_ingested:
                logger.error("Every embedding batch failed for %s", folder_path)
                return self._result(outcome, success=False)

            self.state.install(outcome.index, str(Path(folder_path).expanduser()))
            installed = True
            return self._result(outcome, success=True)
        finally:
            if not installed:
                self.state.abort_ingestion()

    @staticmethod
    def _result(outcome: IngestionOutcome, success: bool) -> IngestResult:
        corpus = outcome.corpus
        files = len(corpus.files_parsed)
        docs = outcome.documents_ingested

        if not success:
            message = (
                f"Embedding failed for all {outcome.rows_parsed} rows; "
                "the previous index was kept."
            )
        elif outcome.rows_parsed == 0:
            message = "No data rows found in supported files (CSV, XLSX, XLS)."
        elif outcome.rows_dropped:
            message = (
                f"Partial failure: indexed {docs} of {outcome.rows_parsed} rows "
                f"from {files} file(s); {outcome.rows_dropped} rows dropped "
                f"after embedding errors in {len(outcome.batch_failures)} batch(es)."
            )
        else:
            message = f"Successfully indexed {docs} rows from {files} file(s)."

        if corpus.warnings:
            message += f" {corpus.files_failed} file(s) could not be parsed."

        return IngestResult(
            success=success,
            files_processed=files,
            documents_ingested=docs if success else 0,
            message=message,
            files_failed=corpus.files_failed,
            warnings=[
                f"{Path(w.source_file).name}: {w.reason}" for w in corpus.warnings
            ],
        )

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    async def query(self, query: str) -> RetrievalResult:
        """
        Raises NotIndexed unless a non-empty corpus is Ready.
        """
        index = self.state.ready_index()
        model = self.state.selected_model or settings.default_chat_model
        return await self.orchestrator.ask(index, query, model)

    async def ask(self, query: str) -> AskResponse:
        result = await self.query(query)
        return AskResponse(answer=result.answer, sources=result.sources)

    def get_status(self) -> EngineStatus:
        return self.state.status()
