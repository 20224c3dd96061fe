"""
Engine State

Owns the installed Corpus Index, the data folder, the selected chat model
and the ingestion-in-progress flag.

Design choices
--------------
- In-memory only (no persistence across process restarts).
- One re-entrant lock guards every field. It is held only for flag flips
  and the final index swap, never across parsing or network calls.
- Readers receive the CorpusIndex reference itself; the index is immutable,
  so a reader keeps a consistent snapshot even if a new one is installed.
"""

from __future__ import annotations

import enum
import logging
from threading import RLock
from typing import Optional

from ..api.models import EngineStatus
from ..core.errors import AlreadyIndexing, NotIndexed
from ..embeddings.index import CorpusIndex

logger = logging.getLogger("rag.engine")


class Phase(str, enum.Enum):
    EMPTY = "empty"
    INDEXING = "indexing"
    READY = "ready"


class EngineState:
    """
    Lifecycle: Empty → Indexing → Ready, Ready → Indexing → Ready.

    A failed ingestion returns to whatever was installed before it
    (Empty, or the prior Ready index).
    """

    def __init__(self, selected_model: Optional[str] = None) -> None:
        self._lock = RLock()
        self._index: Optional[CorpusIndex] = None
        self._data_folder: Optional[str] = None
        self._selected_model = selected_model
        self._ingesting = False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def phase(self) -> Phase:
        with self._lock:
            if self._ingesting:
                return Phase.INDEXING
            if self._index is not None and len(self._index) > 0:
                return Phase.READY
            return Phase.EMPTY

    @property
    def selected_model(self) -> Optional[str]:
        with self._lock:
            return self._selected_model

    def ready_index(self) -> CorpusIndex:
        """
        Return the installed index for a query.

        Raises
        ------
        NotIndexed
            While Empty or Indexing.
        """
        with self._lock:
            if self.phase is not Phase.READY:
                raise NotIndexed()
            return self._index

    def status(self) -> EngineStatus:
        with self._lock:
            index = self._index
            return EngineStatus(
                indexed=self.phase is Phase.READY,
                chunk_count=len(index) if index is not None else 0,
                data_folder=self._data_folder,
                selected_model=self._selected_model,
                ingestion_in_progress=self._ingesting,
                built_at=index.built_at if index is not None else None,
            )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def select_model(self, name: str) -> None:
        with self._lock:
            self._selected_model = name

    def begin_ingestion(self) -> None:
        """
        Enter Indexing.

        Raises
        ------
        AlreadyIndexing
            If another ingestion is in flight. Requests are not queued.
        """
        with self._lock:
            if self._ingesting:
                raise AlreadyIndexing()
            self._ingesting = True

    def install(self, index: CorpusIndex, data_folder: str) -> None:
        """Atomically replace the installed index and leave Indexing."""
        with self._lock:
            self._index = index
            self._data_folder = data_folder
            self._ingesting = False
            logger.info("Installed corpus index: %d chunks from %s", len(index), data_folder)

    def abort_ingestion(self) -> None:
        """Leave Indexing without touching the previously installed index."""
        with self._lock:
            self._ingesting = False
