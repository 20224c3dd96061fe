"""
Retrieval Orchestrator

Answers one question against an installed Corpus Index.

Responsibilities
----------------
- Embed the query
- Retrieve the top-k chunks
- Build the grounded prompt with citation markers
- Call the selected chat model
- Keep only the citations the model actually referenced
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from .prompts import SYSTEM_PREAMBLE, build_prompt, cited_positions
from ..config import settings
from ..core.errors import EmbeddingFailure, NotIndexed
from ..corpus.models import Chunk
from ..embeddings.embedder import Embedder
from ..embeddings.index import CorpusIndex, VectorIndexError
from ..llm.client import LLMClient

logger = logging.getLogger("rag.orchestrator")


@dataclass
class RetrievalResult:
    """Answer text plus the ids and labels of the chunks it cited."""
    answer: str
    cited_chunk_ids: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)


class RetrievalOrchestrator:
    """
    Stateless coordinator for embed → search → prompt → complete → cite.

    The Corpus Index is borrowed per call and never retained.
    """

    def __init__(
        self,
        embedder: Embedder,
        llm: LLMClient,
        top_k: Optional[int] = None,
    ) -> None:
        self.embedder = embedder
        self.llm = llm
        self.top_k = top_k or settings.top_k

    async def retrieve(self, index: CorpusIndex, query: str) -> List[Chunk]:
        vectors = await self.embedder.embed([query])
        if len(vectors) != 1:
            raise EmbeddingFailure("Query embedding returned no vector.")

        try:
            hits = index.search(vectors[0], self.top_k)
        except VectorIndexError as exc:
            raise EmbeddingFailure(f"Query embedding does not fit the index: {exc}") from exc

        for chunk, score in hits:
            logger.debug("Retrieved %s (%s) score=%.4f", chunk.id, chunk.citation_label, score)
        return [chunk for chunk, _ in hits]

    async def ask(
        self,
        index: Optional[CorpusIndex],
        query: str,
        model: str,
    ) -> RetrievalResult:
        """
        Answer `query` from `index` with chat model `model`.

        Raises
        ------
        NotIndexed
            If no index is installed.
        ServiceUnavailable, Timeout, ModelNotFound, EmbeddingFailure, CompletionFailure
            Propagated from the embedding and completion calls.
        """
        if index is None:
            raise NotIndexed()

        t0 = time.perf_counter()
        chunks = await self.retrieve(index, query) if len(index) else []
        t1 = time.perf_counter()

        if not chunks:
            logger.warning("No chunks retrieved for query; answering without grounding data.")

        prompt = build_prompt(query, chunks)
        answer = await self.llm.complete(prompt, model=model, system_prompt=SYSTEM_PREAMBLE)
        t2 = time.perf_counter()

        cited = [chunks[i] for i in cited_positions(answer, len(chunks))]

        logger.info(
            "Answered query with %s: retrieved=%d cited=%d (retrieve %.2fs, complete %.2fs)",
            model,
            len(chunks),
            len(cited),
            t1 - t0,
            t2 - t1,
        )

        return RetrievalResult(
            answer=answer,
            cited_chunk_ids=[c.id for c in cited],
            sources=[c.citation_label for c in cited],
        )
