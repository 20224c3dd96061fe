"""
Ingestion pipeline: parse folder → embed chunks → build a new Corpus Index.

Nothing here touches the Engine State; the caller installs the returned
index. Per-file parse failures and per-batch embedding failures are
collected, not raised.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List

from ..corpus.models import Chunk, ParsedCorpus
from ..corpus.parser import parse_folder
from ..embeddings.embedder import BatchFailure, Embedder
from ..embeddings.index import CorpusIndex

logger = logging.getLogger("rag.ingestion")


@dataclass
class IngestionOutcome:
    corpus: ParsedCorpus
    index: CorpusIndex
    batch_failures: List[BatchFailure] = field(default_factory=list)
    dimension_rejects: int = 0

    @property
    def rows_parsed(self) -> int:
        return len(self.corpus.chunks)

    @property
    def documents_ingested(self) -> int:
        return len(self.index)

    @property
    def rows_dropped(self) -> int:
        return self.rows_parsed - self.documents_ingested


def _attach_embeddings(
    chunks: List[Chunk],
    vectors: List[List[float] | None],
) -> tuple[List[Chunk], int]:
    """
    Pair chunks with their vectors, skipping failed ones.

    The first vector fixes the corpus dimension; vectors of any other
    length are rejected.
    """
    embedded: List[Chunk] = []
    dimension = None
    rejected = 0

    for chunk, vector in zip(chunks, vectors):
        if vector is None:
            continue
        if dimension is None:
            dimension = len(vector)
        if len(vector) != dimension:
            rejected += 1
            continue
        embedded.append(chunk.with_embedding(vector))

    if rejected:
        logger.warning(
            "Rejected %d embedding(s) whose dimension differs from %s", rejected, dimension
        )
    return embedded, rejected


async def run_ingestion(folder: str, embedder: Embedder) -> IngestionOutcome:
    """
    Build a fresh Corpus Index from the files in `folder`.

    Raises
    ------
    InvalidFolder
        If `folder` is not a readable directory.
    ServiceUnavailable, Timeout
        If the inference service cannot be reached before embedding starts.
    ModelNotFound
        If the embedding model is not installed.
    """
    corpus = await asyncio.to_thread(parse_folder, folder)

    if not corpus.chunks:
        logger.info("No rows to embed in %s", folder)
        return IngestionOutcome(corpus=corpus, index=CorpusIndex.empty())

    await embedder.ping()

    batched = await embedder.embed_batches([c.text for c in corpus.chunks])
    embedded, rejected = _attach_embeddings(corpus.chunks, batched.vectors)

    index = await asyncio.to_thread(CorpusIndex, embedded)

    return IngestionOutcome(
        corpus=corpus,
        index=index,
        batch_failures=batched.failures,
        dimension_rejects=rejected,
    )
