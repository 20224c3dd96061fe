"""
In-Memory Vector Index

This module implements the cosine-similarity index over embedded chunks and
the immutable Corpus Index snapshot that the engine installs after ingestion.

Key Properties
--------------
- Built once per ingestion, read-only afterwards (no add / delete)
- Linear scan over a row-normalised numpy matrix
- Zero-norm vectors score 0 against everything instead of faulting
- Results ordered by descending score, ties broken by insertion order
- Safe for concurrent readers: nothing is mutated after construction
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Dict, List, Mapping, Sequence, Tuple

import numpy as np

from ..corpus.models import Chunk

logger = logging.getLogger("rag.index")


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class VectorIndexError(RuntimeError):
    """Raised when vectors cannot form a valid index."""


# ---------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------

def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 if either vector has zero norm.
    """
    if len(a) != len(b):
        raise VectorIndexError(
            f"Dimension mismatch: {len(a)} != {len(b)}"
        )
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    na = float(np.linalg.norm(va))
    nb = float(np.linalg.norm(vb))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (na * nb))


def _normalize_rows(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    safe = np.where(norms == 0.0, 1.0, norms)
    # Zero rows stay zero, so their dot product with anything is 0.
    return matrix / safe


# ---------------------------------------------------------------------
# Vector Index
# ---------------------------------------------------------------------

class VectorIndex:
    """
    Exhaustive cosine-similarity index over (chunk_id, vector) pairs.
    """

    def __init__(self, entries: Sequence[Tuple[str, Sequence[float]]]) -> None:
        """
        Build the index.

        Parameters
        ----------
        entries : Sequence[(str, Sequence[float])]
            Chunk ids and their embeddings, in insertion order.

        Raises
        ------
        VectorIndexError
            On duplicate ids, empty vectors or inconsistent dimensionality.
        """
        ids = [chunk_id for chunk_id, _ in entries]
        if len(set(ids)) != len(ids):
            raise VectorIndexError("Chunk ids must be unique within an index.")

        self._ids: Tuple[str, ...] = tuple(ids)

        if not entries:
            self._dimension = 0
            self._matrix = np.zeros((0, 0), dtype=np.float64)
            self._matrix.setflags(write=False)
            return

        dim = len(entries[0][1])
        if dim == 0:
            raise VectorIndexError("Embedding vectors must be non-empty.")

        for i, (_, vec) in enumerate(entries):
            if len(vec) != dim:
                raise VectorIndexError(
                    f"Inconsistent embedding dimensionality at index {i}."
                )

        matrix = np.asarray([vec for _, vec in entries], dtype=np.float64)
        self._dimension = dim
        self._matrix = _normalize_rows(matrix)
        self._matrix.setflags(write=False)

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def dimension(self) -> int:
        return self._dimension

    def search(
        self,
        query_vector: Sequence[float],
        k: int,
    ) -> List[Tuple[str, float]]:
        """
        Return up to `k` (chunk_id, score) pairs, best first.

        `k` is clamped to the corpus size; ties keep insertion order.
        """
        k = min(max(k, 0), len(self._ids))
        if k == 0:
            return []

        if len(query_vector) != self._dimension:
            raise VectorIndexError(
                f"Query dimension {len(query_vector)} does not match index dimension {self._dimension}."
            )

        q = np.asarray(query_vector, dtype=np.float64)
        norm = float(np.linalg.norm(q))
        if norm == 0.0 or not math.isfinite(norm):
            scores = np.zeros(len(self._ids), dtype=np.float64)
        else:
            scores = self._matrix @ (q / norm)

        order = np.argsort(-scores, kind="stable")[:k]
        return [(self._ids[int(i)], float(scores[int(i)])) for i in order]


# ---------------------------------------------------------------------
# Corpus Index
# ---------------------------------------------------------------------

class CorpusIndex:
    """
    Immutable snapshot of one ingested folder: chunks, vectors and build time.

    A new ingestion builds a new CorpusIndex; an existing one is never
    modified chunk by chunk.
    """

    def __init__(self, chunks: Sequence[Chunk]) -> None:
        missing = [c.id for c in chunks if c.embedding is None]
        if missing:
            raise VectorIndexError(
                f"{len(missing)} chunk(s) have no embedding, e.g. {missing[0]}."
            )

        self._vectors = VectorIndex([(c.id, c.embedding) for c in chunks])
        chunk_map: Dict[str, Chunk] = {c.id: c for c in chunks}
        self._chunks: Mapping[str, Chunk] = MappingProxyType(chunk_map)
        self.built_at = datetime.now(timezone.utc)

        logger.info(
            "Built corpus index: %d chunks, dimension=%d",
            len(self._vectors),
            self._vectors.dimension,
        )

    @classmethod
    def empty(cls) -> "CorpusIndex":
        return cls([])

    def __len__(self) -> int:
        return len(self._vectors)

    @property
    def dimension(self) -> int:
        return self._vectors.dimension

    @property
    def chunks(self) -> Mapping[str, Chunk]:
        return self._chunks

    def get(self, chunk_id: str) -> Chunk:
        return self._chunks[chunk_id]

    def search(self, query_vector: Sequence[float], k: int) -> List[Tuple[Chunk, float]]:
        """Ranked (Chunk, score) pairs for a query embedding."""
        return [
            (self._chunks[chunk_id], score)
            for chunk_id, score in self._vectors.search(query_vector, k)
        ]
