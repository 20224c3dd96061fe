"""
Corpus Data Models

This module defines the canonical data model for a single retrievable chunk
derived from one row of an interview spreadsheet, plus the result of parsing
a whole data folder.

Each Chunk corresponds to ONE data row and, once embedded, ONE vector.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, ConfigDict


class Chunk(BaseModel):
    """
    A single row-derived chunk with provenance.

    Instances are immutable; attaching an embedding produces a new Chunk
    via `with_embedding`.
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque key, unique within one corpus index. Used as the citation handle.",
    )

    text: str = Field(
        ...,
        min_length=1,
        description="Newline-joined '<column label>: <cell value>' pairs in original column order.",
    )

    source_file: str = Field(
        ...,
        min_length=1,
        description="Path of the file this row was read from.",
    )

    sheet: Optional[str] = Field(
        default=None,
        description="Worksheet name for workbook sources; None for CSV.",
    )

    row_index: int = Field(
        ...,
        ge=0,
        description="0-based position of the data row below the header.",
    )

    column_labels: Tuple[str, ...] = Field(
        default=(),
        description="Original header labels, in column order.",
    )

    embedding: Optional[Tuple[float, ...]] = Field(
        default=None,
        description="Embedding vector, absent until the chunk has been embedded.",
    )

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )

    @property
    def row_number(self) -> int:
        """1-based data row number, as shown to users."""
        return self.row_index + 1

    @property
    def file_name(self) -> str:
        return Path(self.source_file).name

    @property
    def citation_label(self) -> str:
        """Human-readable citation, e.g. 'interviews.xlsx (Q1), Row 4'."""
        if self.sheet:
            return f"{self.file_name} ({self.sheet}), Row {self.row_number}"
        return f"{self.file_name}, Row {self.row_number}"

    def with_embedding(self, vector: List[float]) -> "Chunk":
        return self.model_copy(update={"embedding": tuple(float(x) for x in vector)})


class ParseWarning(BaseModel):
    """A per-file parse failure, collected instead of raised."""

    source_file: str
    reason: str

    model_config = ConfigDict(frozen=True)


class ParsedCorpus(BaseModel):
    """Output of parsing one data folder."""

    chunks: List[Chunk] = Field(default_factory=list)
    files_parsed: List[str] = Field(default_factory=list)
    warnings: List[ParseWarning] = Field(default_factory=list)

    @property
    def files_failed(self) -> int:
        return len(self.warnings)
