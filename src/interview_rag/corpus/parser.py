"""
Corpus Parser

Turns a folder of interview spreadsheets (CSV and Excel workbooks) into
row-level Chunks with provenance.

Responsibilities
----------------
- Enumerate recognised tabular files at the top level of a folder
- Parse each file's header row and data rows
- Flatten each non-empty row into "<label>: <value>" lines
- Record files that cannot be opened or parsed as warnings and keep going

The parser is a pure transform: no network access and no index side effects.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from openpyxl import load_workbook

from .models import Chunk, ParsedCorpus, ParseWarning
from ..core.errors import InvalidFolder, ParseFailure

logger = logging.getLogger("rag.parser")


CSV_EXTENSIONS = frozenset({".csv"})
EXCEL_EXTENSIONS = frozenset({".xlsx", ".xlsm", ".xls", ".xlsb"})
SUPPORTED_EXTENSIONS = CSV_EXTENSIONS | EXCEL_EXTENSIONS

_SNIFF_DELIMITERS = ",;\t"
_SNIFF_SAMPLE_BYTES = 64 * 1024

# (sheet name or None, header labels, data rows)
Table = Tuple[Optional[str], List[str], List[List[str]]]


# ---------------------------------------------------------------------
# Row Flattening
# ---------------------------------------------------------------------

def cell_to_text(value: Any) -> str:
    """Render a cell value as trimmed text; None becomes ''."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def column_labels_for(header: Sequence[str], width: int) -> List[str]:
    """
    Return a label for every column up to `width`.

    Blank header cells and columns past the end of the header get a
    positional label ("Column 3").
    """
    labels: List[str] = []
    for i in range(max(width, len(header))):
        label = header[i].strip() if i < len(header) else ""
        labels.append(label or f"Column {i + 1}")
    return labels


def flatten_row(labels: Sequence[str], values: Sequence[str]) -> str:
    """
    Join "<label>: <value>" pairs with newlines, in column order.

    Empty cells are omitted. Returns '' when every cell is empty.
    """
    parts = [
        f"{label}: {value}"
        for label, value in zip(labels, values)
        if value
    ]
    return "\n".join(parts)


# ---------------------------------------------------------------------
# File Readers
# ---------------------------------------------------------------------

def _read_text(path: Path) -> str:
    """UTF-8 first (BOM tolerated), then latin-1."""
    try:
        return path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError:
        return path.read_text(encoding="latin-1")


def read_csv_tables(path: Path) -> List[Table]:
    """
    Read a CSV file into a single table.

    Ragged rows are allowed and blank lines keep their place, so row
    numbers in citations match the file.
    """
    text = _read_text(path)
    if not text.strip():
        return []

    sample = text[:_SNIFF_SAMPLE_BYTES]
    try:
        dialect: Any = csv.Sniffer().sniff(sample, delimiters=_SNIFF_DELIMITERS)
    except csv.Error:
        dialect = csv.excel

    reader = csv.reader(io.StringIO(text, newline=""), dialect)
    rows = [[cell_to_text(cell) for cell in row] for row in reader]
    if not rows:
        return []

    header, data = rows[0], rows[1:]
    return [(None, header, data)]


def read_excel_tables(path: Path) -> List[Table]:
    """Read every worksheet of a workbook; the first row of each sheet is its header."""
    try:
        workbook = load_workbook(str(path), read_only=True, data_only=True)
    except Exception as exc:
        raise ParseFailure(
            f"cannot open workbook ({type(exc).__name__}): unsupported sub-format or corrupt file"
        ) from exc

    tables: List[Table] = []
    try:
        for sheet in workbook.worksheets:
            # Read-only sheets trust the stored <dimension> tag, which some
            # exporters get wrong; without a reset trailing rows are lost.
            sheet.reset_dimensions()
            rows = [
                [cell_to_text(cell) for cell in row]
                for row in sheet.iter_rows(values_only=True)
            ]
            if not rows:
                continue
            tables.append((sheet.title, rows[0], rows[1:]))
    except Exception as exc:
        raise ParseFailure(
            f"cannot read worksheet ({type(exc).__name__}): corrupt sheet data"
        ) from exc
    finally:
        workbook.close()

    return tables


def _read_tables(path: Path) -> List[Table]:
    suffix = path.suffix.lower()
    if suffix in CSV_EXTENSIONS:
        return read_csv_tables(path)
    if suffix in EXCEL_EXTENSIONS:
        return read_excel_tables(path)
    raise ParseFailure(f"unsupported file type: {path.name}")


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def discover_files(folder: Path) -> List[Path]:
    """Return recognised tabular files directly inside `folder`, sorted by name."""
    return sorted(
        (
            p
            for p in folder.iterdir()
            if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS
        ),
        key=lambda p: p.name.lower(),
    )


def iter_file_chunks(path: Path, start_id: int = 0) -> Iterator[Chunk]:
    """
    Yield one Chunk per non-empty data row of `path`.

    Chunk ids are `doc_<n>` counting up from `start_id`.

    Raises
    ------
    ParseFailure
        If the file cannot be opened or parsed.
    """
    try:
        tables = _read_tables(path)
    except ParseFailure:
        raise
    except (OSError, csv.Error, ValueError, KeyError, zipfile.BadZipFile) as exc:
        raise ParseFailure(f"{type(exc).__name__}: {exc}") from exc

    next_id = start_id
    for sheet, header, data in tables:
        width = max((len(r) for r in data), default=0)
        labels = column_labels_for(header, width)

        for row_index, values in enumerate(data):
            text = flatten_row(labels, values)
            if not text:
                continue

            yield Chunk(
                id=f"doc_{next_id}",
                text=text,
                source_file=str(path),
                sheet=sheet,
                row_index=row_index,
                column_labels=tuple(labels),
            )
            next_id += 1


def parse_folder(folder: str | Path) -> ParsedCorpus:
    """
    Parse every recognised file in `folder` into chunks.

    A file that fails to parse is skipped and recorded in `warnings`.
    A folder with no parseable files yields an empty corpus, not an error.

    Raises
    ------
    InvalidFolder
        If `folder` does not exist or is not a directory.
    """
    path = Path(folder).expanduser()
    if not path.exists():
        raise InvalidFolder(f"Directory does not exist: {folder}")
    if not path.is_dir():
        raise InvalidFolder(f"Path is not a directory: {folder}")

    corpus = ParsedCorpus()

    for file_path in discover_files(path):
        start = len(corpus.chunks)
        try:
            file_chunks = list(iter_file_chunks(file_path, start_id=start))
        except ParseFailure as exc:
            logger.warning("Skipping %s: %s", file_path.name, exc.message)
            corpus.warnings.append(
                ParseWarning(source_file=str(file_path), reason=exc.message)
            )
            continue

        corpus.chunks.extend(file_chunks)
        corpus.files_parsed.append(str(file_path))
        logger.info("Parsed %s: %d rows", file_path.name, len(file_chunks))

    logger.info(
        "Parsed folder %s: %d chunks from %d files (%d failed)",
        path,
        len(corpus.chunks),
        len(corpus.files_parsed),
        corpus.files_failed,
    )
    return corpus
