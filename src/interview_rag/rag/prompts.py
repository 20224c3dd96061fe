"""
Grounded prompt assembly and citation-marker parsing.

Citation convention
-------------------
Each retrieved chunk is listed in the prompt under a bracketed 1-based
marker, e.g. ``[2] interviews.csv, Row 7``. The model is told to cite with
those markers. A chunk counts as cited when its number appears inside any
bracket group of the answer: ``[2]``, ``[2, 3]`` and ``[2][3]`` all match.
"""

from __future__ import annotations

import re
from typing import List, Sequence, Set

from ..corpus.models import Chunk

SYSTEM_PREAMBLE = """You are a Customer Discovery Specialist, an expert consultant analyzing interview notes and customer research data.

Your role:
- Analyze customer interview data to extract actionable insights
- Identify patterns, pain points, and opportunities from the research
- Provide concise, evidence-based answers grounded ONLY in the provided data
- Cite the rows you rely on with their bracketed markers, e.g. [1] or [2, 3]
- Be direct and business-focused in your responses

Important guidelines:
- NEVER make up information not present in the data
- If asked about something not in the data, clearly state that the information is not available
- Focus on patterns across multiple data points when possible
- Keep responses concise and actionable"""

NO_DATA_NOTE = (
    "NOTE: No matching interview data was found for this question. "
    "Say that the indexed data does not contain the answer. Do not guess."
)

_MARKER_GROUP = re.compile(r"\[\s*(\d+(?:\s*[,;]\s*\d+)*)\s*\]")
_NUMBER = re.compile(r"\d+")


def citation_marker(position: int) -> str:
    """Marker for the chunk at 0-based `position` in the retrieved list."""
    return f"[{position + 1}]"


def format_context(chunks: Sequence[Chunk]) -> str:
    blocks = [
        f"{citation_marker(i)} {chunk.citation_label}\n{chunk.text}"
        for i, chunk in enumerate(chunks)
    ]
    return "\n\n".join(blocks)


def build_prompt(question: str, chunks: Sequence[Chunk]) -> str:
    """
    Assemble the grounded user prompt: labelled context, the question, and
    the instruction to answer only from that context using the markers.
    """
    context = format_context(chunks) if chunks else NO_DATA_NOTE

    return (
        "Based on the following interview data from our customer discovery research:\n\n"
        f"---BEGIN DATA---\n{context}\n---END DATA---\n\n"
        f"Question: {question}\n\n"
        "Answer ONLY from the data above. If the information is not in the data, say so. "
        "Reference every row you use by its bracketed marker, for example [1]."
    )


def cited_positions(answer: str, count: int) -> List[int]:
    """
    Return 0-based positions (< count) whose markers appear in `answer`,
    in ascending order.
    """
    found: Set[int] = set()
    for group in _MARKER_GROUP.finditer(answer):
        for number in _NUMBER.findall(group.group(1)):
            position = int(number) - 1
            if 0 <= position < count:
                found.add(position)
    return sorted(found)
