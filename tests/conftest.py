"""
Shared test fixtures: a fake Ollama server behind httpx.MockTransport,
deterministic keyword embeddings, and spreadsheet folder builders.
"""

import csv
import json
import re
from pathlib import Path
from typing import Callable, List, Optional

import httpx
import pytest

from interview_rag.embeddings.embedder import Embedder
from interview_rag.engine import Engine, EngineState
from interview_rag.llm.client import LLMClient
from interview_rag.llm.service import OllamaService

OLLAMA_URL = "http://ollama.test"

# Each vocabulary term is one embedding dimension; a token counts when it
# starts with the term ("dislikes" → "dislike", but not "like").
VOCAB = (
    "like", "fast", "onboard", "dislike", "pric",
    "want", "mobile", "support", "customer", "note",
)


def keyword_vector(text: str) -> List[float]:
    tokens = re.findall(r"[a-z]+", text.lower())
    return [float(sum(1 for t in tokens if t.startswith(term))) for term in VOCAB]


class FakeOllama:
    """
    In-process stand-in for the Ollama HTTP API.

    Records every request as (method, path, json body).
    """

    def __init__(
        self,
        models: Optional[List[str]] = None,
        answer: str = "No answer.",
        fail_embed: Optional[Callable[[List[str]], bool]] = None,
        unreachable: bool = False,
        chat_status: int = 200,
    ) -> None:
        self.models = models if models is not None else ["nomic-embed-text:latest", "llama3:latest"]
        self.answer = answer
        self.fail_embed = fail_embed
        self.unreachable = unreachable
        self.chat_status = chat_status
        self.requests: List[tuple] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, body))

        if self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)

        if request.url.path == "/api/tags":
            return httpx.Response(200, json={
                "models": [
                    {"name": name, "size": 1000 + i, "modified_at": "2024-05-01T10:00:00Z"}
                    for i, name in enumerate(self.models)
                ]
            })

        if request.url.path == "/api/embed":
            inputs = body["input"]
            if self.fail_embed and self.fail_embed(inputs):
                return httpx.Response(500, json={"error": "out of memory"})
            return httpx.Response(200, json={
                "model": body["model"],
                "embeddings": [keyword_vector(t) for t in inputs],
            })

        if request.url.path == "/api/chat":
            if self.chat_status != 200:
                return httpx.Response(self.chat_status, json={"error": f"model '{body['model']}' not found"})
            return httpx.Response(200, json={
                "model": body["model"],
                "message": {"role": "assistant", "content": self.answer},
                "done": True,
            })

        return httpx.Response(404, json={"error": "unknown endpoint"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, path: str) -> List[tuple]:
        return [r for r in self.requests if r[1] == path]


def make_engine(fake: FakeOllama, batch_size: int = 10, top_k: int = 5) -> Engine:
    transport = fake.transport
    return Engine(
        embedder=Embedder(
            base_url=OLLAMA_URL,
            batch_size=batch_size,
            max_attempts=3,
            backoff_base=0.0,
            transport=transport,
        ),
        llm=LLMClient(base_url=OLLAMA_URL, transport=transport),
        service=OllamaService(base_url=OLLAMA_URL, transport=transport),
        state=EngineState(selected_model="llama3"),
        top_k=top_k,
    )


def write_csv(path: Path, header: List[str], rows: List[List[str]], delimiter: str = ",") -> Path:
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, delimiter=delimiter)
        writer.writerow(header)
        writer.writerows(rows)
    return path


@pytest.fixture
def fake_ollama() -> FakeOllama:
    return FakeOllama()


@pytest.fixture
def feedback_folder(tmp_path: Path) -> Path:
    """One file, three rows: the customer feedback scenario."""
    folder = tmp_path / "feedback"
    folder.mkdir()
    write_csv(
        folder / "A.csv",
        ["Company", "Feedback"],
        [
            ["Acme", "likes fast onboarding"],
            ["Globex", "dislikes pricing"],
            ["Initech", "wants mobile support"],
        ],
    )
    return folder
