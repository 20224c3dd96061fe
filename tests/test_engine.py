"""
Engine Integration Tests

Runs the full command surface against a fake Ollama server:
ingestion counts, partial embedding failures, re-ingestion, the
single-ingestion guard and model selection.
"""

import asyncio

import pytest

from interview_rag.core.errors import (
    AlreadyIndexing,
    InvalidFolder,
    ModelNotFound,
    NotIndexed,
    ServiceUnavailable,
)
from interview_rag.engine import Phase

from conftest import FakeOllama, make_engine, write_csv


@pytest.mark.asyncio
async def test_ask_before_ingestion_is_rejected(fake_ollama):
    engine = make_engine(fake_ollama)

    with pytest.raises(NotIndexed):
        await engine.ask("anything?")

    status = engine.get_status()
    assert status.indexed is False
    assert status.chunk_count == 0
    assert status.data_folder is None
    assert status.selected_model == "llama3"


@pytest.mark.asyncio
async def test_ingest_counts_rows_and_files(tmp_path, fake_ollama):
    write_csv(tmp_path / "a.csv", ["Q", "A"], [["q1", "a1"], ["q2", "a2"], ["q3", "a3"]])
    write_csv(tmp_path / "b.csv", ["Q", "A"], [["q4", "a4"], ["q5", "a5"]])
    engine = make_engine(fake_ollama)

    result = await engine.ingest(str(tmp_path))

    assert result.success is True
    assert result.files_processed == 2
    assert result.documents_ingested == 5
    assert result.files_failed == 0
    assert result.message == "Successfully indexed 5 rows from 2 file(s)."

    status = engine.get_status()
    assert status.indexed is True
    assert status.chunk_count == 5
    assert status.data_folder == str(tmp_path)
    assert status.ingestion_in_progress is False
    assert status.built_at is not None


@pytest.mark.asyncio
async def test_folder_without_parseable_files(tmp_path, fake_ollama):
    (tmp_path / "readme.txt").write_text("nothing tabular", encoding="utf-8")
    (tmp_path / "broken.xlsx").write_bytes(b"garbage")
    engine = make_engine(fake_ollama)

    result = await engine.ingest(str(tmp_path))

    assert result.success is True
    assert result.documents_ingested == 0
    assert result.files_processed == 0
    assert result.files_failed == 1
    assert result.warnings[0].startswith("broken.xlsx:")
    assert engine.get_status().indexed is False
    assert fake_ollama.calls("/api/embed") == []

    with pytest.raises(NotIndexed):
        await engine.ask("anything?")


@pytest.mark.asyncio
async def test_bad_file_does_not_fail_ingestion(tmp_path, fake_ollama):
    write_csv(tmp_path / "good.csv", ["Q"], [["fast onboarding"]])
    (tmp_path / "bad.xlsx").write_bytes(b"garbage")
    engine = make_engine(fake_ollama)

    result = await engine.ingest(str(tmp_path))

    assert result.success is True
    assert result.documents_ingested == 1
    assert result.files_processed == 1
    assert result.files_failed == 1
    assert "1 file(s) could not be parsed" in result.message


@pytest.mark.asyncio
async def test_partial_embedding_failure_drops_one_batch(tmp_path):
    write_csv(tmp_path / "notes.csv", ["Note"], [[f"note {i}"] for i in range(50)])
    fake = FakeOllama(fail_embed=lambda inputs: "Note: note 20" in inputs)
    engine = make_engine(fake, batch_size=10)

    result = await engine.ingest(str(tmp_path))

    assert result.success is True
    assert result.documents_ingested == 40
    assert "partial failure" in result.message.lower()

    status = engine.get_status()
    assert status.indexed is True
    assert status.chunk_count == 40

    fake.answer = "See [1]."
    answer = await engine.ask("which note?")
    assert len(answer.sources) == 1
    assert answer.sources[0].startswith("notes.csv, Row ")


@pytest.mark.asyncio
async def test_all_batches_failing_keeps_previous_index(tmp_path, feedback_folder):
    fake = FakeOllama()
    engine = make_engine(fake)
    await engine.ingest(str(feedback_folder))

    other = tmp_path / "other"
    other.mkdir()
    write_csv(other / "b.csv", ["Q"], [["x"], ["y"]])
    fake.fail_embed = lambda inputs: True

    result = await engine.ingest(str(other))

    assert result.success is False
    assert result.documents_ingested == 0
    status = engine.get_status()
    assert status.indexed is True
    assert status.chunk_count == 3
    assert status.data_folder == str(feedback_folder)


@pytest.mark.asyncio
async def test_feedback_scenario_cites_row_two(feedback_folder):
    fake = FakeOllama(answer="Customers dislike the pricing [1].")
    engine = make_engine(fake)
    await engine.ingest(str(feedback_folder))

    answer = await engine.ask("what do customers dislike?")

    assert answer.answer == "Customers dislike the pricing [1]."
    assert answer.sources == ["A.csv, Row 2"]
    _, _, body = fake.calls("/api/chat")[-1]
    assert body["model"] == "llama3"


@pytest.mark.asyncio
async def test_reingestion_replaces_previous_corpus(tmp_path, feedback_folder):
    fake = FakeOllama(answer="[1] [2] [3] [4] [5]")
    engine = make_engine(fake)
    await engine.ingest(str(feedback_folder))

    other = tmp_path / "second"
    other.mkdir()
    write_csv(other / "B.csv", ["Feedback"], [["wants mobile support"], ["likes fast onboarding"]])

    result = await engine.ingest(str(other))
    answer = await engine.ask("what do customers dislike?")

    assert result.documents_ingested == 2
    assert engine.get_status().chunk_count == 2
    assert answer.sources
    assert all(source.startswith("B.csv") for source in answer.sources)


@pytest.mark.asyncio
async def test_concurrent_ingestion_is_rejected(feedback_folder, fake_ollama):
    engine = make_engine(fake_ollama)

    first = asyncio.create_task(engine.ingest(str(feedback_folder)))
    await asyncio.sleep(0)

    assert engine.state.phase is Phase.INDEXING
    assert engine.get_status().ingestion_in_progress is True
    with pytest.raises(NotIndexed):
        await engine.ask("anything?")
    with pytest.raises(AlreadyIndexing):
        await engine.ingest(str(feedback_folder))

    result = await first
    assert result.success is True
    assert engine.state.phase is Phase.READY


@pytest.mark.asyncio
async def test_unreachable_service_aborts_before_embedding(feedback_folder):
    fake = FakeOllama(unreachable=True)
    engine = make_engine(fake)

    with pytest.raises(ServiceUnavailable):
        await engine.ingest(str(feedback_folder))

    assert fake.calls("/api/embed") == []
    assert engine.state.phase is Phase.EMPTY
    assert engine.get_status().ingestion_in_progress is False


@pytest.mark.asyncio
async def test_invalid_folder_leaves_state_untouched(tmp_path, fake_ollama):
    engine = make_engine(fake_ollama)

    with pytest.raises(InvalidFolder):
        await engine.ingest(str(tmp_path / "missing"))

    assert engine.state.phase is Phase.EMPTY
    # The guard was released, so a new ingestion may start.
    write_csv(tmp_path / "a.csv", ["Q"], [["x"]])
    assert (await engine.ingest(str(tmp_path))).success is True


@pytest.mark.asyncio
async def test_set_chat_model(feedback_folder):
    fake = FakeOllama(
        models=["nomic-embed-text:latest", "llama3:latest", "mistral:7b"],
        answer="ok",
    )
    engine = make_engine(fake)

    await engine.set_chat_model("mistral:7b")
    assert engine.get_status().selected_model == "mistral:7b"

    await engine.set_chat_model("llama3")
    assert engine.get_status().selected_model == "llama3"

    with pytest.raises(ModelNotFound):
        await engine.set_chat_model("nomic-embed-text")
    with pytest.raises(ModelNotFound):
        await engine.set_chat_model("gemma")
    assert engine.get_status().selected_model == "llama3"

    await engine.set_chat_model("mistral:7b")
    await engine.ingest(str(feedback_folder))
    await engine.ask("anything?")
    _, _, body = fake.calls("/api/chat")[-1]
    assert body["model"] == "mistral:7b"


@pytest.mark.asyncio
async def test_model_listing_and_service_status(fake_ollama):
    engine = make_engine(fake_ollama)

    models = await engine.list_available_models()
    status = await engine.check_service_status()

    assert [m.name for m in models] == ["llama3:latest"]
    assert status.running is True
    assert status.has_embedding_model is True
    assert status.chat_model_count == 1
