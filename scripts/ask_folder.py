import argparse
import asyncio
import os
import sys

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from interview_rag.core.errors import EngineError
from interview_rag.core.log_config import configure_logging
from interview_rag.engine import Engine


async def main(folder: str, questions: list[str], model: str | None) -> int:
    configure_logging()
    engine = Engine()

    print("Checking Ollama...")
    status = await engine.check_service_status()
    print(f"  {status.message}")
    if not status.running:
        return 1

    if model:
        await engine.set_chat_model(model)

    print(f"Ingesting {folder}...")
    result = await engine.ingest(folder)
    print(f"  {result.message}")
    for warning in result.warnings:
        print(f"  warning: {warning}")

    if not engine.get_status().indexed:
        print("Nothing indexed, no questions to answer.")
        return 1

    for question in questions:
        print(f"\nQ: {question}")
        try:
            answer = await engine.ask(question)
        except EngineError as exc:
            print(f"  error ({exc.code}): {exc.message}")
            continue
        print(f"A: {answer.answer}")
        for source in answer.sources:
            print(f"   - {source}")

    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Index a folder of interview spreadsheets and ask questions.")
    parser.add_argument("folder", help="Folder containing CSV/Excel files")
    parser.add_argument("questions", nargs="+", help="Questions to ask")
    parser.add_argument("--model", help="Chat model to use (default from settings)")
    args = parser.parse_args()

    sys.exit(asyncio.run(main(args.folder, args.questions, args.model)))
