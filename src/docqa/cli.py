from __future__ import annotations

import argparse
from dataclasses import asdict
import json
from pathlib import Path
import sys
from typing import Any

from docqa.logging_utils import setup_logging
from docqa.services.rag import DocumentSession
from docqa.services.rag.prompts import WRITING_MODES


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docqa",
        description="Ask questions about local documents using an LLM inference service",
    )
    parser.add_argument(
        "--keyword-search",
        action="store_true",
        help="Skip the embedding model and rank passages by keyword overlap",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ask = subparsers.add_parser("ask", help="Answer a question grounded in the documents")
    ask.add_argument("files", nargs="+", type=Path)
    ask.add_argument("--question", "-q", required=True)

    for name, help_text in (
        ("compare", "List similarities and differences between documents"),
        ("contradictions", "Find contradictions and information gaps"),
        ("questions", "Suggest questions to ask about the documents"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("files", nargs="+", type=Path)

    debate = subparsers.add_parser("debate", help="Simulate a debate between documents")
    debate.add_argument("files", nargs="+", type=Path)
    debate.add_argument("--topic", required=True)

    write = subparsers.add_parser("write", help="Writing assistance grounded in the documents")
    write.add_argument("files", nargs="+", type=Path)
    write.add_argument("--prompt", required=True)
    write.add_argument("--mode", choices=sorted(WRITING_MODES), default="draft")

    return parser


def _run_command(session: DocumentSession, args: argparse.Namespace) -> Any:
    documents = [session.upload_document(path.name, path.read_bytes()) for path in args.files]

    if args.command == "ask":
        response = session.query_documents(args.question, documents)
        return asdict(response)
    if args.command == "compare":
        return asdict(session.compare_documents(documents))
    if args.command == "contradictions":
        return asdict(session.detect_contradictions(documents))
    if args.command == "debate":
        return asdict(session.debate_documents(documents, args.topic))
    if args.command == "write":
        return asdict(session.assist_writing(documents, args.prompt, args.mode))
    return {"questions": session.generate_suggested_questions(documents)}


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging()

    session = DocumentSession(semantic_enabled=False if args.keyword_search else None)
    try:
        result = _run_command(session, args)
    except Exception as exc:
        print(f"[docqa] failed: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc
    finally:
        session.close()

    print(json.dumps(result, ensure_ascii=False, indent=2), flush=True)


if __name__ == "__main__":
    main()
