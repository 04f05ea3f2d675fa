"""
Command-line client for the OCR document backend.

Usage:
    ocr-client submit invoice.pdf --document-type invoice --use-llm
    ocr-client batch scans/*.png --json
    ocr-client reprocess 3f1c... --use-llm --save-text out.txt
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from ocr_client.batch import BatchUploadOrchestrator
from ocr_client.core.exceptions import BaseError
from ocr_client.core.logging_config import configure_structured_logging
from ocr_client.core.settings import ClientSettings, get_settings
from ocr_client.models.dto import BatchResult, DocumentResult, ProgressSnapshot
from ocr_client.models.files import DocumentFile
from ocr_client.orchestrator import DocumentUploadOrchestrator
from ocr_client.progress import format_elapsed


class ProgressPrinter:
    """Writes one stderr line per progress message change."""

    def __init__(self, stream=None) -> None:
        self.stream = stream or sys.stderr
        self._last_message: Optional[str] = None

    def __call__(self, snapshot: ProgressSnapshot) -> None:
        if snapshot.message == self._last_message:
            return
        self._last_message = snapshot.message
        position = ""
        if snapshot.total_items:
            position = f" ({snapshot.current_item or 0}/{snapshot.total_items})"
        print(
            f"[{snapshot.percent:3.0f}%] {format_elapsed(snapshot.elapsed_seconds):>7} "
            f"{snapshot.message}{position}",
            file=self.stream,
        )


def save_text(result: DocumentResult, path: str) -> Path:
    """Write the extracted raw text of a result to ``path``."""
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(result.raw_text or "", encoding="utf-8")
    return target


def _print_document(result: DocumentResult, args: argparse.Namespace) -> None:
    if args.save_text:
        saved = save_text(result, args.save_text)
        print(f"Raw text saved to {saved}", file=sys.stderr)
    if args.json:
        print(result.model_dump_json(indent=2))
    else:
        print(result.raw_text or "(no text extracted)")


def _print_batch(result: BatchResult, args: argparse.Namespace) -> None:
    if args.json:
        print(result.model_dump_json(indent=2))
        return
    stats = result.statistics
    print(
        f"Batch {result.batch_id}: {result.status.value} "
        f"({stats.completed}/{stats.total} completed, {stats.error} failed)"
    )
    for doc in result.documents:
        line = f"  {doc.document_id}: {doc.status.value}"
        if doc.error:
            line += f" - {doc.error}"
        print(line)


async def _run_submit(args: argparse.Namespace, settings: ClientSettings) -> int:
    orchestrator = DocumentUploadOrchestrator(on_progress=ProgressPrinter(), settings=settings)
    result = await orchestrator.submit(
        DocumentFile.from_path(args.file),
        extraction_method=args.extraction_method,
        document_type=args.document_type,
        use_llm=args.use_llm,
    )
    _print_document(result, args)
    return 0


async def _run_reprocess(args: argparse.Namespace, settings: ClientSettings) -> int:
    orchestrator = DocumentUploadOrchestrator(on_progress=ProgressPrinter(), settings=settings)
    result = await orchestrator.reprocess(args.document_id, use_llm=args.use_llm)
    _print_document(result, args)
    return 0


async def _run_batch(args: argparse.Namespace, settings: ClientSettings) -> int:
    orchestrator = BatchUploadOrchestrator(on_progress=ProgressPrinter(), settings=settings)
    result = await orchestrator.submit_batch(
        [DocumentFile.from_path(p) for p in args.files],
        extraction_method=args.extraction_method,
        document_type=args.document_type,
    )
    _print_batch(result, args)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ocr-client",
        description="Upload documents to the OCR backend and wait for the results.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def add_extraction_options(p: argparse.ArgumentParser) -> None:
        p.add_argument("--extraction-method", default=None, help="Extraction strategy hint")
        p.add_argument("--document-type", default=None, help="Document type hint (e.g. invoice)")

    def add_output_options(p: argparse.ArgumentParser) -> None:
        p.add_argument("--json", action="store_true", help="Print the full result as JSON")

    submit = sub.add_parser("submit", help="Upload and process one document")
    submit.add_argument("file", help="PDF, JPEG or PNG file")
    add_extraction_options(submit)
    submit.add_argument("--use-llm", action="store_true", default=None, help="Ask for LLM correction")
    submit.add_argument("--save-text", default=None, help="Write the raw text to this file")
    add_output_options(submit)
    submit.set_defaults(handler=_run_submit)

    batch = sub.add_parser("batch", help="Upload several documents as one batch")
    batch.add_argument("files", nargs="+", help="PDF, JPEG or PNG files")
    add_extraction_options(batch)
    add_output_options(batch)
    batch.set_defaults(handler=_run_batch)

    reprocess = sub.add_parser("reprocess", help="Re-run extraction on an uploaded document")
    reprocess.add_argument("document_id")
    reprocess.add_argument("--use-llm", action="store_true", default=None, help="Ask for LLM correction")
    reprocess.add_argument("--save-text", default=None, help="Write the raw text to this file")
    add_output_options(reprocess)
    reprocess.set_defaults(handler=_run_reprocess)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_structured_logging(settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    try:
        return asyncio.run(args.handler(args, settings))
    except KeyboardInterrupt:
        print("Interrupted by user.", file=sys.stderr)
        return 130
    except BaseError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        if args.json:
            print(json.dumps(e.to_dict(), indent=2, default=str))
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
