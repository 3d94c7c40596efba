"""Submit a research request and follow its progress stream in the terminal.

Example usages::

    python -m scripts.watch_stream "Acme Robotics"
    python -m scripts.watch_stream --file deck.pdf --file team.pdf
    python -m scripts.watch_stream "Acme" --base-url http://localhost:8000
"""

from __future__ import annotations

import argparse
import mimetypes
import sys
from collections.abc import Iterable, Iterator
from datetime import datetime
from pathlib import Path

import httpx
from pydantic import ValidationError

from app.schemas.events import (
    ErrorEvent,
    ProgressEvent,
    ResearchStatusEvent,
    ResultEvent,
    StageProgressEvent,
    parse_progress_event,
)

EXIT_OK = 0
EXIT_PIPELINE_ERROR = 1
EXIT_REQUEST_ERROR = 2

_DATA_PREFIX = "data:"


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def iter_events(lines: Iterable[str]) -> Iterator[ProgressEvent]:
    """Decode ``data:`` lines of an event stream, skipping blank separators."""
    for line in lines:
        if not line.startswith(_DATA_PREFIX):
            continue
        payload = line[len(_DATA_PREFIX):].strip()
        if not payload:
            continue
        try:
            yield parse_progress_event(payload)
        except ValidationError as exc:
            print(f"[{_timestamp()}] Skipping unrecognised event: {exc.error_count()} error(s)")


def format_event(event: ProgressEvent) -> str:
    if isinstance(event, StageProgressEvent):
        stage = getattr(event.stage, "value", event.stage)
        return f"[{_timestamp()}] {str(stage).upper():<12} {event.message}"
    if isinstance(event, ResearchStatusEvent):
        area = getattr(event.area, "value", event.area)
        tokens = f" ({event.usage.total_tokens} tokens)" if event.usage else ""
        return f"[{_timestamp()}]   {area:<12} -> {event.status.value}{tokens}"
    if isinstance(event, ResultEvent):
        result = event.data
        card = result.memo.company_scorecard
        return "\n".join(
            [
                f"[{_timestamp()}] RESULT       {result.company}",
                f"    one-liner : {result.memo.one_liner}",
                (
                    f"    scores    : overall {card.overall:.1f} | fund fit "
                    f"{result.memo.fund_fit.score:.1f} | partner fit "
                    f"{result.memo.partner_fit.overall_fit_score:.1f}"
                ),
                (
                    f"    crm       : company={result.crm.company_record_id} "
                    f"opportunity={result.crm.opportunity_id} note={result.crm.note_id}"
                ),
                (
                    f"    usage     : {result.total_usage.total_tokens} tokens in "
                    f"{result.duration_seconds:.1f}s"
                ),
            ]
        )
    if isinstance(event, ErrorEvent):
        return f"[{_timestamp()}] ERROR        {event.message}"
    return f"[{_timestamp()}] {event!r}"


def _build_request_kwargs(text: str, files: list[Path]) -> dict:
    if not files:
        return {"json": {"input": text}}
    uploads = []
    for path in files:
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        uploads.append(("files", (path.name, path.read_bytes(), mime_type)))
    return {"data": {"input": text}, "files": uploads}


def stream_process(
    base_url: str,
    text: str,
    files: list[Path] | None = None,
    *,
    client: httpx.Client | None = None,
) -> Iterator[ProgressEvent]:
    """POST to the process endpoint and yield events until the stream ends."""
    owns_client = client is None
    http = client or httpx.Client(base_url=base_url, timeout=httpx.Timeout(10.0, read=None))
    try:
        with http.stream("POST", "/api/process", **_build_request_kwargs(text, files or [])) as response:
            if response.status_code != httpx.codes.OK:
                response.read()
                raise httpx.HTTPStatusError(
                    f"{response.status_code}: {response.text}",
                    request=response.request,
                    response=response,
                )
            yield from iter_events(response.iter_lines())
    finally:
        if owns_client:
            http.close()


def watch(
    base_url: str,
    text: str,
    files: list[Path] | None = None,
    *,
    client: httpx.Client | None = None,
) -> int:
    print(f"\nWatching research run for {text or [f.name for f in files or []]}")
    exit_code = EXIT_OK
    for event in stream_process(base_url, text, files, client=client):
        print(format_event(event))
        if isinstance(event, ErrorEvent):
            exit_code = EXIT_PIPELINE_ERROR
    return exit_code


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Follow a research run's progress stream.")
    parser.add_argument("input", nargs="?", default="", help="Company name or context text.")
    parser.add_argument(
        "--file",
        dest="files",
        action="append",
        type=Path,
        default=[],
        help="File to upload alongside the request (repeatable).",
    )
    parser.add_argument(
        "--base-url",
        default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if not args.input and not args.files:
        print("Provide a company name or at least one --file.", file=sys.stderr)
        return EXIT_REQUEST_ERROR
    try:
        return watch(args.base_url, args.input, args.files)
    except httpx.HTTPStatusError as exc:
        print(f"Request rejected: {exc}", file=sys.stderr)
        return EXIT_REQUEST_ERROR
    except httpx.HTTPError as exc:
        print(f"Could not reach {args.base_url}: {exc}", file=sys.stderr)
        return EXIT_REQUEST_ERROR


if __name__ == "__main__":  # pragma: no cover - manual execution path
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nStopped watching.")
