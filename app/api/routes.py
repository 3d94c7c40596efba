"""
FastAPI routes for the research pipeline service.
"""

from __future__ import annotations

import json
import logging
import mimetypes
import uuid
from http import HTTPStatus
from typing import Annotated, AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from agents.research_pipeline.controller import PipelineRun, PipelineRunner
from app.core.config import AppSettings, UploadSettings
from app.dependencies import get_app_settings, get_pipeline_runner
from app.schemas import FileAttachment, ProcessPayload, ResearchRequest

router = APIRouter()
logger = logging.getLogger(__name__)

_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post(
    "/process",
    status_code=HTTPStatus.OK,
    response_class=StreamingResponse,
    responses={
        HTTPStatus.BAD_REQUEST: {"description": "Missing or malformed input."},
        HTTPStatus.REQUEST_ENTITY_TOO_LARGE: {"description": "Upload size limit exceeded."},
    },
)
async def process_company(
    request: Request,
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    runner: Annotated[PipelineRunner, Depends(get_pipeline_runner)],
) -> StreamingResponse:
    """Start a research run and stream its progress as server-sent events.

    Accepts either ``{"input": "..."}`` as JSON or a multipart form with an
    ``input`` text field and any number of file parts.
    """
    research_request = await _parse_research_request(request, settings.uploads)
    run = runner.start(research_request)
    logger.info(
        "Accepted research run %s (text=%r, files=%d)",
        run.run_id,
        research_request.text[:80],
        len(research_request.files),
    )
    return StreamingResponse(
        _stream_run(run, runner),
        media_type="text/event-stream",
        headers=_STREAM_HEADERS,
    )


async def _stream_run(run: PipelineRun, runner: PipelineRunner) -> AsyncIterator[str]:
    finished = False
    try:
        async for frame in run.channel.sse():
            yield frame
        finished = True
    finally:
        if not finished:
            runner.detach(run)


async def _parse_research_request(
    request: Request, limits: UploadSettings
) -> ResearchRequest:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        research_request = await _parse_multipart(request, limits)
    else:
        research_request = await _parse_json(request)

    if not research_request.text.strip() and not research_request.files:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Provide a company name in 'input' or upload at least one file.",
        )
    return research_request


async def _parse_json(request: Request) -> ResearchRequest:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Request body must be JSON with an 'input' field.",
        ) from exc
    try:
        payload = ProcessPayload.model_validate(body)
    except ValidationError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Invalid request body: {exc.errors(include_url=False)}",
        ) from exc
    return ResearchRequest(text=payload.input)


async def _parse_multipart(request: Request, limits: UploadSettings) -> ResearchRequest:
    form = await request.form()
    text_value = form.get("input")
    text = text_value if isinstance(text_value, str) else ""

    files: list[FileAttachment] = []
    total = 0
    try:
        for _, value in form.multi_items():
            if not isinstance(value, UploadFile):
                continue
            data = await value.read()
            filename = value.filename or f"upload-{len(files) + 1}"
            if len(data) > limits.max_file_bytes:
                raise HTTPException(
                    status_code=HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
                    detail=(
                        f"File '{filename}' exceeds the {_megabytes(limits.max_file_bytes)} "
                        "per-file limit."
                    ),
                )
            total += len(data)
            if total > limits.max_total_bytes:
                raise HTTPException(
                    status_code=HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
                    detail=f"Total upload size exceeds the {_megabytes(limits.max_total_bytes)} limit.",
                )
            if not data:
                logger.info("Skipping empty upload '%s'", filename)
                continue
            files.append(
                FileAttachment(
                    id=f"file-{len(files)}-{uuid.uuid4().hex[:8]}",
                    data=data,
                    mime_type=_mime_type(value, filename),
                    filename=filename,
                )
            )
    finally:
        await form.close()
    return ResearchRequest(text=text, files=tuple(files))


def _mime_type(upload: UploadFile, filename: str) -> str:
    if upload.content_type and upload.content_type != "application/octet-stream":
        return upload.content_type
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or upload.content_type or "application/octet-stream"


def _megabytes(size: int) -> str:
    return f"{size / (1024 * 1024):g}MB"


__all__ = ["router"]
