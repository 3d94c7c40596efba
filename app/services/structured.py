"""Helpers for structured JSON generation against a pydantic schema."""

from __future__ import annotations

import json
import logging
from typing import Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.clients.gemini import GeminiClient, parse_json_payload
from app.core.errors import StructuredOutputError
from app.schemas.research import TokenUsage
from app.schemas.triage import FileAttachment

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def schema_instructions(model: Type[BaseModel]) -> str:
    """Describe the JSON document the model must return."""
    schema = json.dumps(model.model_json_schema(by_alias=True), indent=2)
    return (
        "Respond with a single JSON object (no markdown fences, no commentary) "
        "that validates against this JSON schema:\n"
        f"{schema}"
    )


async def generate_structured(
    gemini: GeminiClient,
    *,
    stage: str,
    prompt: str,
    model: Type[ModelT],
    files: Sequence[FileAttachment] = (),
) -> tuple[ModelT, TokenUsage]:
    """Run one JSON generation call and validate the reply against ``model``.

    Malformed or non-conforming replies raise ``StructuredOutputError``; no
    retry is attempted.
    """
    result = await gemini.generate_json(
        prompt=f"{prompt}\n\n{schema_instructions(model)}", files=files
    )
    if not result.text.strip():
        raise StructuredOutputError(stage, "empty response")
    try:
        payload = parse_json_payload(result.text)
    except json.JSONDecodeError as exc:
        raise StructuredOutputError(stage, f"invalid JSON ({exc.msg})") from exc
    try:
        parsed = model.model_validate(payload)
    except ValidationError as exc:
        logger.debug("Rejected %s payload: %s", stage, payload)
        raise StructuredOutputError(stage, _summarize_errors(exc)) from exc
    return parsed, result.usage


def _summarize_errors(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors()[:5]:
        location = ".".join(str(part) for part in error["loc"]) or "<root>"
        messages.append(f"{location}: {error['msg']}")
    if exc.error_count() > 5:
        messages.append(f"... {exc.error_count() - 5} more")
    return "; ".join(messages)


__all__ = ["generate_structured", "schema_instructions"]
