"""
Typed progress events streamed to the caller while a run advances.

The stream is a closed tagged union on ``type``. Stage and area values are
typed on the producing side; unknown strings are still accepted when parsing
so older consumers keep working against newer producers.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from app.schemas.base import CamelModel
from app.schemas.pipeline import PipelineResult
from app.schemas.research import ResearchTopic, TaskStatus, TokenUsage


class PipelineStage(str, Enum):
    """Stage names as they appear on the wire."""

    IDENTIFYING = "identifying"
    CHECKING_CRM = "checking"
    RESEARCHING = "researching"
    SYNTHESIZING = "synthesizing"
    GENERATING_MEMO = "generating"
    SAVING = "saving"
    COMPLETE = "complete"


class StageProgressEvent(CamelModel):
    terminal: ClassVar[bool] = False

    type: Literal["progress"] = "progress"
    stage: Union[PipelineStage, str]
    message: str


class ResearchStatusEvent(CamelModel):
    terminal: ClassVar[bool] = False

    type: Literal["research"] = "research"
    area: Union[ResearchTopic, str]
    status: TaskStatus
    usage: Optional[TokenUsage] = None


class ResultEvent(CamelModel):
    terminal: ClassVar[bool] = True

    type: Literal["result"] = "result"
    data: PipelineResult


class ErrorEvent(CamelModel):
    terminal: ClassVar[bool] = True

    type: Literal["error"] = "error"
    message: str


ProgressEvent = Annotated[
    Union[StageProgressEvent, ResearchStatusEvent, ResultEvent, ErrorEvent],
    Field(discriminator="type"),
]

_EVENT_ADAPTER: TypeAdapter[ProgressEvent] = TypeAdapter(ProgressEvent)


def parse_progress_event(payload: dict[str, Any] | str | bytes) -> ProgressEvent:
    """Validate a decoded (or raw JSON) event payload."""
    if isinstance(payload, (str, bytes)):
        return _EVENT_ADAPTER.validate_json(payload)
    return _EVENT_ADAPTER.validate_python(payload)


def to_sse(event: ProgressEvent) -> str:
    """Render an event using ``text/event-stream`` data framing."""
    body = event.model_dump_json(by_alias=True, exclude_none=True)
    return f"data: {body}\n\n"


__all__ = [
    "ErrorEvent",
    "PipelineStage",
    "ProgressEvent",
    "ResearchStatusEvent",
    "ResultEvent",
    "StageProgressEvent",
    "parse_progress_event",
    "to_sse",
]
