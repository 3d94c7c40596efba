try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio
import json

import pytest

from app.schemas import (
    ErrorEvent,
    PipelineStage,
    ResearchStatusEvent,
    ResearchTopic,
    StageProgressEvent,
    TaskStatus,
    TokenUsage,
    to_sse,
)
from app.services.progress import ProgressChannel, ProgressChannelClosed


@pytest.mark.asyncio
async def test_events_arrive_in_publish_order_and_stop_after_terminal() -> None:
    channel = ProgressChannel("run-1")
    channel.publish(StageProgressEvent(stage=PipelineStage.CHECKING_CRM, message="Checking CRM for existing record..."))
    channel.publish(ResearchStatusEvent(area=ResearchTopic.BASICS, status=TaskStatus.IN_PROGRESS))
    channel.publish(ErrorEvent(message="boom"))

    received = [event async for event in channel.events()]

    assert [event.type for event in received] == ["progress", "research", "error"]
    assert channel.closed


def test_publishing_after_terminal_event_fails() -> None:
    channel = ProgressChannel("run-2")
    channel.publish(ErrorEvent(message="first"))

    with pytest.raises(ProgressChannelClosed):
        channel.publish(ErrorEvent(message="second"))
    assert len(channel.history) == 1


@pytest.mark.asyncio
async def test_consumer_waits_for_a_slow_producer() -> None:
    channel = ProgressChannel()

    async def _produce() -> None:
        await asyncio.sleep(0.01)
        channel.publish(StageProgressEvent(stage=PipelineStage.SAVING, message="Saving to CRM..."))
        await asyncio.sleep(0.01)
        channel.publish(ErrorEvent(message="CRM unavailable"))

    producer = asyncio.create_task(_produce())
    frames = [frame async for frame in channel.sse()]
    await producer

    assert len(frames) == 2
    assert all(frame.startswith("data: ") and frame.endswith("\n\n") for frame in frames)
    first = json.loads(frames[0][len("data: "):])
    assert first == {"type": "progress", "stage": "saving", "message": "Saving to CRM..."}


def test_research_frames_use_camel_case_usage() -> None:
    frame = to_sse(
        ResearchStatusEvent(
            area=ResearchTopic.FUNDING,
            status=TaskStatus.COMPLETED,
            usage=TokenUsage(input_tokens=10, output_tokens=4),
        )
    )

    body = json.loads(frame[len("data: "):])
    assert body == {
        "type": "research",
        "area": "funding",
        "status": "completed",
        "usage": {"inputTokens": 10, "outputTokens": 4, "totalTokens": 14},
    }
