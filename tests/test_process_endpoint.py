try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json

import httpx
import pytest

from agents.research_pipeline.controller import PipelineRunner
from app.core.config import AppSettings, UploadSettings
from app.main import app
from app.schemas import (
    ErrorEvent,
    PipelineStage,
    ResearchStatusEvent,
    ResearchTopic,
    StageProgressEvent,
    TaskStatus,
)


class RecordingPipeline:
    """Publishes a short scripted run and remembers each request."""

    def __init__(self) -> None:
        self.requests = []

    async def run(self, request, channel, *, run_id=None):
        self.requests.append(request)
        channel.publish(
            StageProgressEvent(stage=PipelineStage.IDENTIFYING, message=f"Researching: {request.text}")
        )
        channel.publish(ResearchStatusEvent(area=ResearchTopic.BASICS, status=TaskStatus.IN_PROGRESS))
        channel.publish(ErrorEvent(message="stopped by test"))


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture()
def pipeline():
    from app import dependencies

    recording = RecordingPipeline()
    runner = PipelineRunner(recording)
    settings = AppSettings(uploads=UploadSettings(max_file_bytes=16, max_total_bytes=24))

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_pipeline_runner: lambda: runner,
            dependencies.get_app_settings: lambda: settings,
        }
    )
    yield recording
    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


def _decode(body: str) -> list[dict]:
    frames = [frame for frame in body.split("\n\n") if frame]
    assert all(frame.startswith("data: ") for frame in frames)
    return [json.loads(frame[len("data: "):]) for frame in frames]


async def test_health() -> None:
    async with _client() as client:
        response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_json_request_streams_events(pipeline) -> None:
    async with _client() as client:
        response = await client.post("/api/process", json={"input": "Acme Robotics"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    events = _decode(response.text)
    assert [event["type"] for event in events] == ["progress", "research", "error"]
    assert events[0] == {"type": "progress", "stage": "identifying", "message": "Researching: Acme Robotics"}
    assert events[1] == {"type": "research", "area": "basics", "status": "in_progress"}
    assert pipeline.requests[0].text == "Acme Robotics"
    assert pipeline.requests[0].files == ()


async def test_multipart_request_collects_files(pipeline) -> None:
    async with _client() as client:
        response = await client.post(
            "/api/process",
            data={"input": "Series A robotics"},
            files=[
                ("files", ("deck.pdf", b"%PDF-1.4 deck", "application/pdf")),
                ("files", ("empty.txt", b"", "text/plain")),
                ("files", ("notes.txt", b"team", "application/octet-stream")),
            ],
        )

    assert response.status_code == 200
    request = pipeline.requests[0]
    assert request.text == "Series A robotics"
    assert [attachment.filename for attachment in request.files] == ["deck.pdf", "notes.txt"]
    assert request.files[0].mime_type == "application/pdf"
    assert request.files[0].data == b"%PDF-1.4 deck"
    assert request.files[1].mime_type == "text/plain"
    assert request.files[0].id.startswith("file-0-")
    assert request.files[1].id.startswith("file-1-")


async def test_files_without_text_are_accepted(pipeline) -> None:
    async with _client() as client:
        response = await client.post(
            "/api/process",
            files=[("files", ("deck.pdf", b"%PDF deck", "application/pdf"))],
        )

    assert response.status_code == 200
    assert pipeline.requests[0].text == ""


@pytest.mark.parametrize(
    "kwargs",
    [
        {"json": {"input": "   "}},
        {"json": {}},
        {"content": b"not json", "headers": {"content-type": "application/json"}},
        {"json": {"input": 42}},
    ],
)
async def test_missing_or_malformed_input_is_rejected(pipeline, kwargs) -> None:
    async with _client() as client:
        response = await client.post("/api/process", **kwargs)

    assert response.status_code == 400
    assert pipeline.requests == []


async def test_empty_request_message(pipeline) -> None:
    async with _client() as client:
        response = await client.post("/api/process", json={"input": ""})

    assert response.status_code == 400
    assert response.json()["detail"] == (
        "Provide a company name in 'input' or upload at least one file."
    )


async def test_oversized_file_is_rejected(pipeline) -> None:
    async with _client() as client:
        response = await client.post(
            "/api/process",
            data={"input": "Acme"},
            files=[("files", ("deck.pdf", b"x" * 17, "application/pdf"))],
        )

    assert response.status_code == 413
    assert "deck.pdf" in response.json()["detail"]
    assert pipeline.requests == []


async def test_total_upload_limit_is_enforced(pipeline) -> None:
    async with _client() as client:
        response = await client.post(
            "/api/process",
            data={"input": "Acme"},
            files=[
                ("files", ("a.pdf", b"x" * 12, "application/pdf")),
                ("files", ("b.pdf", b"y" * 13, "application/pdf")),
            ],
        )

    assert response.status_code == 413
    assert "Total upload size" in response.json()["detail"]


async def test_rejected_upload_still_closes_the_form(pipeline, monkeypatch) -> None:
    from starlette.datastructures import FormData

    closed = []
    original_close = FormData.close

    async def _recording_close(self):
        closed.append([key for key, _ in self.multi_items()])
        await original_close(self)

    monkeypatch.setattr(FormData, "close", _recording_close)

    async with _client() as client:
        response = await client.post(
            "/api/process",
            data={"input": "Acme"},
            files=[("files", ("deck.pdf", b"x" * 17, "application/pdf"))],
        )

    assert response.status_code == 413
    assert closed and "files" in closed[0]
