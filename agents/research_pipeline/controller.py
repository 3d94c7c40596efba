"""
Run research requests through the workflow and publish their outcome.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from agents.research_pipeline.graph import create_research_graph
from agents.research_pipeline.models import ResearchState
from agents.research_pipeline.tools import ResearchTools
from app.core.errors import PipelineError
from app.schemas.events import ErrorEvent, ResultEvent
from app.schemas.pipeline import PipelineResult, ResearchRequest
from app.schemas.research import TokenUsage
from app.services.progress import ProgressChannel

logger = logging.getLogger(__name__)


class ResearchPipeline:
    """Execute one request end to end and emit exactly one terminal event."""

    def __init__(self, tools: ResearchTools) -> None:
        self._graph = create_research_graph(tools)

    async def run(
        self,
        request: ResearchRequest,
        channel: ProgressChannel,
        *,
        run_id: Optional[str] = None,
    ) -> Optional[PipelineResult]:
        run_id = run_id or channel.run_id or uuid.uuid4().hex
        created_at = datetime.now(timezone.utc)
        initial: ResearchState = {
            "request": request,
            "channel": channel,
            "started_at": time.monotonic(),
        }

        logger.info("Starting research run", extra={"run_id": run_id})
        try:
            final_state = await self._graph.ainvoke(initial)
            result = compose_result(run_id, created_at, final_state)
        except PipelineError as exc:
            logger.error("Research run %s failed: %s", run_id, exc)
            self._fail(channel, str(exc))
            return None
        except Exception as exc:
            logger.exception("Unexpected failure while running research run %s", run_id)
            self._fail(channel, str(exc) or exc.__class__.__name__)
            return None

        channel.publish(ResultEvent(data=result))
        logger.info(
            "Completed research run",
            extra={"run_id": run_id, "company": result.company},
        )
        return result

    @staticmethod
    def _fail(channel: ProgressChannel, message: str) -> None:
        if channel.closed:
            logger.warning("Dropping error for closed channel: %s", message)
            return
        channel.publish(ErrorEvent(message=message))


def compose_result(
    run_id: str, created_at: datetime, state: Dict[str, Any]
) -> PipelineResult:
    """Assemble the result payload from the final workflow state."""
    research = state["research"]
    total_usage = TokenUsage.sum(
        [
            research.usage,
            state.get("triage_usage"),
            state.get("synthesis_usage"),
            state.get("memo_usage"),
        ]
    )
    return PipelineResult(
        id=run_id,
        company=state["company"],
        research=state["record"],
        memo=state["memo"],
        crm=state["crm"],
        created_at=created_at,
        duration_seconds=state["duration_seconds"],
        research_usage=research.usage,
        total_usage=total_usage,
        triage_result=state.get("triage"),
    )


@dataclass(slots=True)
class PipelineRun:
    """Handle on a background run and the channel it reports into."""

    run_id: str
    channel: ProgressChannel
    task: asyncio.Task


class PipelineRunner:
    """Spawn runs as background tasks decoupled from the HTTP connection.

    When ``cancel_on_disconnect`` is false a run keeps going after its client
    stops listening, so the research and CRM write still complete.
    """

    def __init__(self, pipeline: ResearchPipeline, *, cancel_on_disconnect: bool = False) -> None:
        self._pipeline = pipeline
        self._cancel_on_disconnect = cancel_on_disconnect
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_runs(self) -> int:
        return len(self._tasks)

    def start(self, request: ResearchRequest) -> PipelineRun:
        run_id = uuid.uuid4().hex
        channel = ProgressChannel(run_id)
        task = asyncio.create_task(
            self._pipeline.run(request, channel, run_id=run_id),
            name=f"research-run-{run_id}",
        )
        # The event loop only keeps weak references to tasks.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return PipelineRun(run_id=run_id, channel=channel, task=task)

    def detach(self, run: PipelineRun) -> None:
        """Apply the disconnect policy to a run whose client went away."""
        if run.task.done():
            return
        if self._cancel_on_disconnect:
            logger.warning("Client disconnected; cancelling research run %s", run.run_id)
            run.task.cancel()
        else:
            logger.info(
                "Client disconnected; research run %s continues in the background",
                run.run_id,
            )

    async def shutdown(self) -> None:
        """Cancel outstanding runs and wait for them to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["PipelineRun", "PipelineRunner", "ResearchPipeline", "compose_result"]
