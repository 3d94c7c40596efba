"""Parallel, search-augmented research across the fixed topic set."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Mapping, Optional, Protocol

from app.clients.gemini import GenerationResult
from app.schemas.research import (
    RESEARCH_TOPICS,
    ParallelResearchResult,
    ResearchTopic,
    TaskStatus,
    TokenUsage,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ResearchTopic, TaskStatus, Optional[TokenUsage]], None]


class Researcher(Protocol):
    async def research(self, prompt: str) -> GenerationResult:  # pragma: no cover - protocol
        ...


class InvalidStatusTransition(RuntimeError):
    """Raised when a topic status would regress or skip a step."""

    def __init__(self, topic: ResearchTopic, current: TaskStatus, requested: TaskStatus) -> None:
        super().__init__(
            f"Cannot move research topic '{topic.value}' from {current.value} to {requested.value}"
        )
        self.topic = topic
        self.current = current
        self.requested = requested


_TOPIC_QUESTIONS: dict[ResearchTopic, str] = {
    ResearchTopic.BASICS: """\
Search for basic information about "{company}" company:
- What does the company do? (one paragraph description)
- What industry/sector are they in?
- What stage are they at? (pre-seed, seed, Series A, etc.)
- Where are they headquartered?
- What is their website?

Be thorough and cite specific facts.""",
    ResearchTopic.FOUNDERS: """\
Search for founder information about "{company}" company:
- Who are the founders and co-founders?
- What are their roles/titles?
- What is their professional background? (previous companies, education)
- Any notable achievements or credentials?

Focus on finding specific names and verifiable background info.""",
    ResearchTopic.FUNDING: """\
Search for funding information about "{company}" company:
- How much total funding have they raised?
- What was their most recent funding round?
- When did the last round close?
- Who are their investors? (VCs, angels, strategics)
- Any notable investors or lead investors?

Look for specific dollar amounts and investor names.""",
    ResearchTopic.PRODUCT: """\
Search for product and traction information about "{company}" company:
- What is their main product or service?
- What technology do they use or build?
- Who are their customers/users?
- Any metrics on traction? (users, revenue, growth)
- What problems do they solve?

Focus on product details and any available traction metrics.""",
    ResearchTopic.COMPETITIVE: """\
Search for competitive landscape information about "{company}" company:
- Who are their main competitors?
- How do they differentiate themselves?
- What is the market size/opportunity?
- What are their competitive advantages or moats?

Identify specific competitor names and differentiation points.""",
    ResearchTopic.NEWS: """\
Search for recent news and momentum about "{company}" company:
- Any recent news articles or press releases?
- Any product launches or major announcements?
- Any partnerships or customer wins?
- Any awards or recognition?
- Any hiring activity or expansion?

Focus on news from the last 6-12 months. Include the source and date of each item.""",
}

_CONTEXT_PREFIX = """\
IMPORTANT: Use this information from uploaded files as a primary source. \
Verify and supplement with web search:

{context}

---

Now search for additional/updated information:

"""


def build_topic_prompt(
    topic: ResearchTopic, company: str, context: Optional[str] = None
) -> str:
    """Return the search prompt for ``topic``, prefixed by file context if any."""
    prompt = _TOPIC_QUESTIONS[topic].format(company=company)
    if context:
        return _CONTEXT_PREFIX.format(context=context) + prompt
    return prompt


class TopicStatusBoard:
    """Per-run status of every topic; transitions only move forward."""

    def __init__(self, on_progress: Optional[ProgressCallback] = None) -> None:
        self._statuses = {topic: TaskStatus.PENDING for topic in RESEARCH_TOPICS}
        self._on_progress = on_progress

    def status(self, topic: ResearchTopic) -> TaskStatus:
        return self._statuses[topic]

    def snapshot(self) -> dict[ResearchTopic, TaskStatus]:
        return dict(self._statuses)

    def advance(
        self,
        topic: ResearchTopic,
        status: TaskStatus,
        usage: Optional[TokenUsage] = None,
    ) -> None:
        current = self._statuses[topic]
        if not current.can_transition_to(status):
            raise InvalidStatusTransition(topic, current, status)
        self._statuses[topic] = status
        if self._on_progress is not None:
            self._on_progress(topic, status, usage)


class ParallelResearchOrchestrator:
    """Run one research query per topic concurrently and wait for all of them."""

    def __init__(
        self,
        researcher: Researcher,
        *,
        topic_timeout_seconds: Optional[float] = None,
        input_cost_per_mtok: float = 0.0,
        output_cost_per_mtok: float = 0.0,
    ) -> None:
        self._researcher = researcher
        self._timeout = topic_timeout_seconds
        self._input_cost = input_cost_per_mtok
        self._output_cost = output_cost_per_mtok

    async def run(
        self,
        company: str,
        context: Optional[Mapping[ResearchTopic, str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ParallelResearchResult:
        context = context or {}
        board = TopicStatusBoard(on_progress)
        texts: dict[ResearchTopic, str] = {}
        errors: dict[ResearchTopic, str] = {}
        usages: dict[ResearchTopic, TokenUsage] = {}

        async def _run_topic(topic: ResearchTopic) -> None:
            board.advance(topic, TaskStatus.IN_PROGRESS)
            prompt = build_topic_prompt(topic, company, context.get(topic))
            try:
                if self._timeout:
                    result = await asyncio.wait_for(
                        self._researcher.research(prompt), timeout=self._timeout
                    )
                else:
                    result = await self._researcher.research(prompt)
            except asyncio.TimeoutError:
                logger.warning(
                    "Research topic '%s' for '%s' timed out after %.1fs",
                    topic.value,
                    company,
                    self._timeout,
                )
                texts[topic] = ""
                errors[topic] = f"Timed out after {self._timeout:g} seconds"
                board.advance(topic, TaskStatus.ERROR)
                return
            except Exception as exc:
                logger.warning(
                    "Research topic '%s' for '%s' failed: %s", topic.value, company, exc
                )
                texts[topic] = ""
                errors[topic] = str(exc) or exc.__class__.__name__
                board.advance(topic, TaskStatus.ERROR)
                return

            texts[topic] = result.text
            usages[topic] = result.usage
            board.advance(topic, TaskStatus.COMPLETED, result.usage)

        await asyncio.gather(*(_run_topic(topic) for topic in RESEARCH_TOPICS))

        usage = TokenUsage.sum(usages.get(topic) for topic in RESEARCH_TOPICS)
        cost = usage.estimate_cost(
            input_per_mtok=self._input_cost, output_per_mtok=self._output_cost
        )
        result = ParallelResearchResult(
            texts={topic: texts.get(topic, "") for topic in RESEARCH_TOPICS},
            statuses=board.snapshot(),
            errors=errors,
            usage=usage,
            estimated_cost_usd=cost,
        )
        failed = result.failed_topics
        logger.info(
            "Research for '%s' finished: %d/%d topics completed, %d tokens (~$%.4f)%s",
            company,
            len(RESEARCH_TOPICS) - len(failed),
            len(RESEARCH_TOPICS),
            usage.total_tokens,
            cost,
            f"; failed: {', '.join(topic.value for topic in failed)}" if failed else "",
        )
        return result


__all__ = [
    "InvalidStatusTransition",
    "ParallelResearchOrchestrator",
    "ProgressCallback",
    "Researcher",
    "TopicStatusBoard",
    "build_topic_prompt",
]
