"""
LangGraph workflow definition for the research pipeline.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from langgraph.graph import END, START, StateGraph

from agents.research_pipeline.models import ResearchState
from agents.research_pipeline.tools import ResearchTools
from app.core.errors import CRMError, PipelineInputError
from app.schemas.events import PipelineStage, ResearchStatusEvent, StageProgressEvent
from app.schemas.research import RESEARCH_TOPICS, UNKNOWN, ResearchTopic, TaskStatus, TokenUsage
from app.services.triage import build_attachment_references, build_research_context

logger = logging.getLogger(__name__)


def _announce(state: ResearchState, stage: PipelineStage, message: str) -> None:
    state["channel"].publish(StageProgressEvent(stage=stage, message=message))


def resolve_company_name(triage_name: Optional[str], text: str) -> str:
    """Prefer the name found in the files, then the submitted text."""
    candidate = (triage_name or "").strip()
    if candidate and candidate != UNKNOWN:
        return candidate
    candidate = text.strip()
    if candidate:
        return candidate
    raise PipelineInputError(
        "Could not determine company name. Please provide a company name or upload "
        "files that identify the company."
    )


async def _identify(state: ResearchState, tools: ResearchTools) -> ResearchState:
    """Triage uploads when present and settle on the company name."""
    request = state["request"]
    if request.has_files:
        _announce(
            state,
            PipelineStage.IDENTIFYING,
            f"Analyzing {len(request.files)} file(s)...",
        )
        outcome = await tools.triage_files(request.files, request.text or None)
        triage = outcome.result
        state["triage"] = triage
        state["triage_usage"] = outcome.usage
        state["context"] = build_research_context(triage)
        state["attachment_references"] = build_attachment_references(triage)
        state["company"] = resolve_company_name(triage.company_name, request.text)
        used = sum(1 for item in triage.files if item.use_in_research)
        logger.info(
            "Identified '%s' from files; using %d/%d file(s) (confidence %.0f%%)",
            state["company"],
            used,
            len(request.files),
            triage.confidence * 100,
        )
        return state

    _announce(state, PipelineStage.IDENTIFYING, f"Researching: {request.text.strip()}")
    state["triage"] = None
    state["triage_usage"] = TokenUsage.zero()
    state["context"] = {}
    state["attachment_references"] = []
    state["company"] = resolve_company_name(None, request.text)
    return state


async def _check_crm(state: ResearchState, tools: ResearchTools) -> ResearchState:
    """Look for an existing CRM record; the result is informational only."""
    company = state["company"]
    _announce(state, PipelineStage.CHECKING_CRM, "Checking CRM for existing record...")
    try:
        lookup = await tools.lookup_company(company)
    except CRMError as exc:
        logger.warning("CRM lookup for '%s' failed; continuing: %s", company, exc)
        state["crm_lookup"] = None
        return state

    state["crm_lookup"] = lookup
    if lookup.exists:
        logger.info("Found existing CRM record for '%s': %s", company, lookup.record_id)
    else:
        logger.info("No CRM record for '%s'; treating as new company", company)
    return state


async def _research(state: ResearchState, tools: ResearchTools) -> ResearchState:
    company = state["company"]
    channel = state["channel"]
    _announce(
        state,
        PipelineStage.RESEARCHING,
        f"Starting parallel research across {len(RESEARCH_TOPICS)} topics...",
    )

    def _on_progress(
        topic: ResearchTopic, status: TaskStatus, usage: Optional[TokenUsage]
    ) -> None:
        channel.publish(ResearchStatusEvent(area=topic, status=status, usage=usage))

    state["research"] = await tools.run_research(
        company, state.get("context") or {}, _on_progress
    )
    return state


async def _synthesize(state: ResearchState, tools: ResearchTools) -> ResearchState:
    _announce(state, PipelineStage.SYNTHESIZING, "Synthesizing research...")
    outcome = await tools.synthesize(state["company"], state["research"])
    state["record"] = outcome.record
    state["synthesis_usage"] = outcome.usage
    return state


async def _generate_memo(state: ResearchState, tools: ResearchTools) -> ResearchState:
    _announce(state, PipelineStage.GENERATING_MEMO, "Generating investment memo...")
    outcome = await tools.generate_memo(state["company"], state["record"], state["research"])
    memo = outcome.memo
    references = state.get("attachment_references") or []
    if references:
        memo = memo.model_copy(update={"attachment_references": references})
    state["memo"] = memo
    state["memo_usage"] = outcome.usage
    return state


async def _save(state: ResearchState, tools: ResearchTools) -> ResearchState:
    company = state["company"]
    _announce(state, PipelineStage.SAVING, "Saving to CRM...")
    try:
        state["crm"] = await tools.save_to_crm(company, state["record"], state["memo"])
    except CRMError:
        logger.error(
            "CRM save failed for '%s'; generated memo follows: %s",
            company,
            state["memo"].model_dump_json(by_alias=True),
        )
        raise
    return state


async def _complete(state: ResearchState, tools: ResearchTools) -> ResearchState:
    duration = time.monotonic() - state["started_at"]
    state["duration_seconds"] = duration
    _announce(state, PipelineStage.COMPLETE, f"Complete in {duration:.1f}s")
    return state


def create_research_graph(tools: ResearchTools) -> Any:
    """Compile and return the research LangGraph workflow."""
    graph = StateGraph(ResearchState)

    async def identify_node(state: ResearchState) -> ResearchState:
        return await _identify(state, tools)

    async def check_crm_node(state: ResearchState) -> ResearchState:
        return await _check_crm(state, tools)

    async def research_node(state: ResearchState) -> ResearchState:
        return await _research(state, tools)

    async def synthesize_node(state: ResearchState) -> ResearchState:
        return await _synthesize(state, tools)

    async def generate_memo_node(state: ResearchState) -> ResearchState:
        return await _generate_memo(state, tools)

    async def save_node(state: ResearchState) -> ResearchState:
        return await _save(state, tools)

    async def complete_node(state: ResearchState) -> ResearchState:
        return await _complete(state, tools)

    graph.add_node("identify", identify_node)
    graph.add_node("check_crm", check_crm_node)
    graph.add_node("run_research", research_node)
    graph.add_node("synthesize", synthesize_node)
    graph.add_node("generate_memo", generate_memo_node)
    graph.add_node("save_to_crm", save_node)
    graph.add_node("complete", complete_node)

    graph.add_edge(START, "identify")
    graph.add_edge("identify", "check_crm")
    graph.add_edge("check_crm", "run_research")
    graph.add_edge("run_research", "synthesize")
    graph.add_edge("synthesize", "generate_memo")
    graph.add_edge("generate_memo", "save_to_crm")
    graph.add_edge("save_to_crm", "complete")
    graph.add_edge("complete", END)
    return graph.compile()


__all__ = ["create_research_graph", "resolve_company_name"]
