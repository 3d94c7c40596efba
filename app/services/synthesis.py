"""Turn raw topic texts into the canonical company research record."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.clients.gemini import GeminiClient
from app.schemas.research import (
    UNKNOWN,
    CompanyResearchRecord,
    ParallelResearchResult,
    ResearchTopic,
    TokenUsage,
)
from app.services.structured import generate_structured

logger = logging.getLogger(__name__)

SECTION_HEADERS: dict[ResearchTopic, str] = {
    ResearchTopic.BASICS: "Company Basics",
    ResearchTopic.FOUNDERS: "Founders",
    ResearchTopic.FUNDING: "Funding",
    ResearchTopic.PRODUCT: "Product & Traction",
    ResearchTopic.COMPETITIVE: "Competitive Landscape",
    ResearchTopic.NEWS: "Recent News",
}


@dataclass(slots=True)
class SynthesisOutcome:
    record: CompanyResearchRecord
    usage: TokenUsage


def combine_research(research: ParallelResearchResult) -> str:
    """Concatenate every topic text under its labelled header."""
    blocks = [
        f"## {header}\n{research[topic]}" for topic, header in SECTION_HEADERS.items()
    ]
    return "\n\n".join(blocks)


def build_synthesis_prompt(company: str, research: ParallelResearchResult) -> str:
    return f"""\
Based on the following research about "{company}", extract structured information.
If information is not available, use "{UNKNOWN}" for required text fields, leave
optional fields out and use empty lists. Never invent facts that the research
does not support.

{combine_research(research)}

Extract:
1. Company basics (name, website, description, industry, stage, location)
2. Founders (name, role, background and LinkedIn URL if known, for each)
3. Funding info (total raised, last round, date, investors)
4. Momentum (recent news items, growth indicators)
5. Competitive info (landscape, competitors, differentiation)"""


class ResearchSynthesizer:
    """Structure the six free-text research results with one Gemini call."""

    def __init__(self, gemini_client: GeminiClient) -> None:
        self._gemini = gemini_client

    async def synthesize(
        self, company: str, research: ParallelResearchResult
    ) -> SynthesisOutcome:
        record, usage = await generate_structured(
            self._gemini,
            stage="synthesis",
            prompt=build_synthesis_prompt(company, research),
            model=CompanyResearchRecord,
        )
        logger.info(
            "Synthesized research for '%s' (%d founders, %d competitors)",
            company,
            len(record.founders),
            len(record.competitive.competitors),
        )
        return SynthesisOutcome(record=record, usage=usage)


__all__ = [
    "ResearchSynthesizer",
    "SECTION_HEADERS",
    "SynthesisOutcome",
    "build_synthesis_prompt",
    "combine_research",
]
