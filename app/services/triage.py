"""File triage: classify uploads and route their content to research topics."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Optional, Sequence

from app.clients.gemini import GeminiClient
from app.core.errors import StructuredOutputError
from app.schemas.research import RESEARCH_TOPICS, ResearchTopic, TokenUsage
from app.schemas.triage import (
    AttachmentReference,
    FileAttachment,
    FileClassification,
    FileTriageResult,
)
from app.services.structured import generate_structured

logger = logging.getLogger(__name__)

_CLASSIFICATION_LABELS: dict[FileClassification, str] = {
    FileClassification.PITCH_DECK: "Pitch Deck",
    FileClassification.FINANCIAL_MODEL: "Financial Model",
    FileClassification.TEAM_BIO: "Team Bio",
    FileClassification.PRODUCT_DOC: "Product Documentation",
    FileClassification.MARKET_RESEARCH: "Market Research",
    FileClassification.PRESS_COVERAGE: "Press Coverage",
    FileClassification.REFERENCE_ONLY: "Reference Only",
    FileClassification.IRRELEVANT: "Not Used",
}

_NOT_USED_REASONS: dict[FileClassification, str] = {
    FileClassification.IRRELEVANT: "File not relevant to company research",
    FileClassification.REFERENCE_ONLY: "Used as background context only",
}

_TRIAGE_INSTRUCTIONS = """\
For each file, you must:

1. CLASSIFY the file type:
   - pitch_deck: Core company presentation - extract info for ALL research topics
   - financial_model: Financial projections/cap table - extract for funding
   - team_bio: Team/founder details - extract for founders
   - product_doc: Product specs/demos - extract for product
   - market_research: Market/competitor analysis - extract for competitive
   - press_coverage: News articles/PR - extract for news
   - reference_only: Background info, don't factor into research
   - irrelevant: Not related to company research, ignore

2. EXTRACT content for each relevant research topic:
   - basics: Company name, description, industry, stage, location
   - founders: Founder names, roles, backgrounds, credentials
   - funding: Amounts raised, investors, valuations, round details
   - product: Product details, technology, customers, metrics
   - competitive: Market size, competitors, differentiation
   - news: Recent announcements, partnerships, milestones

3. Decide which research topics should use this file's content (useInResearch).
   Only list topics you extracted content for.

Be thorough - extract all relevant details. For pitch decks, extract everything
for all topics. For specialized documents, only extract what's relevant to
their category. Echo each file's ID exactly as given in fileId.

IMPORTANT: Identify the company name from the most authoritative source
(usually the pitch deck)."""


@dataclass(slots=True)
class TriageOutcome:
    """Validated triage result and the token usage of the call."""

    result: FileTriageResult
    usage: TokenUsage


def build_triage_prompt(files: Sequence[FileAttachment], hint: Optional[str] = None) -> str:
    file_list = "\n".join(
        f'{index}. "{attachment.filename}" (ID: {attachment.id})'
        for index, attachment in enumerate(files, start=1)
    )
    sections = ["You are analyzing files uploaded for investment research on a company/startup."]
    if hint and hint.strip():
        sections.append(f'User context: "{hint.strip()}"')
    sections.append(f"FILES TO ANALYZE:\n{file_list}")
    sections.append(_TRIAGE_INSTRUCTIONS)
    return "\n\n".join(sections)


class FileTriageService:
    """Classify uploaded files in a single multi-modal Gemini call."""

    def __init__(self, gemini_client: GeminiClient) -> None:
        self._gemini = gemini_client

    async def triage(
        self,
        files: Sequence[FileAttachment],
        hint: Optional[str] = None,
    ) -> TriageOutcome:
        if not files:
            raise ValueError("triage requires at least one file")

        result, usage = await generate_structured(
            self._gemini,
            stage="triage",
            prompt=build_triage_prompt(files, hint),
            model=FileTriageResult,
            files=files,
        )

        known_ids = {attachment.id for attachment in files}
        unknown = [item.file_id for item in result.files if item.file_id not in known_ids]
        if unknown:
            raise StructuredOutputError(
                "triage", f"unknown file ids: {', '.join(sorted(unknown))}"
            )
        seen = Counter(item.file_id for item in result.files)
        duplicated = sorted(file_id for file_id, count in seen.items() if count > 1)
        if duplicated:
            raise StructuredOutputError(
                "triage", f"duplicate file ids: {', '.join(duplicated)}"
            )
        missing = [attachment.id for attachment in files if attachment.id not in seen]
        if missing:
            raise StructuredOutputError(
                "triage", f"files without a classification: {', '.join(missing)}"
            )

        logger.info(
            "Triaged %d file(s); company='%s' confidence=%.2f",
            len(result.files),
            result.company_name,
            result.confidence,
        )
        return TriageOutcome(result=result, usage=usage)


def build_research_context(triage: FileTriageResult) -> dict[ResearchTopic, str]:
    """Collect per-topic excerpts from every file routed to that topic.

    Topics without any contributing file are absent from the mapping.
    """
    context: dict[ResearchTopic, str] = {}
    for topic in RESEARCH_TOPICS:
        excerpts = []
        for item in triage.files:
            if topic not in item.use_in_research:
                continue
            content = item.extracted_content.get(topic)
            if content:
                excerpts.append(f"[From {item.filename}]: {content}")
        if excerpts:
            context[topic] = "\n\n".join(excerpts)
    return context


def build_attachment_references(triage: FileTriageResult) -> list[AttachmentReference]:
    return [
        AttachmentReference(
            file_id=item.file_id,
            filename=item.filename,
            classification=item.classification,
            summary=item.summary,
            used_in=list(item.use_in_research),
            not_used_reason=_NOT_USED_REASONS.get(item.classification),
        )
        for item in triage.files
    ]


def classification_label(value: FileClassification | str) -> str:
    try:
        return _CLASSIFICATION_LABELS[FileClassification(value)]
    except ValueError:
        return str(value)


__all__ = [
    "FileTriageService",
    "TriageOutcome",
    "build_attachment_references",
    "build_research_context",
    "build_triage_prompt",
    "classification_label",
]
