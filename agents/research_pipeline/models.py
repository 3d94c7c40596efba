"""
Data models shared across the research pipeline package.
"""

from __future__ import annotations

from typing import Dict, List, Optional, TypedDict

from app.clients.crm import CompanyLookup
from app.schemas.memo import InvestmentMemo
from app.schemas.pipeline import CRMLinkage, ResearchRequest
from app.schemas.research import (
    CompanyResearchRecord,
    ParallelResearchResult,
    ResearchTopic,
    TokenUsage,
)
from app.schemas.triage import AttachmentReference, FileTriageResult
from app.services.progress import ProgressChannel


class ResearchState(TypedDict, total=False):
    """State tracked inside the LangGraph workflow."""

    request: ResearchRequest
    channel: ProgressChannel
    started_at: float
    company: str
    triage: Optional[FileTriageResult]
    triage_usage: TokenUsage
    context: Dict[ResearchTopic, str]
    attachment_references: List[AttachmentReference]
    crm_lookup: Optional[CompanyLookup]
    research: ParallelResearchResult
    record: CompanyResearchRecord
    synthesis_usage: TokenUsage
    memo: InvestmentMemo
    memo_usage: TokenUsage
    crm: CRMLinkage
    duration_seconds: float


__all__ = ["ResearchState"]
