"""
Request and result envelopes for a research pipeline run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.base import CamelModel
from app.schemas.memo import InvestmentMemo
from app.schemas.research import CompanyResearchRecord, TokenUsage
from app.schemas.triage import FileAttachment, FileTriageResult


class ProcessPayload(BaseModel):
    """JSON body accepted by the process endpoint."""

    input: str = Field("", description="Company name or free-form context.")


@dataclass(frozen=True, slots=True)
class ResearchRequest:
    """Validated input for one pipeline run."""

    text: str = ""
    files: tuple[FileAttachment, ...] = field(default_factory=tuple)

    @property
    def has_files(self) -> bool:
        return bool(self.files)


class CRMLinkage(CamelModel):
    """Identifiers of the records written to the CRM."""

    company_record_id: str
    company_url: Optional[str] = None
    is_new_company: bool = False
    opportunity_id: str
    opportunity_url: Optional[str] = None
    note_id: str


class PipelineResult(CamelModel):
    """Composed output carried by the terminal result event."""

    id: str
    company: str
    research: CompanyResearchRecord
    memo: InvestmentMemo
    crm: CRMLinkage
    created_at: datetime
    duration_seconds: float = Field(..., ge=0)
    research_usage: TokenUsage
    total_usage: TokenUsage
    triage_result: Optional[FileTriageResult] = None


__all__ = [
    "CRMLinkage",
    "PipelineResult",
    "ProcessPayload",
    "ResearchRequest",
]
