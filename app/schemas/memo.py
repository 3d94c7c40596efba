"""
Pydantic models for the generated investment memo.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, Field

from app.schemas.base import CamelModel
from app.schemas.triage import AttachmentReference


def _one_decimal(value: float) -> float:
    if abs(round(value, 1) - value) > 1e-9:
        raise ValueError("scores use at most one decimal place")
    return value


Score = Annotated[
    float,
    Field(ge=0, le=10, description="Score from 0.0 to 10.0 with one decimal place."),
    AfterValidator(_one_decimal),
]


class SourceReference(CamelModel):
    """A source cited by the memo."""

    title: str = Field(..., description="Article or source title.")
    source: str = Field(..., description="Publication name, e.g. TechCrunch.")
    url: Optional[str] = None
    date: Optional[str] = None
    used_in: list[str] = Field(
        default_factory=list, description="Memo sections citing this source."
    )


class CompanyScorecard(CamelModel):
    """Objective company quality, independent of the fund."""

    team: Score
    market: Score
    product: Score
    traction: Score
    competition: Score
    overall: Score


class FundFit(CamelModel):
    """Fit with the fund's own thesis."""

    score: Score
    stage: Literal["perfect", "good", "acceptable", "outside"]
    sector: Literal["core", "adjacent", "exploratory", "outside"]
    geography: Literal["target", "acceptable", "challenging"]
    check_size: Literal["ideal", "stretch", "too_small", "too_large"]
    rationale: str
    aligned_theses: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)


class PartnerMatch(CamelModel):
    """Fit between the company and one strategic partner."""

    partner_name: str
    match_level: Literal["high", "medium", "low", "none"]
    match_score: Score
    matched_interests: list[str] = Field(default_factory=list)
    matched_markets: list[str] = Field(default_factory=list)
    rationale: str
    potential_synergies: list[str] = Field(default_factory=list)


class StrategicFitAnalysis(CamelModel):
    """Fit with the fund's strategic partner network."""

    overall_fit_level: Literal["excellent", "good", "moderate", "limited"]
    overall_fit_score: Score
    primary_category: str
    secondary_categories: list[str] = Field(default_factory=list)
    partner_matches: list[PartnerMatch] = Field(default_factory=list)
    top_partner_opportunities: list[str] = Field(default_factory=list)
    strategic_narrative: str


class MemoSections(CamelModel):
    company_summary: str
    founder_profiles: str
    investor_analysis: str
    funding_history: str
    momentum_analysis: str
    competitive_landscape: str
    thesis_alignment: str
    strategic_synergies: str
    risks_and_flaws: str


class InvestmentMemo(CamelModel):
    """Structured investment memo produced once per run."""

    summary: str
    sections: MemoSections
    company_scorecard: CompanyScorecard
    fund_fit: FundFit
    partner_fit: StrategicFitAnalysis
    one_liner: str
    tags: list[str] = Field(default_factory=list)
    sources: list[SourceReference] = Field(
        default_factory=list,
        description="Authoritative list of sources cited in the memo.",
    )
    attachment_references: Optional[list[AttachmentReference]] = None
    infographic_base64: Optional[str] = None


__all__ = [
    "CompanyScorecard",
    "FundFit",
    "InvestmentMemo",
    "MemoSections",
    "PartnerMatch",
    "Score",
    "SourceReference",
    "StrategicFitAnalysis",
]
