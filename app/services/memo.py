"""Investment memo generation and rendering."""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Optional

from app.clients.crm import render_memo_markdown
from app.clients.gemini import GeminiClient
from app.core.errors import StructuredOutputError
from app.core.fund_profile import (
    FundProfile,
    format_fund_thesis_context,
    format_partners_context,
)
from app.schemas.memo import InvestmentMemo
from app.schemas.research import CompanyResearchRecord, ParallelResearchResult, TokenUsage
from app.services.structured import generate_structured
from app.services.synthesis import combine_research

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MemoOutcome:
    memo: InvestmentMemo
    usage: TokenUsage


def build_memo_prompt(
    company: str,
    record: CompanyResearchRecord,
    profile: FundProfile,
    research: Optional[ParallelResearchResult] = None,
) -> str:
    partner_names = ", ".join(profile.partner_names)
    record_json = json.dumps(record.to_wire(), indent=2)
    raw_block = ""
    if research is not None:
        raw_block = (
            "\n\n## Raw Research Notes (with sources)\n"
            "Use these for citations and details the structured record omits.\n\n"
            f"{combine_research(research)}"
        )

    return f"""\
Generate a professional investment memo for "{company}" based on this research:

{record_json}{raw_block}

{format_fund_thesis_context(profile.thesis)}

## Strategic Partners
The fund has the following strategic partners:

{format_partners_context(profile.partners)}

---

Create a comprehensive memo with THREE SEPARATE ANALYSES:

## 1. EXECUTIVE SUMMARY
- 2-3 sentence summary of the opportunity

## 2. DETAILED SECTIONS
   - Company Summary
   - Founder Profiles
   - Investor Analysis
   - Funding History
   - Momentum Analysis
   - Competitive Landscape
   - Thesis Alignment
   - Strategic Synergies
   - Risks and Flaws
Cite facts inline as [Source, Date] and list every cited source once in the
separate "sources" field, naming the sections that cite it.

## 3. COMPANY SCORECARD (Objective company quality - independent of our fund)
Rate 0.0-10.0 for each (use one decimal place, e.g., 7.5):
- **Team**: Quality of founding team and leadership
- **Market**: Market size and opportunity
- **Product**: Product quality and differentiation
- **Traction**: Current traction and growth metrics
- **Competition**: Competitive position and moat
- **Overall**: Overall company score

## 4. FUND FIT (How well this matches OUR fund's thesis)
- **Score**: Overall fit with our fund (0.0-10.0, use one decimal place)
- **Stage fit**: perfect/good/acceptable/outside
- **Sector fit**: core/adjacent/exploratory/outside
- **Geography fit**: target/acceptable/challenging
- **Check size fit**: ideal/stretch/too_small/too_large
- **Rationale**: Why this is/isn't a good fit for our fund
- **Aligned theses**: Which of our investment theses does this align with?
- **Concerns**: Any concerns about fit

## 5. PARTNER FIT (How well this aligns with our strategic partners)
- Overall fit level (excellent/good/moderate/limited)
- Overall fit score (0.0-10.0, use one decimal place)
- Primary category for this opportunity
- Secondary categories
- For EACH strategic partner ({partner_names}), exactly one entry with:
  - Partner name spelled exactly as listed
  - Match level (high/medium/low/none)
  - Match score (0.0-10.0, use one decimal place)
  - Which specific interests match
  - Which specific markets overlap
  - Rationale for the match
  - Potential synergy opportunities
- Top 3 partner collaboration opportunities
- Strategic narrative explaining the overall fit

## 6. ONE-LINER
- Max 15 words pitch

## 7. TAGS
- Categorization tags (e.g., "AI", "B2B", "Seed", etc.)

Leave attachmentReferences and infographicBase64 out.
Be thorough but concise. Keep the three analyses (Company, Fund Fit, Partner Fit) clearly separate."""


def check_partner_coverage(memo: InvestmentMemo, profile: FundProfile) -> None:
    """Require exactly one match entry per roster partner."""
    counts = Counter(
        match.partner_name.strip().lower() for match in memo.partner_fit.partner_matches
    )
    roster = {name.lower(): name for name in profile.partner_names}
    missing = [name for key, name in roster.items() if counts[key] == 0]
    duplicated = [name for key, name in roster.items() if counts[key] > 1]
    unknown = sorted(key for key in counts if key not in roster)

    problems = []
    if missing:
        problems.append(f"missing partner matches: {', '.join(missing)}")
    if duplicated:
        problems.append(f"duplicate partner matches: {', '.join(duplicated)}")
    if unknown:
        problems.append(f"unknown partners: {', '.join(unknown)}")
    if problems:
        raise StructuredOutputError("memo", "; ".join(problems))


class MemoGenerator:
    """Produce the investment memo from the research record and fund profile."""

    def __init__(self, gemini_client: GeminiClient, fund_profile: FundProfile) -> None:
        self._gemini = gemini_client
        self._profile = fund_profile

    async def generate(
        self,
        company: str,
        record: CompanyResearchRecord,
        research: Optional[ParallelResearchResult] = None,
    ) -> MemoOutcome:
        memo, usage = await generate_structured(
            self._gemini,
            stage="memo",
            prompt=build_memo_prompt(company, record, self._profile, research),
            model=InvestmentMemo,
        )
        check_partner_coverage(memo, self._profile)
        memo = memo.model_copy(
            update={"attachment_references": None, "infographic_base64": None}
        )
        logger.info(
            "Generated memo for '%s': overall %.1f, fund fit %.1f, partner fit %.1f",
            company,
            memo.company_scorecard.overall,
            memo.fund_fit.score,
            memo.partner_fit.overall_fit_score,
        )
        return MemoOutcome(memo=memo, usage=usage)


__all__ = [
    "MemoGenerator",
    "MemoOutcome",
    "build_memo_prompt",
    "check_partner_coverage",
    "render_memo_markdown",
]
