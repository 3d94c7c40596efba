"""Shared CRM contracts and helpers used by the Attio and local clients."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

from app.schemas.memo import InvestmentMemo
from app.schemas.research import UNKNOWN, CompanyResearchRecord

_FUNDING_PATTERN = re.compile(r"\$?\s*([\d][\d,]*(?:\.\d+)?)\s*(B|M|K)?", re.IGNORECASE)
_UNIT_MULTIPLIERS = {"B": 1_000_000_000, "M": 1_000_000, "K": 1_000}


@dataclass(frozen=True, slots=True)
class CompanyLookup:
    exists: bool
    record_id: Optional[str] = None
    web_url: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CompanyUpsert:
    record_id: str
    web_url: Optional[str]
    is_new: bool


@dataclass(frozen=True, slots=True)
class OpportunityRecord:
    record_id: str
    web_url: Optional[str]


class CRMClient(Protocol):
    """Operations the pipeline needs from a CRM backend."""

    async def lookup_company(
        self, name: str, domain: Optional[str] = None
    ) -> CompanyLookup:  # pragma: no cover - protocol
        ...

    async def upsert_company(
        self, record: CompanyResearchRecord
    ) -> CompanyUpsert:  # pragma: no cover - protocol
        ...

    async def create_opportunity(
        self,
        company_id: str,
        company_name: str,
        memo: InvestmentMemo,
        record: CompanyResearchRecord,
    ) -> OpportunityRecord:  # pragma: no cover - protocol
        ...

    async def attach_note(
        self, opportunity_id: str, memo: InvestmentMemo
    ) -> str:  # pragma: no cover - protocol
        ...


def domain_from_website(website: Optional[str]) -> Optional[str]:
    """Reduce a website URL to its lowercase host, e.g. ``acme.ai``."""
    if not website or website.strip() == UNKNOWN:
        return None
    host = re.sub(r"^https?://", "", website.strip(), flags=re.IGNORECASE)
    host = host.split("/", 1)[0].split("?", 1)[0].lower()
    if host.startswith("www."):
        host = host[4:]
    return host or None


def parse_funding_amount(value: Optional[str]) -> Optional[float]:
    """Convert strings such as ``"$12.5M"`` into a USD amount."""
    if not value or value.strip() == UNKNOWN:
        return None
    match = _FUNDING_PATTERN.search(value)
    if not match:
        return None
    amount = float(match.group(1).replace(",", ""))
    unit = (match.group(2) or "").upper()
    return amount * _UNIT_MULTIPLIERS.get(unit, 1)


def opportunity_display_name(company_name: str, when: Optional[datetime] = None) -> str:
    moment = when or datetime.now(timezone.utc)
    return f"{company_name} - {moment:%b %Y}"


def memo_note_title(memo: InvestmentMemo) -> str:
    return f"Investment Memo: {memo.company_scorecard.overall:.1f}/10"


def render_memo_markdown(memo: InvestmentMemo) -> str:
    """Render the memo as the markdown body of a CRM note."""
    card = memo.company_scorecard
    lines = [
        "# Investment Memo",
        "",
        f"**Overall Score:** {card.overall:.1f}/10",
        f"**Fund Fit:** {memo.fund_fit.score:.1f}/10",
        f"**Partner Fit:** {memo.partner_fit.overall_fit_score:.1f}/10",
        "",
        "## Summary",
        "",
        memo.one_liner,
        "",
        memo.summary,
        "",
        "## Company Scorecard",
        "",
        f"- **Team:** {card.team:.1f}/10",
        f"- **Market:** {card.market:.1f}/10",
        f"- **Product:** {card.product:.1f}/10",
        f"- **Traction:** {card.traction:.1f}/10",
        f"- **Competition:** {card.competition:.1f}/10",
        "",
    ]

    sections = memo.sections
    for title, body in (
        ("Company Overview", sections.company_summary),
        ("Founders", sections.founder_profiles),
        ("Investor Analysis", sections.investor_analysis),
        ("Funding History", sections.funding_history),
        ("Momentum & Traction", sections.momentum_analysis),
        ("Competitive Landscape", sections.competitive_landscape),
        ("Thesis Alignment", sections.thesis_alignment),
        ("Strategic Synergies", sections.strategic_synergies),
        ("Risks & Concerns", sections.risks_and_flaws),
    ):
        lines.extend([f"## {title}", "", body, ""])

    fit = memo.fund_fit
    lines.extend(
        [
            "## Fund Fit Analysis",
            "",
            f"- **Stage:** {fit.stage}",
            f"- **Sector:** {fit.sector}",
            f"- **Geography:** {fit.geography}",
            f"- **Check Size:** {fit.check_size}",
            "",
            f"**Rationale:** {fit.rationale}",
            "",
        ]
    )
    if fit.concerns:
        lines.append("**Concerns:**")
        lines.extend(f"- {concern}" for concern in fit.concerns)
        lines.append("")

    if memo.tags:
        lines.extend(["## Tags", "", " ".join(f"`{tag}`" for tag in memo.tags), ""])

    if memo.sources:
        lines.extend(["## Sources & References", ""])
        for index, source in enumerate(memo.sources, start=1):
            date_part = f" ({source.date})" if source.date else ""
            url_part = f" - [Link]({source.url})" if source.url else ""
            lines.append(f"{index}. **{source.title}** - {source.source}{date_part}{url_part}")
        lines.append("")

    return "\n".join(lines)


__all__ = [
    "CRMClient",
    "CompanyLookup",
    "CompanyUpsert",
    "OpportunityRecord",
    "domain_from_website",
    "memo_note_title",
    "opportunity_display_name",
    "parse_funding_amount",
    "render_memo_markdown",
]
