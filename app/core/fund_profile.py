"""
Static fund context consumed by memo generation.

The fund thesis and strategic partner roster are read-only inputs. They are
loaded once at start-up (optionally from a JSON file) and passed explicitly
into the memo generator.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class CheckSizeRange(BaseModel):
    min: str
    max: str
    sweet: str


class FundThesis(BaseModel):
    """Investment strategy of the fund."""

    name: str
    description: str
    target_stages: list[str]
    target_sectors: list[str]
    target_geographies: list[str]
    check_size_range: CheckSizeRange
    key_theses: list[str]
    must_haves: list[str] = Field(default_factory=list)
    red_flags: list[str] = Field(default_factory=list)


class StrategicPartner(BaseModel):
    """A partner in the fund's strategic network."""

    name: str = Field(..., description="Partner company name.")
    markets: list[str] = Field(..., description="Target markets or verticals.")
    thesis: str = Field(..., description="Strategic focus of the partner.")
    interests: list[str] = Field(..., description="Key interest areas.")


class FundProfile(BaseModel):
    """Thesis and partner roster supplied to every run."""

    model_config = {"frozen": True}

    thesis: FundThesis
    partners: list[StrategicPartner] = Field(..., min_length=1)

    @property
    def partner_names(self) -> list[str]:
        return [partner.name for partner in self.partners]

    def find_partner(self, name: str) -> Optional[StrategicPartner]:
        wanted = name.strip().lower()
        for partner in self.partners:
            if partner.name.lower() == wanted:
                return partner
        return None


DEFAULT_FUND_THESIS = FundThesis(
    name="Generalist VC Fund",
    description=(
        "Early-stage technology fund focused on exceptional founders building "
        "transformative companies"
    ),
    target_stages=["Pre-Seed", "Seed", "Series A"],
    target_sectors=[
        "Enterprise Software",
        "AI/ML",
        "Developer Tools",
        "Fintech",
        "Healthcare Tech",
        "Climate Tech",
        "Consumer Tech",
    ],
    target_geographies=["United States", "Europe", "Israel"],
    check_size_range=CheckSizeRange(min="$500K", max="$5M", sweet="$1-2M"),
    key_theses=[
        "AI-native applications transforming traditional industries",
        "Developer tools and infrastructure enabling 10x productivity",
        "Vertical SaaS with deep domain expertise",
        "Climate solutions with clear path to scale",
        "Fintech infrastructure and embedded finance",
    ],
    must_haves=[
        "Exceptional founding team with relevant experience",
        "Large market opportunity ($1B+ TAM)",
        "Clear product differentiation or technical moat",
        "Evidence of product-market fit or strong early signals",
        "Capital-efficient business model",
    ],
    red_flags=[
        "Single founder without technical co-founder",
        "Crowded market without clear differentiation",
        "Hardware-heavy with long development cycles",
        "Regulatory-dependent without clear path",
        "Unrealistic valuation expectations",
    ],
)

DEFAULT_STRATEGIC_PARTNERS: tuple[StrategicPartner, ...] = (
    StrategicPartner(
        name="TechCorp Ventures",
        markets=["Enterprise Software", "Cloud Infrastructure", "DevTools", "Cybersecurity"],
        thesis=(
            "Investing in infrastructure and tools that enable the next generation "
            "of enterprise technology"
        ),
        interests=[
            "Developer productivity",
            "Cloud-native infrastructure",
            "Security automation",
            "API platforms",
            "Data infrastructure",
            "AI/ML tooling",
        ],
    ),
    StrategicPartner(
        name="HealthTech Partners",
        markets=["Digital Health", "Healthcare", "Biotech", "Medical Devices"],
        thesis="Backing founders transforming healthcare through technology and data",
        interests=[
            "Telemedicine",
            "Health data analytics",
            "Clinical AI",
            "Patient engagement",
            "Drug discovery",
            "Healthcare operations",
        ],
    ),
    StrategicPartner(
        name="FinServ Capital",
        markets=["Fintech", "Banking", "Insurance", "Payments", "Wealth Management"],
        thesis="Enabling the future of financial services through innovative technology",
        interests=[
            "Embedded finance",
            "Payment infrastructure",
            "Lending platforms",
            "Compliance automation",
            "Wealth tech",
            "Crypto/DeFi infrastructure",
        ],
    ),
    StrategicPartner(
        name="Consumer Growth Fund",
        markets=["Consumer Tech", "E-commerce", "Marketplaces", "Media & Entertainment"],
        thesis="Backing exceptional consumer experiences that become category-defining brands",
        interests=[
            "Social commerce",
            "Creator economy",
            "Gaming",
            "Subscription models",
            "Personalization",
            "Community platforms",
        ],
    ),
    StrategicPartner(
        name="Industrial Innovations",
        markets=["Manufacturing", "Logistics", "Supply Chain", "Energy", "Climate Tech"],
        thesis="Digitizing and decarbonizing the physical economy",
        interests=[
            "Industrial automation",
            "Supply chain visibility",
            "Fleet management",
            "Energy efficiency",
            "Carbon tracking",
            "Smart manufacturing",
        ],
    ),
)


def default_fund_profile() -> FundProfile:
    return FundProfile(
        thesis=DEFAULT_FUND_THESIS, partners=list(DEFAULT_STRATEGIC_PARTNERS)
    )


def load_fund_profile(path: Optional[Path] = None) -> FundProfile:
    """Load the fund profile from ``path`` or fall back to the built-in one.

    The file must describe the whole profile; a partial document fails
    validation rather than being merged with the defaults.
    """
    if path is None:
        return default_fund_profile()
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    profile = FundProfile.model_validate(payload)
    logger.info(
        "Loaded fund profile '%s' with %d partners from %s",
        profile.thesis.name,
        len(profile.partners),
        path,
    )
    return profile


def format_fund_thesis_context(thesis: FundThesis) -> str:
    """Render the thesis as markdown prompt context."""
    lines = [
        f"## Fund Investment Thesis: {thesis.name}",
        "",
        f"**Description**: {thesis.description}",
        "",
        f"**Target Stages**: {', '.join(thesis.target_stages)}",
        "",
        f"**Target Sectors**: {', '.join(thesis.target_sectors)}",
        "",
        f"**Target Geographies**: {', '.join(thesis.target_geographies)}",
        "",
        (
            f"**Check Size**: {thesis.check_size_range.min} - "
            f"{thesis.check_size_range.max} "
            f"(sweet spot: {thesis.check_size_range.sweet})"
        ),
        "",
        "**Key Investment Theses**:",
        *(f"- {item}" for item in thesis.key_theses),
        "",
        "**Must-Haves**:",
        *(f"- {item}" for item in thesis.must_haves),
        "",
        "**Red Flags**:",
        *(f"- {item}" for item in thesis.red_flags),
    ]
    return "\n".join(lines)


def format_partners_context(partners: list[StrategicPartner]) -> str:
    """Render the partner roster as markdown prompt context."""
    blocks = []
    for partner in partners:
        blocks.append(
            "\n".join(
                [
                    f"### {partner.name}",
                    f"- **Markets**: {', '.join(partner.markets)}",
                    f"- **Thesis**: {partner.thesis}",
                    f"- **Interests**: {', '.join(partner.interests)}",
                ]
            )
        )
    return "\n\n".join(blocks)


__all__ = [
    "CheckSizeRange",
    "DEFAULT_FUND_THESIS",
    "DEFAULT_STRATEGIC_PARTNERS",
    "FundProfile",
    "FundThesis",
    "StrategicPartner",
    "default_fund_profile",
    "format_fund_thesis_context",
    "format_partners_context",
    "load_fund_profile",
]
