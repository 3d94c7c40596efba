"""Sample payloads and Gemini stand-ins shared by the test modules."""

from __future__ import annotations

import json
from typing import Any, Iterable

from app.clients.gemini import GenerationResult
from app.core.fund_profile import DEFAULT_STRATEGIC_PARTNERS
from app.schemas.research import TokenUsage

PARTNER_NAMES = [partner.name for partner in DEFAULT_STRATEGIC_PARTNERS]


def record_payload(name: str = "Acme Robotics") -> dict[str, Any]:
    return {
        "company": {
            "name": name,
            "website": "https://www.acme-robotics.ai/about",
            "description": "Acme builds autonomous picking robots for warehouses.",
            "industry": "Robotics",
            "stage": "Series A",
            "location": "Pittsburgh, PA",
        },
        "founders": [
            {
                "name": "Ada Lovelace",
                "role": "CEO",
                "background": "Former robotics lead at a logistics unicorn.",
                "linkedinUrl": "https://linkedin.com/in/ada",
            }
        ],
        "funding": {
            "totalRaised": "$12.5M",
            "lastRound": "Series A",
            "lastRoundDate": "2024-03",
            "investors": ["Foundry Capital", "Robo Angels"],
        },
        "momentum": {
            "recentNews": ["Signed a pilot with a top-10 3PL"],
            "growthIndicators": "Revenue tripled year over year.",
        },
        "competitive": {
            "landscape": "Crowded warehouse automation market.",
            "competitors": ["Locus Robotics", "Berkshire Grey"],
            "differentiation": "Picks deformable items reliably.",
        },
    }


def memo_payload(partner_names: Iterable[str] = PARTNER_NAMES) -> dict[str, Any]:
    return {
        "summary": "Acme automates warehouse picking with strong early traction.",
        "sections": {
            "companySummary": "Acme builds picking robots [TechCrunch, 2024-03].",
            "founderProfiles": "Ada Lovelace leads the company.",
            "investorAnalysis": "Backed by Foundry Capital.",
            "fundingHistory": "Raised $12.5M to date.",
            "momentumAnalysis": "Pilot with a top-10 3PL.",
            "competitiveLandscape": "Competes with Locus Robotics.",
            "thesisAlignment": "Fits the vertical automation thesis.",
            "strategicSynergies": "Industrial Innovations is a natural partner.",
            "risksAndFlaws": "Hardware-heavy with long sales cycles.",
        },
        "companyScorecard": {
            "team": 8.0,
            "market": 7.5,
            "product": 8.2,
            "traction": 6.9,
            "competition": 6.0,
            "overall": 7.4,
        },
        "fundFit": {
            "score": 6.5,
            "stage": "good",
            "sector": "adjacent",
            "geography": "target",
            "checkSize": "ideal",
            "rationale": "Series A robotics in the US.",
            "alignedTheses": ["Vertical SaaS with deep domain expertise"],
            "concerns": ["Hardware-heavy"],
        },
        "partnerFit": {
            "overallFitLevel": "good",
            "overallFitScore": 7.0,
            "primaryCategory": "Industrial Automation",
            "secondaryCategories": ["Logistics"],
            "partnerMatches": [
                {
                    "partnerName": name,
                    "matchLevel": "medium",
                    "matchScore": 5.0,
                    "rationale": f"Some overlap with {name}.",
                }
                for name in partner_names
            ],
            "topPartnerOpportunities": ["Industrial Innovations pilot"],
            "strategicNarrative": "Strongest with industrial partners.",
        },
        "oneLiner": "Robots that pick anything in the warehouse.",
        "tags": ["Robotics", "B2B", "Series A"],
        "sources": [
            {
                "title": "Acme raises Series A",
                "source": "TechCrunch",
                "url": "https://techcrunch.com/acme",
                "date": "2024-03",
                "usedIn": ["companySummary"],
            }
        ],
    }


def triage_payload(file_ids: list[str], filenames: list[str]) -> dict[str, Any]:
    """Pitch deck routed to every topic plus an irrelevant second file."""
    topics = ["basics", "founders", "funding", "product", "competitive", "news"]
    return {
        "companyName": "Acme Robotics",
        "overallConfidence": 0.9,
        "files": [
            {
                "fileId": file_ids[0],
                "filename": filenames[0],
                "classification": "pitch_deck",
                "summary": "Series A deck.",
                "extractedContent": {topic: f"deck {topic} facts" for topic in topics},
                "useInResearch": topics,
                "reasoning": "Core presentation.",
            },
            {
                "fileId": file_ids[1],
                "filename": filenames[1],
                "classification": "irrelevant",
                "summary": "A lunch menu.",
                "extractedContent": {},
                "useInResearch": [],
                "reasoning": "Unrelated.",
            },
        ],
    }


def usage(input_tokens: int = 100, output_tokens: int = 50) -> TokenUsage:
    return TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens)


class ScriptedGemini:
    """Answer structured prompts by stage and research prompts by topic."""

    def __init__(
        self,
        *,
        triage: dict[str, Any] | None = None,
        record: dict[str, Any] | None = None,
        memo: dict[str, Any] | None = None,
        failing_topics: Iterable[str] = (),
    ) -> None:
        self.triage = triage
        self.record = record if record is not None else record_payload()
        self.memo = memo if memo is not None else memo_payload()
        self.failing_topics = set(failing_topics)
        self.json_prompts: list[str] = []
        self.research_prompts: list[str] = []
        self.attached_files: list[Any] = []

    async def generate_json(self, *, prompt: str, files=()) -> GenerationResult:
        self.json_prompts.append(prompt)
        self.attached_files.extend(files)
        if "FILES TO ANALYZE" in prompt:
            payload = self.triage
        elif "extract structured information" in prompt:
            payload = self.record
        elif "Generate a professional investment memo" in prompt:
            payload = self.memo
        else:  # pragma: no cover - unexpected prompt
            raise AssertionError(f"unexpected prompt: {prompt[:80]}")
        text = payload if isinstance(payload, str) else json.dumps(payload)
        return GenerationResult(text=text, usage=usage(10, 5))

    async def research(self, prompt: str) -> GenerationResult:
        self.research_prompts.append(prompt)
        for topic in self.failing_topics:
            if f"Search for {_TOPIC_PHRASES[topic]}" in prompt:
                raise RuntimeError(f"{topic} search failed")
        return GenerationResult(text=f"notes for: {prompt.splitlines()[-1]}", usage=usage())


_TOPIC_PHRASES = {
    "basics": "basic information",
    "founders": "founder information",
    "funding": "funding information",
    "product": "product and traction",
    "competitive": "competitive landscape",
    "news": "recent news",
}


__all__ = [
    "PARTNER_NAMES",
    "ScriptedGemini",
    "memo_payload",
    "record_payload",
    "triage_payload",
    "usage",
]
