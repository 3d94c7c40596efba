"""
Pydantic models for research topics, task status, token usage and the
canonical company research record.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from pydantic import ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

from app.schemas.base import CamelModel

UNKNOWN = "Unknown"


class ResearchTopic(str, Enum):
    """Closed set of independent research angles queried in parallel."""

    BASICS = "basics"
    FOUNDERS = "founders"
    FUNDING = "funding"
    PRODUCT = "product"
    COMPETITIVE = "competitive"
    NEWS = "news"


RESEARCH_TOPICS: tuple[ResearchTopic, ...] = tuple(ResearchTopic)


class TaskStatus(str, Enum):
    """Lifecycle of a single topic query."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.ERROR)

    def can_transition_to(self, new_status: "TaskStatus") -> bool:
        """Return whether moving to ``new_status`` keeps the lifecycle monotonic."""
        return new_status in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.COMPLETED, TaskStatus.ERROR}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.ERROR: frozenset(),
}


class TokenUsage(CamelModel):
    """Token accounting for one or more generative calls."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    input_tokens: int = Field(0, ge=0)
    output_tokens: int = Field(0, ge=0)

    @computed_field(alias="totalTokens")  # type: ignore[prop-decorator]
    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )

    @classmethod
    def zero(cls) -> "TokenUsage":
        return cls(input_tokens=0, output_tokens=0)

    @classmethod
    def sum(cls, usages: Iterable[Optional["TokenUsage"]]) -> "TokenUsage":
        """Element-wise sum; missing records contribute nothing."""
        total = cls.zero()
        for usage in usages:
            if usage is not None:
                total = total + usage
        return total

    def estimate_cost(self, *, input_per_mtok: float, output_per_mtok: float) -> float:
        """Return the USD cost of this usage at the supplied per-million rates."""
        cost = (
            self.input_tokens * input_per_mtok + self.output_tokens * output_per_mtok
        ) / 1_000_000
        return round(cost, 6)


class CompanyBasics(CamelModel):
    """Core facts about the company."""

    name: str
    website: Optional[str] = None
    description: str = Field(..., description="One paragraph on what the company does.")
    industry: str
    stage: str = Field(..., description="Funding stage, e.g. Seed or Series A.")
    location: Optional[str] = None


class Founder(CamelModel):
    name: str
    role: str
    background: str
    linkedin_url: Optional[str] = None


class FundingInfo(CamelModel):
    total_raised: str
    last_round: Optional[str] = None
    last_round_date: Optional[str] = None
    investors: list[str] = Field(default_factory=list)


class MomentumInfo(CamelModel):
    recent_news: list[str] = Field(default_factory=list)
    growth_indicators: str


class CompetitiveInfo(CamelModel):
    landscape: str
    competitors: list[str] = Field(default_factory=list)
    differentiation: str


class CompanyResearchRecord(CamelModel):
    """Canonical structured research record for a company."""

    company: CompanyBasics
    founders: list[Founder] = Field(default_factory=list)
    funding: FundingInfo
    momentum: MomentumInfo
    competitive: CompetitiveInfo


class ParallelResearchResult(CamelModel):
    """Raw topic texts and accounting produced by one parallel research pass."""

    texts: dict[ResearchTopic, str] = Field(
        ..., description="Exactly one entry per research topic; empty on failure."
    )
    statuses: dict[ResearchTopic, TaskStatus] = Field(default_factory=dict)
    errors: dict[ResearchTopic, str] = Field(default_factory=dict)
    usage: TokenUsage = Field(default_factory=TokenUsage.zero)
    estimated_cost_usd: float = Field(0.0, ge=0)

    @model_validator(mode="after")
    def _covers_every_topic(self) -> "ParallelResearchResult":
        missing = [topic.value for topic in RESEARCH_TOPICS if topic not in self.texts]
        if missing:
            raise ValueError(f"missing research topics: {', '.join(missing)}")
        return self

    def __getitem__(self, topic: ResearchTopic) -> str:
        return self.texts[topic]

    @property
    def failed_topics(self) -> list[ResearchTopic]:
        return [
            topic
            for topic in RESEARCH_TOPICS
            if self.statuses.get(topic) is TaskStatus.ERROR
        ]


__all__ = [
    "CompanyBasics",
    "CompanyResearchRecord",
    "CompetitiveInfo",
    "Founder",
    "FundingInfo",
    "MomentumInfo",
    "ParallelResearchResult",
    "RESEARCH_TOPICS",
    "ResearchTopic",
    "TaskStatus",
    "TokenUsage",
    "UNKNOWN",
]
