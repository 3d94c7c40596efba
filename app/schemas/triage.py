"""
Models describing uploaded files and the triage pass that routes their
content to research topics.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, Field, model_validator

from app.schemas.base import FrozenCamelModel
from app.schemas.research import ResearchTopic

_TOPIC_VALUES = frozenset(topic.value for topic in ResearchTopic)


class FileClassification(str, Enum):
    """Document types recognised during triage."""

    PITCH_DECK = "pitch_deck"
    FINANCIAL_MODEL = "financial_model"
    TEAM_BIO = "team_bio"
    PRODUCT_DOC = "product_doc"
    MARKET_RESEARCH = "market_research"
    PRESS_COVERAGE = "press_coverage"
    REFERENCE_ONLY = "reference_only"
    IRRELEVANT = "irrelevant"


@dataclass(frozen=True, slots=True)
class FileAttachment:
    """An uploaded file, owned by a single pipeline run."""

    id: str
    data: bytes
    mime_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.data)


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _pick_key(data: dict[str, Any], name: str, alias: str) -> str:
    return alias if alias in data else name


class TriagedFile(FrozenCamelModel):
    """Classification and per-topic extraction for one uploaded file."""

    file_id: str = Field(..., description="Identifier of the uploaded file.")
    filename: str = Field(..., description="Original filename.")
    classification: FileClassification = Field(..., description="Type of document.")
    summary: str = Field("", description="Brief summary of what the file contains.")
    extracted_content: dict[ResearchTopic, str] = Field(
        default_factory=dict,
        description="Content extracted from the file, keyed by research topic.",
    )
    use_in_research: list[ResearchTopic] = Field(
        default_factory=list,
        description="Research topics that should use this file's content.",
    )
    reasoning: str = Field("", description="Why the file was classified this way.")

    @model_validator(mode="before")
    @classmethod
    def _enforce_routing(cls, data: Any) -> Any:
        """Drop empty extractions and keep routing within extracted topics."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        content_key = _pick_key(data, "extracted_content", "extractedContent")
        use_key = _pick_key(data, "use_in_research", "useInResearch")

        content = data.get(content_key) or {}
        if isinstance(content, dict):
            content = {
                key: value.strip()
                for key, value in content.items()
                if isinstance(value, str) and value.strip()
            }
            data[content_key] = content

        uses = data.get(use_key) or []
        if _enum_value(data.get("classification")) == FileClassification.IRRELEVANT.value:
            uses = []
        elif isinstance(uses, list) and isinstance(content, dict):
            extracted = {_enum_value(key) for key in content}
            # Unknown topic names are kept so enum validation rejects them.
            uses = [
                use
                for use in dict.fromkeys(uses)
                if _enum_value(use) not in _TOPIC_VALUES or _enum_value(use) in extracted
            ]
        data[use_key] = uses
        return data


class FileTriageResult(FrozenCamelModel):
    """Outcome of classifying every uploaded file in a run."""

    company_name: str = Field(..., description="Company identified from the files.")
    files: list[TriagedFile] = Field(default_factory=list)
    confidence: float = Field(
        ...,
        ge=0,
        le=1,
        validation_alias=AliasChoices("confidence", "overallConfidence"),
        description="Confidence in the overall analysis.",
    )


class AttachmentReference(FrozenCamelModel):
    """How an uploaded file contributed to the memo."""

    file_id: str
    filename: str
    classification: FileClassification
    summary: str
    used_in: list[ResearchTopic] = Field(default_factory=list)
    not_used_reason: Optional[str] = None


__all__ = [
    "AttachmentReference",
    "FileAttachment",
    "FileClassification",
    "FileTriageResult",
    "TriagedFile",
]
