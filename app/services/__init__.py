"""Service layer exports."""

from .memo import MemoGenerator, MemoOutcome, render_memo_markdown
from .progress import ProgressChannel, ProgressChannelClosed
from .research import (
    InvalidStatusTransition,
    ParallelResearchOrchestrator,
    TopicStatusBoard,
    build_topic_prompt,
)
from .synthesis import ResearchSynthesizer, SynthesisOutcome
from .triage import (
    FileTriageService,
    TriageOutcome,
    build_attachment_references,
    build_research_context,
    classification_label,
)

__all__ = [
    "FileTriageService",
    "InvalidStatusTransition",
    "MemoGenerator",
    "MemoOutcome",
    "ParallelResearchOrchestrator",
    "ProgressChannel",
    "ProgressChannelClosed",
    "ResearchSynthesizer",
    "SynthesisOutcome",
    "TopicStatusBoard",
    "TriageOutcome",
    "build_attachment_references",
    "build_research_context",
    "build_topic_prompt",
    "classification_label",
    "render_memo_markdown",
]
