"""Public schema exports."""

from .events import (
    ErrorEvent,
    PipelineStage,
    ProgressEvent,
    ResearchStatusEvent,
    ResultEvent,
    StageProgressEvent,
    parse_progress_event,
    to_sse,
)
from .memo import (
    CompanyScorecard,
    FundFit,
    InvestmentMemo,
    MemoSections,
    PartnerMatch,
    SourceReference,
    StrategicFitAnalysis,
)
from .pipeline import CRMLinkage, PipelineResult, ProcessPayload, ResearchRequest
from .research import (
    RESEARCH_TOPICS,
    UNKNOWN,
    CompanyBasics,
    CompanyResearchRecord,
    CompetitiveInfo,
    Founder,
    FundingInfo,
    MomentumInfo,
    ParallelResearchResult,
    ResearchTopic,
    TaskStatus,
    TokenUsage,
)
from .triage import (
    AttachmentReference,
    FileAttachment,
    FileClassification,
    FileTriageResult,
    TriagedFile,
)

__all__ = [
    "AttachmentReference",
    "CRMLinkage",
    "CompanyBasics",
    "CompanyResearchRecord",
    "CompanyScorecard",
    "CompetitiveInfo",
    "ErrorEvent",
    "FileAttachment",
    "FileClassification",
    "FileTriageResult",
    "Founder",
    "FundFit",
    "FundingInfo",
    "InvestmentMemo",
    "MemoSections",
    "MomentumInfo",
    "ParallelResearchResult",
    "PartnerMatch",
    "PipelineResult",
    "PipelineStage",
    "ProcessPayload",
    "ProgressEvent",
    "RESEARCH_TOPICS",
    "ResearchRequest",
    "ResearchStatusEvent",
    "ResearchTopic",
    "ResultEvent",
    "SourceReference",
    "StageProgressEvent",
    "StrategicFitAnalysis",
    "TaskStatus",
    "TokenUsage",
    "TriagedFile",
    "UNKNOWN",
    "parse_progress_event",
    "to_sse",
]
