"""Exception types shared by the research pipeline stages."""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for failures that terminate a research run."""


class PipelineInputError(PipelineError):
    """Raised when a run cannot determine which company to research."""


class StructuredOutputError(PipelineError):
    """Raised when a structured-generation reply fails schema validation."""

    def __init__(self, stage: str, detail: str) -> None:
        super().__init__(f"{stage} output failed validation: {detail}")
        self.stage = stage
        self.detail = detail


class CRMError(PipelineError):
    """Raised when the CRM collaborator rejects or fails a request."""


__all__ = [
    "CRMError",
    "PipelineError",
    "PipelineInputError",
    "StructuredOutputError",
]
