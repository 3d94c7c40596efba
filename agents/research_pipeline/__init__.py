"""Research pipeline sub-agent package.

This module wires the research stages into a LangGraph workflow and runs
each request as a background task feeding a progress channel.
"""

from __future__ import annotations

from typing import Any


def __getattr__(name: str) -> Any:
    if name in {"PipelineRun", "PipelineRunner", "ResearchPipeline"}:
        from . import controller

        return getattr(controller, name)
    raise AttributeError(name)


__all__ = ["PipelineRun", "PipelineRunner", "ResearchPipeline"]
