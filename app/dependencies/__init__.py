"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    SettingsDependency,
    get_app_settings,
    get_crm_client,
    get_fund_profile,
    get_gemini_client,
    get_pipeline_runner,
    get_research_pipeline,
    get_research_tools,
    get_web_search_client,
)

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_crm_client",
    "get_fund_profile",
    "get_gemini_client",
    "get_pipeline_runner",
    "get_research_pipeline",
    "get_research_tools",
    "get_web_search_client",
]
