"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from fastapi import Depends

from agents.research_pipeline.controller import PipelineRunner, ResearchPipeline
from agents.research_pipeline.tools import ResearchTools
from app.clients import (
    AttioClient,
    CRMClient,
    GeminiClient,
    SQLiteCRMClient,
    WebSearchClient,
)
from app.core.config import AppSettings, get_settings
from app.core.fund_profile import FundProfile, load_fund_profile
from app.services import (
    FileTriageService,
    MemoGenerator,
    ParallelResearchOrchestrator,
    ResearchSynthesizer,
)


@lru_cache()
def get_app_settings() -> AppSettings:
    """Settings shared by the routes and every client factory."""
    return get_settings()


SettingsDependency = Depends(get_app_settings)


@lru_cache()
def get_web_search_client() -> WebSearchClient | None:
    """Provide web search client when SerpAPI is configured."""
    settings = get_app_settings()
    api_key = settings.serpapi_api_key
    if not api_key:
        return None
    return WebSearchClient(api_key=api_key)


@lru_cache()
def get_gemini_client() -> GeminiClient:
    """Provide Gemini client instance."""
    settings = get_app_settings()
    return GeminiClient(settings.gemini, web_search_client=get_web_search_client())


@lru_cache()
def get_crm_client() -> CRMClient:
    """Provide the Attio client, or the local SQLite CRM when no key is set."""
    crm = get_app_settings().crm
    if crm.attio_api_key:
        return AttioClient(
            api_key=crm.attio_api_key,
            base_url=str(crm.attio_base_url),
            opportunity_tag=crm.opportunity_tag,
        )
    return SQLiteCRMClient(crm.local_db_path, opportunity_tag=crm.opportunity_tag)


@lru_cache()
def get_fund_profile() -> FundProfile:
    """Load the fund thesis and partner roster once per process."""
    return load_fund_profile(get_app_settings().fund_profile_path)


def get_research_tools() -> ResearchTools:
    """Build the service facade used by the research workflow."""
    settings = get_app_settings()
    gemini = get_gemini_client()
    return ResearchTools(
        triage_service=FileTriageService(gemini),
        orchestrator=ParallelResearchOrchestrator(
            gemini,
            topic_timeout_seconds=settings.pipeline.topic_timeout_seconds,
            input_cost_per_mtok=settings.gemini.input_cost_per_mtok,
            output_cost_per_mtok=settings.gemini.output_cost_per_mtok,
        ),
        synthesizer=ResearchSynthesizer(gemini),
        memo_generator=MemoGenerator(gemini, get_fund_profile()),
        crm_client=get_crm_client(),
    )


@lru_cache()
def get_research_pipeline() -> ResearchPipeline:
    """Compile the research workflow once per process."""
    return ResearchPipeline(get_research_tools())


@lru_cache()
def get_pipeline_runner() -> PipelineRunner:
    """Provide the process-wide runner that owns background research tasks."""
    settings = get_app_settings()
    return PipelineRunner(
        get_research_pipeline(),
        cancel_on_disconnect=settings.pipeline.cancel_on_disconnect,
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
