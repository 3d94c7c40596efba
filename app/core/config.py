"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the research pipeline and
the operational scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()

_SECTION_CONFIG = SettingsConfigDict(extra="ignore", populate_by_name=True)


class GeminiSettings(BaseSettings):
    """Configuration for Gemini model access."""

    model_config = _SECTION_CONFIG

    api_key: str = Field(..., validation_alias="GEMINI_API_KEY")
    model_name: str = Field("gemini-1.5-pro", validation_alias="GEMINI_MODEL_NAME")
    research_model_name: str = Field(
        "gemini-1.5-pro",
        validation_alias="GEMINI_RESEARCH_MODEL_NAME",
        description="Model used for the search-augmented topic queries.",
    )
    research_max_steps: int = Field(
        5,
        ge=1,
        validation_alias="GEMINI_RESEARCH_MAX_STEPS",
        description="Upper bound on tool-calling rounds per topic query.",
    )
    input_cost_per_mtok: float = Field(
        1.25,
        ge=0,
        validation_alias="GEMINI_INPUT_COST_PER_MTOK",
        description="USD per million prompt tokens, used for cost estimates.",
    )
    output_cost_per_mtok: float = Field(
        5.0,
        ge=0,
        validation_alias="GEMINI_OUTPUT_COST_PER_MTOK",
        description="USD per million output tokens, used for cost estimates.",
    )


class CRMSettings(BaseSettings):
    """Settings for the CRM collaborator."""

    model_config = _SECTION_CONFIG

    attio_api_key: Optional[str] = Field(
        None,
        validation_alias="ATTIO_API_KEY",
        description="When omitted, records are written to the local SQLite CRM.",
    )
    attio_base_url: AnyHttpUrl = Field(
        "https://api.attio.com", validation_alias="ATTIO_BASE_URL"
    )
    local_db_path: str = Field(
        "./data/crm.db",
        validation_alias="CRM_LOCAL_DB_PATH",
    )
    opportunity_tag: str = Field("Gemini Research", validation_alias="CRM_OPPORTUNITY_TAG")


class UploadSettings(BaseSettings):
    """Size ceilings enforced on multipart uploads before a run starts."""

    model_config = _SECTION_CONFIG

    max_file_bytes: int = Field(20 * 1024 * 1024, gt=0, validation_alias="UPLOAD_MAX_FILE_BYTES")
    max_total_bytes: int = Field(50 * 1024 * 1024, gt=0, validation_alias="UPLOAD_MAX_TOTAL_BYTES")


class PipelineSettings(BaseSettings):
    """Runtime policy for research pipeline runs."""

    model_config = _SECTION_CONFIG

    topic_timeout_seconds: Optional[float] = Field(
        None,
        gt=0,
        validation_alias="RESEARCH_TOPIC_TIMEOUT_SECONDS",
        description="Optional wall-clock ceiling for each topic query.",
    )
    cancel_on_disconnect: bool = Field(
        False,
        validation_alias="PIPELINE_CANCEL_ON_DISCONNECT",
        description=(
            "Cancel the background run when the streaming client disconnects. "
            "Runs complete regardless of listeners when false."
        ),
    )

    @field_validator("topic_timeout_seconds", mode="before")
    @classmethod
    def _blank_timeout(cls, value: object) -> object:
        """Treat an empty env value as no timeout."""
        if isinstance(value, str) and not value.strip():
            return None
        return value


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    fund_profile_path: Optional[Path] = Field(
        None,
        validation_alias="FUND_PROFILE_PATH",
        description="Optional JSON file overriding the built-in fund thesis and partners.",
    )
    serpapi_api_key: Optional[str] = Field(
        None,
        validation_alias="SERPAPI_API_KEY",
        description="Optional SerpAPI key enabling the step-bounded research tool loop.",
    )
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    crm: CRMSettings = Field(default_factory=CRMSettings)
    uploads: UploadSettings = Field(default_factory=UploadSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "CRMSettings",
    "GeminiSettings",
    "PipelineSettings",
    "UploadSettings",
    "get_settings",
]
