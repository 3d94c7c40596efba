"""Expose constructed client wrappers."""

from .attio import AttioClient
from .crm import CompanyLookup, CompanyUpsert, CRMClient, OpportunityRecord
from .gemini import GeminiClient, GeminiModelError, GenerationResult
from .local_crm import SQLiteCRMClient
from .web_search import WebSearchClient

__all__ = [
    "AttioClient",
    "CRMClient",
    "CompanyLookup",
    "CompanyUpsert",
    "GeminiClient",
    "GeminiModelError",
    "GenerationResult",
    "OpportunityRecord",
    "SQLiteCRMClient",
    "WebSearchClient",
]
