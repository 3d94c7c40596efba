"""Tool abstractions used by the research pipeline."""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

from app.clients.crm import CompanyLookup, CRMClient, domain_from_website
from app.schemas.memo import InvestmentMemo
from app.schemas.pipeline import CRMLinkage
from app.schemas.research import (
    CompanyResearchRecord,
    ParallelResearchResult,
    ResearchTopic,
)
from app.schemas.triage import FileAttachment
from app.services.memo import MemoGenerator, MemoOutcome
from app.services.research import ParallelResearchOrchestrator, ProgressCallback
from app.services.synthesis import ResearchSynthesizer, SynthesisOutcome
from app.services.triage import FileTriageService, TriageOutcome

logger = logging.getLogger(__name__)


class ResearchTools:
    """Facade over the services and integrations needed during a run."""

    def __init__(
        self,
        *,
        triage_service: FileTriageService,
        orchestrator: ParallelResearchOrchestrator,
        synthesizer: ResearchSynthesizer,
        memo_generator: MemoGenerator,
        crm_client: CRMClient,
    ) -> None:
        self._triage = triage_service
        self._orchestrator = orchestrator
        self._synthesizer = synthesizer
        self._memo = memo_generator
        self._crm = crm_client

    async def triage_files(
        self, files: Sequence[FileAttachment], hint: Optional[str] = None
    ) -> TriageOutcome:
        return await self._triage.triage(files, hint)

    async def lookup_company(self, company: str) -> CompanyLookup:
        return await self._crm.lookup_company(company)

    async def run_research(
        self,
        company: str,
        context: Mapping[ResearchTopic, str],
        on_progress: ProgressCallback,
    ) -> ParallelResearchResult:
        return await self._orchestrator.run(company, context, on_progress)

    async def synthesize(
        self, company: str, research: ParallelResearchResult
    ) -> SynthesisOutcome:
        return await self._synthesizer.synthesize(company, research)

    async def generate_memo(
        self,
        company: str,
        record: CompanyResearchRecord,
        research: ParallelResearchResult,
    ) -> MemoOutcome:
        return await self._memo.generate(company, record, research)

    async def save_to_crm(
        self,
        company: str,
        record: CompanyResearchRecord,
        memo: InvestmentMemo,
    ) -> CRMLinkage:
        """Upsert the company, open an opportunity and attach the memo note."""
        upsert = await self._crm.upsert_company(record)
        opportunity = await self._crm.create_opportunity(
            upsert.record_id, company, memo, record
        )
        note_id = await self._crm.attach_note(opportunity.record_id, memo)
        logger.info(
            "Saved '%s' to CRM (company=%s, domain=%s, opportunity=%s, note=%s)",
            company,
            upsert.record_id,
            domain_from_website(record.company.website),
            opportunity.record_id,
            note_id,
        )
        return CRMLinkage(
            company_record_id=upsert.record_id,
            company_url=upsert.web_url,
            is_new_company=upsert.is_new,
            opportunity_id=opportunity.record_id,
            opportunity_url=opportunity.web_url,
            note_id=note_id,
        )


__all__ = ["ResearchTools"]
