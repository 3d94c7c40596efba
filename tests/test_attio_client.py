try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

try:
    from . import _samples
except Exception:  # pragma: no cover - fallback for direct execution
    import _samples  # type: ignore

import json
import logging

import httpx
import pytest

from agents.research_pipeline.controller import ResearchPipeline
from agents.research_pipeline.tools import ResearchTools
from app.clients.attio import AttioClient
from app.clients.crm import domain_from_website, opportunity_display_name, parse_funding_amount
from app.core.errors import CRMError
from app.core.fund_profile import default_fund_profile
from app.schemas import CompanyResearchRecord, ErrorEvent, InvestmentMemo, ResearchRequest, ResultEvent
from app.services import (
    FileTriageService,
    MemoGenerator,
    ParallelResearchOrchestrator,
    ResearchSynthesizer,
)
from app.services.progress import ProgressChannel


class FakeAttio:
    """Minimal in-memory responder for the Attio endpoints the client uses."""

    def __init__(
        self,
        *,
        existing: bool = False,
        fail_status: int | None = None,
        html_paths: tuple[str, ...] = (),
    ) -> None:
        self.existing = existing
        self.fail_status = fail_status
        self.html_paths = html_paths
        self.requests: list[httpx.Request] = []

    def bodies(self, path: str) -> list[dict]:
        return [json.loads(request.content) for request in self.requests if request.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, text="upstream unavailable")
        if path in self.html_paths:
            return httpx.Response(200, text="<html>maintenance</html>")
        if path == "/v2/objects/companies/records/query":
            data = [{"id": {"record_id": "comp-1"}, "web_url": "https://app.attio.com/c/comp-1"}]
            return httpx.Response(200, json={"data": data if self.existing else []})
        if path == "/v2/objects/companies/records":
            return httpx.Response(
                200,
                json={"data": {"id": {"record_id": "comp-1"}, "web_url": "https://app.attio.com/c/comp-1"}},
            )
        if path == "/v2/objects/investment_opportunities/records":
            return httpx.Response(
                200,
                json={"data": {"id": {"record_id": "opp-1"}, "web_url": "https://app.attio.com/o/opp-1"}},
            )
        if path == "/v2/notes":
            return httpx.Response(200, json={"data": {"id": {"note_id": "note-1"}}})
        return httpx.Response(404, json={"message": "not found"})


def _client(fake: FakeAttio) -> AttioClient:
    return AttioClient(api_key="attio-key", transport=httpx.MockTransport(fake))


def _record() -> CompanyResearchRecord:
    return CompanyResearchRecord.model_validate(_samples.record_payload())


def _memo() -> InvestmentMemo:
    return InvestmentMemo.model_validate(_samples.memo_payload())


def test_crm_value_helpers() -> None:
    assert domain_from_website("https://www.Acme-Robotics.ai/about?x=1") == "acme-robotics.ai"
    assert domain_from_website("Unknown") is None
    assert parse_funding_amount("$12.5M") == 12_500_000
    assert parse_funding_amount("about $1,200K") == 1_200_000
    assert parse_funding_amount("$2B") == 2_000_000_000
    assert parse_funding_amount("Unknown") is None
    assert parse_funding_amount("undisclosed") is None


@pytest.mark.asyncio
async def test_lookup_sends_bearer_token_and_name_filter() -> None:
    fake = FakeAttio(existing=True)

    lookup = await _client(fake).lookup_company("Acme Robotics")

    assert lookup.exists
    assert lookup.record_id == "comp-1"
    request = fake.requests[0]
    assert request.headers["Authorization"] == "Bearer attio-key"
    assert json.loads(request.content)["filter"] == {"name": {"$contains": "Acme Robotics"}}


@pytest.mark.asyncio
async def test_upsert_matches_on_domain_and_reports_new_company() -> None:
    fake = FakeAttio(existing=False)

    upsert = await _client(fake).upsert_company(_record())

    assert upsert.record_id == "comp-1"
    assert upsert.is_new
    put = next(request for request in fake.requests if request.method == "PUT")
    assert put.url.params["matching_attribute"] == "domains"
    values = json.loads(put.content)["data"]["values"]
    assert values["domains"] == [{"domain": "acme-robotics.ai"}]
    assert values["funding_raised_usd"] == [{"currency_value": 12_500_000.0}]
    query = fake.bodies("/v2/objects/companies/records/query")[0]
    assert {"domains": {"$contains": "acme-robotics.ai"}} in query["filter"]["$or"]


@pytest.mark.asyncio
async def test_opportunity_and_note_payloads() -> None:
    fake = FakeAttio()
    client = _client(fake)

    opportunity = await client.create_opportunity("comp-1", "Acme Robotics", _memo(), _record())
    note_id = await client.attach_note(opportunity.record_id, _memo())

    assert opportunity.record_id == "opp-1"
    assert note_id == "note-1"
    values = fake.bodies("/v2/objects/investment_opportunities/records")[0]["data"]["values"]
    assert values["display_name"] == [{"value": opportunity_display_name("Acme Robotics")}]
    assert values["company"] == [{"target_object": "companies", "target_record_id": "comp-1"}]
    assert values["tags"] == [{"option": "Gemini Research"}]
    assert values["round"] == [{"value": "Series A"}]
    note = fake.bodies("/v2/notes")[0]["data"]
    assert note["parent_object"] == "investment_opportunities"
    assert note["parent_record_id"] == "opp-1"
    assert note["title"] == "Investment Memo: 7.4/10"
    assert note["format"] == "markdown"
    assert note["content"].startswith("# Investment Memo")


@pytest.mark.asyncio
async def test_client_errors_are_not_retried() -> None:
    fake = FakeAttio(fail_status=400)

    with pytest.raises(CRMError) as exc_info:
        await _client(fake).lookup_company("Acme Robotics")

    assert "400" in str(exc_info.value)
    assert len(fake.requests) == 1


@pytest.mark.asyncio
async def test_transient_errors_are_retried() -> None:
    fake = FakeAttio()
    original = fake.__call__
    attempts = {"count": 0}

    def flaky(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] == 1:
            fake.requests.append(request)
            return httpx.Response(503, text="try later")
        return original(request)

    client = AttioClient(api_key="attio-key", transport=httpx.MockTransport(flaky))

    lookup = await client.lookup_company("Acme Robotics")

    assert not lookup.exists
    assert len(fake.requests) == 2


@pytest.mark.asyncio
async def test_save_to_crm_links_every_record() -> None:
    gemini = _samples.ScriptedGemini()
    tools = ResearchTools(
        triage_service=FileTriageService(gemini),
        orchestrator=ParallelResearchOrchestrator(gemini),
        synthesizer=ResearchSynthesizer(gemini),
        memo_generator=MemoGenerator(gemini, default_fund_profile()),
        crm_client=_client(FakeAttio(existing=True)),
    )

    linkage = await tools.save_to_crm("Acme Robotics", _record(), _memo())

    assert linkage.company_record_id == "comp-1"
    assert linkage.company_url == "https://app.attio.com/c/comp-1"
    assert linkage.is_new_company is False
    assert linkage.opportunity_id == "opp-1"
    assert linkage.opportunity_url == "https://app.attio.com/o/opp-1"
    assert linkage.note_id == "note-1"


def _tools_with(handler, gemini) -> ResearchTools:
    return ResearchTools(
        triage_service=FileTriageService(gemini),
        orchestrator=ParallelResearchOrchestrator(gemini),
        synthesizer=ResearchSynthesizer(gemini),
        memo_generator=MemoGenerator(gemini, default_fund_profile()),
        crm_client=AttioClient(api_key="attio-key", transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_non_json_reply_becomes_crm_error() -> None:
    fake = FakeAttio(html_paths=("/v2/objects/companies/records/query",))

    with pytest.raises(CRMError) as exc_info:
        await _client(fake).lookup_company("Acme Robotics")

    assert str(exc_info.value) == "Attio returned a non-JSON response (200)"
    assert len(fake.requests) == 1


@pytest.mark.asyncio
async def test_non_json_lookup_does_not_stop_the_run() -> None:
    fake = FakeAttio(existing=True)
    original = fake.__call__
    lookups = {"count": 0}

    def html_on_first_lookup(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v2/objects/companies/records/query" and lookups["count"] == 0:
            lookups["count"] += 1
            fake.requests.append(request)
            return httpx.Response(200, text="<html>maintenance</html>")
        return original(request)

    gemini = _samples.ScriptedGemini()
    tools = _tools_with(html_on_first_lookup, gemini)
    channel = ProgressChannel("run-attio")

    result = await ResearchPipeline(tools).run(ResearchRequest(text="Acme Robotics"), channel)

    assert result is not None
    assert isinstance(channel.history[-1], ResultEvent)
    assert len(gemini.research_prompts) == 6
    assert result.crm.note_id == "note-1"


@pytest.mark.asyncio
async def test_non_json_save_reply_fails_the_run_and_logs_the_memo(caplog) -> None:
    fake = FakeAttio(html_paths=("/v2/notes",))
    channel = ProgressChannel("run-attio")

    with caplog.at_level(logging.ERROR):
        result = await ResearchPipeline(_tools_with(fake, _samples.ScriptedGemini())).run(
            ResearchRequest(text="Acme Robotics"), channel
        )

    assert result is None
    terminal = [event for event in channel.history if event.terminal]
    assert len(terminal) == 1
    assert isinstance(terminal[0], ErrorEvent)
    assert "non-JSON" in terminal[0].message
    assert any("generated memo follows" in record.getMessage() for record in caplog.records)
