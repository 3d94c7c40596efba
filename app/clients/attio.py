"""Attio CRM client for companies, investment opportunities and notes."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from app.clients.crm import (
    CompanyLookup,
    CompanyUpsert,
    OpportunityRecord,
    domain_from_website,
    memo_note_title,
    opportunity_display_name,
    parse_funding_amount,
    render_memo_markdown,
)
from app.core.errors import CRMError
from app.schemas.memo import InvestmentMemo
from app.schemas.research import UNKNOWN, CompanyResearchRecord
from app.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)


class AttioClient:
    """Thin async wrapper around the Attio v2 REST API."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.attio.com",
        opportunity_tag: str = "Gemini Research",
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._tag = opportunity_tag
        self._timeout = timeout_seconds
        self._transport = transport

    async def lookup_company(
        self, name: str, domain: Optional[str] = None
    ) -> CompanyLookup:
        """Search companies by name, or by name or domain when one is known."""
        if domain:
            query_filter: Dict[str, Any] = {
                "$or": [
                    {"name": {"$contains": name}},
                    {"domains": {"$contains": domain}},
                ]
            }
        else:
            query_filter = {"name": {"$contains": name}}

        payload = await self._request(
            "POST",
            "/v2/objects/companies/records/query",
            json={"filter": query_filter, "limit": 5},
        )
        records = payload.get("data") or []
        if not records:
            return CompanyLookup(exists=False)
        record = records[0]
        return CompanyLookup(
            exists=True,
            record_id=_record_id(record),
            web_url=record.get("web_url"),
        )

    async def upsert_company(self, record: CompanyResearchRecord) -> CompanyUpsert:
        """Assert a company record, matching on domain when the website is known."""
        company = record.company
        domain = domain_from_website(company.website)
        existing = await self.lookup_company(company.name, domain)

        values: Dict[str, Any] = {"name": [{"value": company.name}]}
        if domain:
            values["domains"] = [{"domain": domain}]
        if company.description and company.description != UNKNOWN:
            values["description"] = [{"value": company.description}]
            values["brief"] = [{"value": company.description[:500]}]
        funding = parse_funding_amount(record.funding.total_raised)
        if funding is not None:
            values["funding_raised_usd"] = [{"currency_value": funding}]

        matching_attribute = "domains" if domain else "name"
        payload = await self._request(
            "PUT",
            "/v2/objects/companies/records",
            params={"matching_attribute": matching_attribute},
            json={"data": {"values": values}},
        )
        data = payload.get("data") or {}
        result = CompanyUpsert(
            record_id=_record_id(data),
            web_url=data.get("web_url"),
            is_new=not existing.exists,
        )
        logger.info(
            "Upserted Attio company '%s' (%s, new=%s)",
            company.name,
            result.record_id,
            result.is_new,
        )
        return result

    async def create_opportunity(
        self,
        company_id: str,
        company_name: str,
        memo: InvestmentMemo,
        record: CompanyResearchRecord,
    ) -> OpportunityRecord:
        values: Dict[str, Any] = {
            "display_name": [{"value": opportunity_display_name(company_name)}],
            "company": [
                {"target_object": "companies", "target_record_id": company_id}
            ],
            "tags": [{"option": self._tag}],
        }
        if record.company.stage and record.company.stage != UNKNOWN:
            values["round"] = [{"value": record.company.stage}]

        payload = await self._request(
            "POST",
            "/v2/objects/investment_opportunities/records",
            json={"data": {"values": values}},
        )
        data = payload.get("data") or {}
        return OpportunityRecord(record_id=_record_id(data), web_url=data.get("web_url"))

    async def attach_note(self, opportunity_id: str, memo: InvestmentMemo) -> str:
        payload = await self._request(
            "POST",
            "/v2/notes",
            json={
                "data": {
                    "parent_object": "investment_opportunities",
                    "parent_record_id": opportunity_id,
                    "title": memo_note_title(memo),
                    "format": "markdown",
                    "content": render_memo_markdown(memo),
                }
            },
        )
        try:
            return str(payload["data"]["id"]["note_id"])
        except (KeyError, TypeError) as exc:
            raise CRMError("Attio note response did not include a note id") from exc

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=headers,
            transport=self._transport,
        ) as client:
            try:
                response = await request_with_retry(
                    client.request,
                    method,
                    path,
                    params=params,
                    json=json,
                    retry_config=RetryConfig(attempts=3, backoff_seconds=0.5),
                )
            except httpx.HTTPStatusError as exc:
                raise CRMError(
                    f"Attio API error: {exc.response.status_code} - {exc.response.text}"
                ) from exc
            except httpx.HTTPError as exc:
                raise CRMError(f"Attio request failed: {exc}") from exc
        try:
            return response.json()
        except ValueError as exc:
            raise CRMError(
                f"Attio returned a non-JSON response ({response.status_code})"
            ) from exc


def _record_id(record: Dict[str, Any]) -> str:
    try:
        return str(record["id"]["record_id"])
    except (KeyError, TypeError) as exc:
        raise CRMError("Attio response did not include a record id") from exc


__all__ = ["AttioClient"]
