"""SQLite-backed CRM stand-in used when no Attio workspace is configured."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

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

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteCRMClient:
    """Persist companies, opportunities and memo notes in a local database."""

    def __init__(self, db_path: str, *, opportunity_tag: str = "Gemini Research") -> None:
        self._db_path = Path(db_path)
        self._tag = opportunity_tag
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS companies (
                    record_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    domain TEXT UNIQUE,
                    description TEXT,
                    funding_raised_usd REAL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS opportunities (
                    record_id TEXT PRIMARY KEY,
                    company_id TEXT NOT NULL REFERENCES companies(record_id),
                    display_name TEXT NOT NULL,
                    round TEXT,
                    tags TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS notes (
                    note_id TEXT PRIMARY KEY,
                    parent_record_id TEXT NOT NULL REFERENCES opportunities(record_id),
                    title TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                """
            )

    async def lookup_company(
        self, name: str, domain: Optional[str] = None
    ) -> CompanyLookup:
        row = await self._run(self._find_company, name, domain)
        if row is None:
            return CompanyLookup(exists=False)
        return CompanyLookup(exists=True, record_id=row["record_id"])

    async def upsert_company(self, record: CompanyResearchRecord) -> CompanyUpsert:
        result = await self._run(self._upsert_company, record)
        logger.info(
            "Upserted local company '%s' (%s, new=%s)",
            record.company.name,
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
        stage = record.company.stage if record.company.stage != UNKNOWN else None
        record_id = await self._run(
            self._insert,
            "INSERT INTO opportunities (record_id, company_id, display_name, round, tags, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            company_id,
            opportunity_display_name(company_name),
            stage,
            json.dumps([self._tag]),
            _now(),
        )
        return OpportunityRecord(record_id=record_id, web_url=None)

    async def attach_note(self, opportunity_id: str, memo: InvestmentMemo) -> str:
        return await self._run(
            self._insert,
            "INSERT INTO notes (note_id, parent_record_id, title, content, created_at)"
            " VALUES (?, ?, ?, ?, ?)",
            opportunity_id,
            memo_note_title(memo),
            render_memo_markdown(memo),
            _now(),
        )

    def get_note(self, note_id: str) -> Optional[dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM notes WHERE note_id = ?", (note_id,)).fetchone()
        return dict(row) if row else None

    def list_opportunities(self, company_id: str) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM opportunities WHERE company_id = ? ORDER BY created_at",
                (company_id,),
            ).fetchall()
        return [{**dict(row), "tags": json.loads(row["tags"])} for row in rows]

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as exc:
            raise CRMError(f"Local CRM operation failed: {exc}") from exc

    def _find_company(self, name: str, domain: Optional[str]) -> Optional[sqlite3.Row]:
        with self._connect() as conn:
            if domain:
                row = conn.execute(
                    "SELECT * FROM companies WHERE domain = ?", (domain,)
                ).fetchone()
                if row is not None:
                    return row
            return conn.execute(
                "SELECT * FROM companies WHERE lower(name) LIKE ? ORDER BY created_at LIMIT 1",
                (f"%{name.strip().lower()}%",),
            ).fetchone()

    def _upsert_company(self, record: CompanyResearchRecord) -> CompanyUpsert:
        company = record.company
        domain = domain_from_website(company.website)
        description = company.description if company.description != UNKNOWN else None
        funding = parse_funding_amount(record.funding.total_raised)
        now = _now()

        with self._connect() as conn:
            if domain:
                existing = conn.execute(
                    "SELECT record_id FROM companies WHERE domain = ?", (domain,)
                ).fetchone()
            else:
                existing = conn.execute(
                    "SELECT record_id FROM companies WHERE lower(name) = ?",
                    (company.name.strip().lower(),),
                ).fetchone()

            if existing is not None:
                record_id = existing["record_id"]
                conn.execute(
                    """
                    UPDATE companies
                    SET name = ?,
                        description = COALESCE(?, description),
                        funding_raised_usd = COALESCE(?, funding_raised_usd),
                        updated_at = ?
                    WHERE record_id = ?
                    """,
                    (company.name, description, funding, now, record_id),
                )
                return CompanyUpsert(record_id=record_id, web_url=None, is_new=False)

            record_id = uuid.uuid4().hex
            conn.execute(
                """
                INSERT INTO companies
                    (record_id, name, domain, description, funding_raised_usd, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (record_id, company.name, domain, description, funding, now, now),
            )
        return CompanyUpsert(record_id=record_id, web_url=None, is_new=True)

    def _insert(self, statement: str, *values: Any) -> str:
        record_id = uuid.uuid4().hex
        with self._connect() as conn:
            conn.execute(statement, (record_id, *values))
        return record_id


__all__ = ["SQLiteCRMClient"]
