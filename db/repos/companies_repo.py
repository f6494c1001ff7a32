from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from db.connection import db_lock
from models.enriched_company import EnrichedCompany


_COLUMNS = [
    "company_number",
    "company_name",
    "status",
    "status_interpretation",
    "incorporation_date",
    "company_type",
    "jurisdiction",
    "registered_address_json",
    "sic_codes_json",
    "age_years",
    "employee_count",
    "employee_count_source",
    "estimated_revenue",
    "revenue_source",
    "estimated_valuation",
    "valuation_source",
    "estimator",
    "data_retrieved_at",
    "last_processed",
]
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM companies"


def _to_row(company: EnrichedCompany) -> Dict[str, Any]:
    data = company.model_dump(mode="json")
    row = {k: data.get(k) for k in _COLUMNS if not k.endswith("_json")}
    # Preserve non-ASCII characters in stored JSON text
    row["registered_address_json"] = (
        json.dumps(data["registered_address"], ensure_ascii=False) if data.get("registered_address") is not None else None
    )
    row["sic_codes_json"] = json.dumps(data.get("sic_codes") or [])
    return row


def _from_row(row: Tuple) -> EnrichedCompany:
    data = dict(zip(_COLUMNS, row))
    address = data.pop("registered_address_json")
    codes = data.pop("sic_codes_json")
    data["registered_address"] = json.loads(address) if address else None
    data["sic_codes"] = json.loads(codes) if codes else []
    return EnrichedCompany.model_validate(data)


class CompaniesRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def upsert_company(self, company: EnrichedCompany) -> EnrichedCompany:
        """Insert or replace a company keyed by company number.

        A re-enrichment overwrites registry and derived fields; created_at is kept.
        """
        row = _to_row(company)
        now = datetime.now(timezone.utc).isoformat()
        cols = list(row.keys())
        placeholders = ", ".join("?" for _ in cols)
        updates = ", ".join(f"{c} = excluded.{c}" for c in cols if c != "company_number")
        sql = (
            f"INSERT INTO companies ({', '.join(cols)}, created_at, updated_at) "
            f"VALUES ({placeholders}, ?, ?) "
            f"ON CONFLICT(company_number) DO UPDATE SET {updates}, updated_at = excluded.updated_at"
        )
        with db_lock:
            self.conn.execute(sql, (*[row[c] for c in cols], now, now))
            self.conn.commit()
        return company

    def get_by_number(self, company_number: str) -> Optional[EnrichedCompany]:
        with db_lock:
            cur = self.conn.cursor()
            cur.execute(f"{_SELECT} WHERE company_number = ?", (company_number,))
            row = cur.fetchone()
        return _from_row(row) if row else None

    def search(self, query: str, limit: int = 10) -> List[EnrichedCompany]:
        """Literal case-insensitive substring match over name, or substring over number.

        ``instr`` keeps ``%`` and ``_`` in the query literal.
        """
        needle = (query or "").strip()
        if not needle:
            return []
        with db_lock:
            cur = self.conn.cursor()
            cur.execute(
                f"{_SELECT} WHERE instr(lower(company_name), ?) > 0 OR instr(company_number, ?) > 0 "
                "ORDER BY updated_at DESC, id DESC LIMIT ?",
                (needle.lower(), needle, limit),
            )
            rows = cur.fetchall()
        return [_from_row(r) for r in rows]

    def list_companies(self, offset: int = 0, limit: int = 50) -> Tuple[List[EnrichedCompany], int]:
        """Page of companies, most recently updated first, plus the total count."""
        with db_lock:
            cur = self.conn.cursor()
            cur.execute(f"{_SELECT} ORDER BY updated_at DESC, id DESC LIMIT ? OFFSET ?", (limit, offset))
            rows = cur.fetchall()
            cur.execute("SELECT COUNT(*) FROM companies")
            total = int(cur.fetchone()[0])
        return [_from_row(r) for r in rows], total
