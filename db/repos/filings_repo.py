from __future__ import annotations

import json
import sqlite3
from typing import List

from db.connection import db_lock
from models.registry_record import Filing


class FilingsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def replace_filings(self, company_number: str, filings: List[Filing]) -> int:
        """Swap the stored filing history of one company for a fresh fetch."""
        rows = [
            (
                company_number,
                f.transaction_id,
                f.date,
                f.filing_type,
                f.description,
                json.dumps(f.subcategory) if f.subcategory is not None else None,
                f.document_id,
                f.category,
                f.days_since_filing,
            )
            for f in filings
        ]
        with db_lock:
            self.conn.execute("DELETE FROM filing_history WHERE company_number = ?", (company_number,))
            self.conn.executemany(
                (
                    "INSERT INTO filing_history (company_number, transaction_id, filing_date, filing_type, "
                    "description, subcategory_json, document_id, category, days_since_filing) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)"
                ),
                rows,
            )
            self.conn.commit()
        return len(rows)

    def list_filings(self, company_number: str) -> List[Filing]:
        with db_lock:
            cur = self.conn.cursor()
            cur.execute(
                (
                    "SELECT transaction_id, filing_date, filing_type, description, subcategory_json, "
                    "document_id, category, days_since_filing FROM filing_history "
                    "WHERE company_number = ? ORDER BY filing_date DESC, id"
                ),
                (company_number,),
            )
            rows = cur.fetchall()
        filings: List[Filing] = []
        for tx, date, ftype, desc, sub, doc, cat, days in rows:
            filings.append(
                Filing(
                    transaction_id=tx,
                    date=date,
                    filing_type=ftype,
                    description=desc,
                    subcategory=json.loads(sub) if sub else None,
                    document_id=doc,
                    category=cat or "other",
                    days_since_filing=days,
                )
            )
        return filings
