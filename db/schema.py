from __future__ import annotations

import sqlite3

from db.connection import db_lock


def bootstrap(conn: sqlite3.Connection) -> None:
    """Create companies, jobs and filing history tables plus indexes (idempotent)."""
    with db_lock:
        cur = conn.cursor()

        # Companies table: one row per registry company number
        cur.execute(
            (
                "CREATE TABLE IF NOT EXISTS companies (\n"
                "  id INTEGER PRIMARY KEY AUTOINCREMENT,\n"
                "  company_number TEXT NOT NULL UNIQUE,\n"
                "  company_name TEXT NOT NULL,\n"
                "  status TEXT,\n"
                "  status_interpretation TEXT,\n"
                "  incorporation_date TEXT,\n"
                "  company_type TEXT,\n"
                "  jurisdiction TEXT,\n"
                "  registered_address_json TEXT,\n"
                "  sic_codes_json TEXT,\n"
                "  age_years REAL,\n"
                "  employee_count INTEGER,\n"
                "  employee_count_source TEXT,\n"
                "  estimated_revenue TEXT,\n"
                "  revenue_source TEXT,\n"
                "  estimated_valuation TEXT,\n"
                "  valuation_source TEXT,\n"
                "  estimator TEXT,\n"
                "  data_retrieved_at TEXT,\n"
                "  last_processed TEXT,\n"
                "  created_at TEXT NOT NULL,\n"
                "  updated_at TEXT NOT NULL\n"
                ")"
            )
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_companies_name ON companies(company_name);")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_companies_updated ON companies(updated_at);")

        # Processing jobs
        cur.execute(
            (
                "CREATE TABLE IF NOT EXISTS processing_jobs (\n"
                "  id TEXT PRIMARY KEY,\n"
                "  job_type TEXT NOT NULL,\n"
                "  status TEXT NOT NULL DEFAULT 'pending',\n"
                "  total_items INTEGER NOT NULL DEFAULT 1,\n"
                "  processed_items INTEGER NOT NULL DEFAULT 0,\n"
                "  failed_items INTEGER NOT NULL DEFAULT 0,\n"
                "  options_json TEXT,\n"
                "  results_json TEXT,\n"
                "  error_log_json TEXT,\n"
                "  estimated_duration INTEGER,\n"
                "  actual_duration INTEGER,\n"
                "  created_at TEXT NOT NULL,\n"
                "  updated_at TEXT NOT NULL,\n"
                "  completed_at TEXT\n"
                ")"
            )
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_jobs_created ON processing_jobs(created_at);")

        # Filing history
        cur.execute(
            (
                "CREATE TABLE IF NOT EXISTS filing_history (\n"
                "  id INTEGER PRIMARY KEY AUTOINCREMENT,\n"
                "  company_number TEXT NOT NULL,\n"
                "  transaction_id TEXT,\n"
                "  filing_date TEXT,\n"
                "  filing_type TEXT,\n"
                "  description TEXT,\n"
                "  subcategory_json TEXT,\n"
                "  document_id TEXT,\n"
                "  category TEXT,\n"
                "  days_since_filing INTEGER,\n"
                "  created_at TEXT NOT NULL DEFAULT (datetime('now')),\n"
                "  FOREIGN KEY(company_number) REFERENCES companies(company_number) ON DELETE CASCADE\n"
                ")"
            )
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_filings_company ON filing_history(company_number);")

        conn.commit()
