import argparse
import json
import logging
import os
import sys
import uuid as _uuid
from pathlib import Path
from typing import List

from config.settings import get_settings
from db import schema
from db.connection import get_connection
from db.repos.companies_repo import CompaniesRepo
from db.repos.filings_repo import FilingsRepo
from db.repos.jobs_repo import JobsRepo
from estimators import available_estimators
from models.processing_options import ProcessingOptions
from pipelines.job_processor import JobProcessor
from services.errors import RegistryError
from services.registry_client import RegistryClient
from services.reporting import print_job_summary
from utils.logging_setup import init_logging

logger = logging.getLogger(__name__)


def _open_db(args):
    conn = get_connection(args.db)
    schema.bootstrap(conn)
    return conn


def _build_processor(conn, on_progress=None) -> JobProcessor:
    # Dependency root: one registry client (gate + cache) shared by every job in this process
    settings = get_settings()
    client = RegistryClient(settings)
    return JobProcessor(
        client,
        CompaniesRepo(conn),
        JobsRepo(conn),
        FilingsRepo(conn),
        settings,
        on_progress=on_progress,
    )


def _options_from_args(args) -> ProcessingOptions:
    settings = get_settings()
    return ProcessingOptions(
        use_cache=not getattr(args, "no_cache", False),
        filing_history=getattr(args, "filing_history", False),
        parallel_processing=getattr(args, "parallel", False),
        estimator=getattr(args, "estimator", None) or settings.default_estimator,
    )


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _read_identifiers(path: str) -> List[str]:
    text = Path(path).read_text(encoding="utf-8")
    if path.lower().endswith(".json"):
        data = json.loads(text)
        items = data.get("companies") if isinstance(data, dict) else data
        return [str(x).strip() for x in (items or []) if str(x).strip()]
    return [line.strip() for line in text.splitlines() if line.strip()]


def cmd_bootstrap(args):
    _open_db(args)
    print("Schema ready")


def cmd_lookup(args):
    conn = _open_db(args)
    processor = _build_processor(conn)
    options = _options_from_args(args)
    try:
        company = processor.process_single(args.identifier, options)
    except (RegistryError, RuntimeError) as e:
        print(f"Lookup failed: {e}")
        sys.exit(1)
    out = {"company": company.model_dump(mode="json")}
    if options.filing_history:
        out["filings"] = [f.model_dump(mode="json") for f in FilingsRepo(conn).list_filings(company.company_number)]
    _print_json(out)


def cmd_bulk(args):
    conn = _open_db(args)
    identifiers = _read_identifiers(args.input)

    def _progress(job):
        done = job.processed_items + job.failed_items
        print(f"[{done}/{job.total_items}] processed={job.processed_items} failed={job.failed_items}")

    processor = _build_processor(conn, on_progress=_progress if args.progress else None)
    job_id = processor.start_bulk_job(identifiers, _options_from_args(args))
    print(f"Bulk job {job_id} started with {len(identifiers)} companies")
    job = processor.wait(job_id)
    if job is not None:
        print_job_summary(job)


def cmd_status(args):
    conn = _open_db(args)
    job = JobsRepo(conn).get_job(args.job_id)
    if job is None:
        print("Job not found")
        return
    _print_json(job.model_dump(mode="json"))


def cmd_search(args):
    conn = _open_db(args)
    limit = min(args.limit, 50)
    local = [c.model_dump(mode="json") for c in CompaniesRepo(conn).search(args.query, limit)]
    if len(local) >= limit:
        _print_json({"companies": local})
        return
    # Supplement stored companies with live registry hits
    try:
        remote = RegistryClient(get_settings()).search(args.query)
    except (RegistryError, RuntimeError) as e:
        logger.warning("Registry search unavailable", extra={"error": str(e)})
        remote = []
    combined = local + [c.model_dump(mode="json") for c in remote[: limit - len(local)]]
    _print_json({"companies": combined})


def cmd_companies(args):
    conn = _open_db(args)
    companies, total = CompaniesRepo(conn).list_companies(args.offset, args.limit)
    _print_json({"companies": [c.model_dump(mode="json") for c in companies], "total": total})


def cmd_recent_jobs(args):
    conn = _open_db(args)
    jobs = JobsRepo(conn).recent_jobs(args.limit)
    _print_json({"jobs": [j.model_dump(mode="json", exclude={"results"}) for j in jobs]})


def cmd_report_company(args):
    conn = _open_db(args)
    company = CompaniesRepo(conn).get_by_number(args.company_number)
    if company is None:
        print("No record found for company")
        return
    filings = FilingsRepo(conn).list_filings(args.company_number)
    _print_json({
        "company": company.model_dump(mode="json"),
        "filings": [f.model_dump(mode="json") for f in filings],
    })


def main():
    settings = get_settings()
    init_logging(settings.log_level)
    if not os.getenv("RUN_ID"):
        os.environ["RUN_ID"] = _uuid.uuid4().hex
    parser = argparse.ArgumentParser(description="Company enrichment CLI")
    parser.add_argument("--db", default=settings.db_path, help="Path to SQLite DB (default from settings)")
    sub = parser.add_subparsers(dest="cmd", required=True)
    estimator_names = sorted(available_estimators().keys())

    p_boot = sub.add_parser("bootstrap", help="Create tables and indexes")
    p_boot.set_defaults(func=cmd_bootstrap)

    p_look = sub.add_parser("lookup", help="Enrich one company by number or name")
    p_look.add_argument("identifier", help="8-digit company number or company name")
    p_look.add_argument("--no-cache", action="store_true", help="Ignore companies already stored in the DB")
    p_look.add_argument("--filing-history", action="store_true", help="Also fetch and store filing history")
    p_look.add_argument("--estimator", choices=estimator_names, default=None, help="Estimation model (default from settings)")
    p_look.set_defaults(func=cmd_lookup)

    p_bulk = sub.add_parser("bulk", help="Run a bulk enrichment job")
    p_bulk.add_argument("--input", required=True, help="Text file with one identifier per line, or a JSON array")
    p_bulk.add_argument("--parallel", action="store_true", help="Use a bounded worker pool (ENRICH_CONCURRENCY)")
    p_bulk.add_argument("--filing-history", action="store_true", help="Also fetch and store filing history")
    p_bulk.add_argument("--estimator", choices=estimator_names, default=None, help="Estimation model (default from settings)")
    p_bulk.add_argument("--progress", action="store_true", help="Print progress after each company")
    p_bulk.set_defaults(func=cmd_bulk)

    p_stat = sub.add_parser("status", help="Show a job by id")
    p_stat.add_argument("job_id")
    p_stat.set_defaults(func=cmd_status)

    p_srch = sub.add_parser("search", help="Search stored companies, then the registry")
    p_srch.add_argument("query")
    p_srch.add_argument("--limit", type=int, default=10)
    p_srch.set_defaults(func=cmd_search)

    p_list = sub.add_parser("companies", help="List stored companies, most recently updated first")
    p_list.add_argument("--offset", type=int, default=0)
    p_list.add_argument("--limit", type=int, default=50)
    p_list.set_defaults(func=cmd_companies)

    p_jobs = sub.add_parser("recent-jobs", help="List recent jobs")
    p_jobs.add_argument("--limit", type=int, default=10)
    p_jobs.set_defaults(func=cmd_recent_jobs)

    p_rep = sub.add_parser("report-company", help="Show a stored company with its filing history")
    p_rep.add_argument("company_number")
    p_rep.set_defaults(func=cmd_report_company)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
