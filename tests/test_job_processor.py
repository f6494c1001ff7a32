from __future__ import annotations

import dataclasses
from datetime import datetime, timezone

import pytest

from config.settings import get_settings
from db import schema
from db.connection import get_connection
from db.repos.companies_repo import CompaniesRepo
from db.repos.filings_repo import FilingsRepo
from db.repos.jobs_repo import JobsRepo
from models.job import Job, JobKind, JobStatus
from models.processing_options import ProcessingOptions
from models.registry_record import Filing, RegistryRecord, SearchCandidate
from pipelines.job_processor import JobProcessor
from services.errors import NotFoundError


RETRIEVED = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _record(number: str, name: str = "ACME LIMITED", sic=("43210", "bogus")) -> RegistryRecord:
    return RegistryRecord(
        company_number=number,
        company_name=name,
        company_status="active",
        date_of_creation="2010-03-15",
        sic_codes=sic,
        data_retrieved_at=RETRIEVED,
    )


class FakeRegistry:
    """In-memory registry recording every call in order."""

    def __init__(self, details=None, search_results=None):
        self.details = dict(details or {})
        self.search_results = dict(search_results or {})
        self.calls = []

    def search(self, query):
        self.calls.append(("search", query))
        return list(self.search_results.get(query, []))

    def get_details(self, company_number):
        self.calls.append(("details", company_number))
        if company_number not in self.details:
            raise NotFoundError("Company not found")
        return self.details[company_number]

    def get_filing_history(self, company_number):
        self.calls.append(("filings", company_number))
        return [Filing(transaction_id="t1", date="2024-05-02", filing_type="AA", category="accounts")]


@pytest.fixture
def conn(tmp_path):
    c = get_connection(str(tmp_path / "jobs.db"))
    schema.bootstrap(c)
    yield c
    c.close()


@pytest.fixture
def settings():
    get_settings.cache_clear()
    return dataclasses.replace(get_settings(), enrich_concurrency=3, job_seconds_per_item=2)


def _processor(conn, settings, registry, **kwargs) -> JobProcessor:
    return JobProcessor(registry, CompaniesRepo(conn), JobsRepo(conn), FilingsRepo(conn), settings, **kwargs)


def _run_bulk(processor, identifiers, **options):
    job_id = processor.start_bulk_job(identifiers, ProcessingOptions(**options))
    job = processor.wait(job_id, timeout=30)
    assert job is not None
    return job


def test_bulk_job_isolates_item_failure(conn, settings):
    registry = FakeRegistry({"00000001": _record("00000001"), "00000003": _record("00000003")})
    job = _run_bulk(_processor(conn, settings, registry), ["00000001", "00000002", "00000003"])

    assert job.kind is JobKind.bulk
    assert job.status is JobStatus.completed
    assert job.processed_items == 2
    assert job.failed_items == 1
    assert job.processed_items + job.failed_items == job.total_items
    assert [(e.identifier, e.error) for e in job.error_log] == [("00000002", "Company not found")]
    assert [c.company_number for c in job.results] == ["00000001", "00000003"]
    assert job.estimated_duration == 6
    assert job.actual_duration is not None
    assert job.completed_at is not None


def test_bulk_job_with_no_successes_fails(conn, settings):
    job = _run_bulk(_processor(conn, settings, FakeRegistry()), ["00000001", "Nobody Ltd"])
    assert job.status is JobStatus.failed
    assert job.failed_items == 2
    assert [e.identifier for e in job.error_log] == ["00000001", "Nobody Ltd"]
    assert job.completed_at is not None


def test_results_are_validated_estimated_and_persisted(conn, settings):
    registry = FakeRegistry({"00000001": _record("00000001")})
    job = _run_bulk(_processor(conn, settings, registry), ["00000001"])

    company = job.results[0]
    assert company.sic_codes == ["43210"]
    assert company.employee_count == 3
    assert company.estimator == "sme_bracket"
    assert company.revenue_source == "estimated"
    assert CompaniesRepo(conn).get_by_number("00000001") is not None


def test_company_number_skips_search(conn, settings):
    registry = FakeRegistry({"12345678": _record("12345678")})
    _processor(conn, settings, registry).process_single("12345678", ProcessingOptions(use_cache=False))
    assert registry.calls == [("details", "12345678")]


def test_name_falls_back_through_suffix_variations(conn, settings):
    registry = FakeRegistry(
        {"11111111": _record("11111111")},
        {"Acme LTD": [SearchCandidate(company_number="11111111", title="ACME LTD")]},
    )
    company = _processor(conn, settings, registry).process_single("Acme", ProcessingOptions(use_cache=False))

    assert company.company_number == "11111111"
    assert registry.calls == [
        ("search", "Acme"),
        ("search", "Acme LIMITED"),
        ("search", "Acme LTD"),
        ("details", "11111111"),
    ]


def test_best_matching_candidate_is_chosen(conn, settings):
    registry = FakeRegistry(
        {"22222222": _record("22222222", "ACME ROOFING LIMITED")},
        {
            "Acme Roofing": [
                SearchCandidate(company_number="99999999", title="ROOFING SUPPLIES LTD"),
                SearchCandidate(company_number="22222222", title="ACME ROOFING LIMITED"),
            ]
        },
    )
    company = _processor(conn, settings, registry).process_single("Acme Roofing", ProcessingOptions(use_cache=False))
    assert company.company_number == "22222222"


def test_process_single_raises_and_records_failed_job(conn, settings):
    processor = _processor(conn, settings, FakeRegistry())
    with pytest.raises(NotFoundError) as ei:
        processor.process_single("Ghost Trading", ProcessingOptions(use_cache=False))
    assert "not found in registry" in str(ei.value)

    job = JobsRepo(conn).recent_jobs(1)[0]
    assert job.kind is JobKind.single
    assert job.status is JobStatus.failed
    assert job.failed_items == 1
    assert job.error_log[0].identifier == "Ghost Trading"


def test_process_single_success_records_completed_job(conn, settings):
    registry = FakeRegistry({"12345678": _record("12345678")})
    _processor(conn, settings, registry).process_single("12345678", ProcessingOptions(use_cache=False))
    job = JobsRepo(conn).recent_jobs(1)[0]
    assert job.status is JobStatus.completed
    assert job.processed_items == 1
    assert job.results[0].company_number == "12345678"


def test_process_single_serves_stored_company(conn, settings):
    registry = FakeRegistry({"12345678": _record("12345678")})
    processor = _processor(conn, settings, registry)
    processor.process_single("12345678")
    assert len(registry.calls) == 1

    again = processor.process_single("12345678")
    by_name = processor.process_single("acme")
    assert again.company_number == by_name.company_number == "12345678"
    assert len(registry.calls) == 1

    processor.process_single("12345678", ProcessingOptions(use_cache=False))
    assert len(registry.calls) == 2


def test_parallel_processing_keeps_input_order(conn, settings):
    numbers = [f"{n:08d}" for n in range(1, 7)]
    registry = FakeRegistry({n: _record(n) for n in numbers if n != "00000004"})
    job = _run_bulk(_processor(conn, settings, registry), numbers, parallel_processing=True)

    assert job.status is JobStatus.completed
    assert job.processed_items == 5
    assert job.failed_items == 1
    assert [c.company_number for c in job.results] == [n for n in numbers if n != "00000004"]
    assert job.error_log[0].identifier == "00000004"


def test_progress_is_reported_after_each_item(conn, settings):
    seen = []
    registry = FakeRegistry({"00000001": _record("00000001")})
    processor = _processor(
        conn, settings, registry, on_progress=lambda job: seen.append((job.processed_items, job.failed_items))
    )
    _run_bulk(processor, ["00000001", "00000002"])
    assert seen == [(1, 0), (1, 1)]


def test_filing_history_option_persists_filings(conn, settings):
    registry = FakeRegistry({"12345678": _record("12345678")})
    _run_bulk(_processor(conn, settings, registry), ["12345678"], filing_history=True)

    assert ("filings", "12345678") in registry.calls
    filings = FilingsRepo(conn).list_filings("12345678")
    assert [f.category for f in filings] == ["accounts"]


def test_bulk_job_rejects_bad_input(conn, settings):
    processor = _processor(conn, settings, FakeRegistry())
    with pytest.raises(ValueError):
        processor.start_bulk_job([])
    with pytest.raises(KeyError):
        processor.start_bulk_job(["12345678"], ProcessingOptions(estimator="nope"))
    assert JobsRepo(conn).recent_jobs(5) == []


def test_get_job_reports_state(conn, settings):
    processor = _processor(conn, settings, FakeRegistry({"00000001": _record("00000001")}))
    job_id = processor.start_bulk_job(["00000001"])
    processor.wait(job_id, timeout=30)

    job = processor.get_job(job_id)
    assert job is not None and job.status is JobStatus.completed
    assert processor.get_job("missing") is None


def test_turnover_estimator_can_be_selected(conn, settings):
    registry = FakeRegistry({"00000001": _record("00000001")})
    job = _run_bulk(_processor(conn, settings, registry), ["00000001"], estimator="turnover")
    assert job.results[0].estimator == "turnover"


class FlakyJobsRepo(JobsRepo):
    """Jobs store whose listed update_job calls (1-based) raise."""

    def __init__(self, conn, failing_calls):
        super().__init__(conn)
        self.failing_calls = set(failing_calls)
        self.update_calls = 0

    def update_job(self, job):
        self.update_calls += 1
        if self.update_calls in self.failing_calls:
            raise RuntimeError("database is locked")
        return super().update_job(job)


def _run_with_jobs_repo(conn, settings, jobs_repo, identifiers):
    registry = FakeRegistry({"00000001": _record("00000001"), "00000003": _record("00000003")})
    processor = JobProcessor(registry, CompaniesRepo(conn), jobs_repo, FilingsRepo(conn), settings)
    job = jobs_repo.create_job(Job(kind=JobKind.bulk, total_items=len(identifiers)))
    processor.run_job(job, identifiers)
    return job, jobs_repo.get_job(job.id)


def test_failed_progress_write_does_not_stop_the_run(conn, settings):
    # Call 1 marks the job processing; call 2 is the first item's progress write
    ids = ["00000001", "00000002", "00000003"]
    job, stored = _run_with_jobs_repo(conn, settings, FlakyJobsRepo(conn, {2}), ids)

    for j in (job, stored):
        assert j.status is JobStatus.completed
        assert (j.processed_items, j.failed_items) == (2, 1)
    assert [c.company_number for c in stored.results] == ["00000001", "00000003"]
    assert [e.identifier for e in stored.error_log] == ["00000002"]


def test_failed_final_write_is_retried(conn, settings):
    # 1 start + 3 progress writes, then the final write fails once
    ids = ["00000001", "00000002", "00000003"]
    _, stored = _run_with_jobs_repo(conn, settings, FlakyJobsRepo(conn, {5}), ids)

    assert stored.status is JobStatus.completed
    assert stored.completed_at is not None
    assert stored.processed_items + stored.failed_items == stored.total_items


def test_failed_start_write_finalizes_every_item_as_failed(conn, settings):
    ids = ["00000001", "00000002", "00000003"]
    job, stored = _run_with_jobs_repo(conn, settings, FlakyJobsRepo(conn, {1}), ids)

    assert stored.status is JobStatus.failed
    assert stored.failed_items == stored.total_items == 3
    assert stored.completed_at is not None
    assert [e.identifier for e in stored.error_log] == ids
    assert all("database is locked" in e.error for e in stored.error_log)


def test_aborted_run_keeps_items_already_processed(conn, settings, monkeypatch):
    jobs_repo = JobsRepo(conn)
    registry = FakeRegistry({"00000001": _record("00000001"), "00000003": _record("00000003")})
    processor = JobProcessor(registry, CompaniesRepo(conn), jobs_repo, FilingsRepo(conn), settings)

    def broken_finish(job, results, errors, t0):
        raise RuntimeError("finish crashed")

    monkeypatch.setattr(processor, "_finish", broken_finish)
    job = jobs_repo.create_job(Job(kind=JobKind.bulk, total_items=3))
    returned = processor.run_job(job, ["00000001", "00000002", "00000003"])

    stored = jobs_repo.get_job(job.id)
    assert returned is job
    assert stored.status is JobStatus.completed
    assert (stored.processed_items, stored.failed_items) == (2, 1)
    assert [c.company_number for c in stored.results] == ["00000001", "00000003"]
    assert [e.identifier for e in stored.error_log] == ["00000002"]
