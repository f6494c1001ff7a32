"""
Single and bulk enrichment jobs.

Every identifier runs through the same step pipeline:
resolve -> validate SIC codes -> estimate -> persist -> (optional) filings.
A failing item is logged into the job's error list and never stops the run.
"""
from __future__ import annotations

import concurrent.futures as _fut
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from config.settings import Settings, get_settings
from estimators import get_estimator
from models.enriched_company import EnrichedCompany
from models.job import Job, JobItemError, JobKind, JobStatus
from models.processing_options import ProcessingOptions
from pipelines.runner import Pipeline, RunContext
from pipelines.steps import (
    EstimateFinancials,
    FetchFilings,
    PersistCompany,
    ResolveCompany,
    ValidateSicCodes,
)
from ports.registry import RegistryClientPort
from ports.repos import CompaniesRepoPort, FilingsRepoPort, JobsRepoPort
from services.company_utils import is_company_number
from utils.logging_setup import job_logger

logger = logging.getLogger(__name__)

# (index, identifier, company or None, error message or None)
ItemOutcome = Tuple[int, str, Optional[EnrichedCompany], Optional[str]]

FINAL_WRITE_ATTEMPTS = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobProcessor:
    """Drives jobs from ``pending`` to ``completed``/``failed``.

    The processor owns a job while it is running; progress is written back
    to the jobs repository after every item so callers can poll ``get_job``.
    """

    def __init__(
        self,
        client: RegistryClientPort,
        companies: CompaniesRepoPort,
        jobs: JobsRepoPort,
        filings: FilingsRepoPort,
        settings: Optional[Settings] = None,
        *,
        now: Callable[[], datetime] = _utcnow,
        on_progress: Optional[Callable[[Job], None]] = None,
    ) -> None:
        self.client = client
        self.companies = companies
        self.jobs = jobs
        self.filings = filings
        self.settings = settings or get_settings()
        self.now = now
        self.on_progress = on_progress
        self._threads: Dict[str, threading.Thread] = {}
        self._threads_lock = threading.Lock()

    # --- exposed operations ---

    def process_single(self, identifier: str, options: Optional[ProcessingOptions] = None) -> EnrichedCompany:
        """Enrich one company, raising the item's error directly on failure."""
        options = options or self._default_options()
        if options.use_cache:
            stored = self._lookup_stored(identifier)
            if stored is not None:
                logger.info("Serving stored company %s", stored.company_number, extra={"status": "cached"})
                return stored

        pipeline = self._pipeline(options)
        job = self.jobs.create_job(Job(kind=JobKind.single, total_items=1, options=options))
        self._start(job, 1)
        t0 = time.monotonic()
        try:
            ctx = pipeline.run(RunContext(identifier=identifier, options=options))
        except Exception as e:
            job.record_failure(self.now())
            self._finish(job, [], [JobItemError(identifier=identifier, error=str(e))], t0)
            raise
        job.record_success(self.now())
        self._finish(job, [ctx.company], [], t0)
        return ctx.company

    def start_bulk_job(self, identifiers: Sequence[str], options: Optional[ProcessingOptions] = None) -> str:
        """Persist a pending bulk job and run it on a background thread."""
        items = [str(i) for i in identifiers]
        if not items:
            raise ValueError("At least one company is required")
        options = options or self._default_options()
        # Fail before creating the job when the estimator name is unknown
        get_estimator(options.estimator)
        job = self.jobs.create_job(Job(kind=JobKind.bulk, total_items=len(items), options=options))
        thread = threading.Thread(
            target=self.run_job, args=(job, items), name=f"job-{job.id}", daemon=True
        )
        with self._threads_lock:
            self._threads[job.id] = thread
        thread.start()
        job_logger(logger, job.id).info("Bulk job started with %d items", len(items))
        return job.id

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.jobs.get_job(job_id)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[Job]:
        """Block until a job started by this processor finishes, then return its stored state."""
        with self._threads_lock:
            thread = self._threads.get(job_id)
        if thread is not None:
            thread.join(timeout)
            if not thread.is_alive():
                with self._threads_lock:
                    self._threads.pop(job_id, None)
        return self.jobs.get_job(job_id)

    def run_job(self, job: Job, identifiers: Sequence[str]) -> Job:
        """Process every identifier and finalize the job. Never raises."""
        t0 = time.monotonic()
        outcomes: List[ItemOutcome] = []
        try:
            self._start(job, len(identifiers))
            if job.options.parallel_processing and len(identifiers) > 1:
                self._run_parallel(job, identifiers, outcomes)
            else:
                self._run_sequential(job, identifiers, outcomes)
            results, errors = self._collect(outcomes)
            self._finish(job, results, errors, t0)
        except Exception as e:
            job_logger(logger, job.id).exception("Job run aborted", extra={"status": "failed"})
            self._abort(job, identifiers, outcomes, t0, reason=str(e) or type(e).__name__)
        return job

    # --- internals ---

    def _default_options(self) -> ProcessingOptions:
        return ProcessingOptions(estimator=self.settings.default_estimator)

    def _pipeline(self, options: ProcessingOptions) -> Pipeline:
        steps = [
            ResolveCompany(self.client),
            ValidateSicCodes(),
            EstimateFinancials(get_estimator(options.estimator)),
            PersistCompany(self.companies, now=self.now),
        ]
        if options.filing_history:
            steps.append(FetchFilings(self.client, self.filings))
        return Pipeline(steps)

    def _lookup_stored(self, identifier: str) -> Optional[EnrichedCompany]:
        query = (identifier or "").strip()
        if is_company_number(query):
            return self.companies.get_by_number(query)
        hits = self.companies.search(query, limit=1)
        return hits[0] if hits else None

    def _start(self, job: Job, total: int) -> None:
        job.mark_processing(self.now(), estimated_duration=total * self.settings.job_seconds_per_item)
        self.jobs.update_job(job)

    def _process_item(self, pipeline: Pipeline, job: Job, index: int, identifier: str) -> ItemOutcome:
        try:
            ctx = pipeline.run(RunContext(identifier=identifier, options=job.options))
            return index, identifier, ctx.company, None
        except Exception as e:
            job_logger(logger, job.id).warning(
                "Item failed: %s", identifier,
                extra={"status": "failed", "error": str(e) or type(e).__name__},
            )
            return index, identifier, None, str(e) or type(e).__name__

    def _record(self, job: Job, outcome: ItemOutcome) -> None:
        if outcome[2] is not None:
            job.record_success(self.now())
        else:
            job.record_failure(self.now())
        # A lost progress snapshot is superseded by the next write; the run goes on
        try:
            self.jobs.update_job(job)
        except Exception as e:
            job_logger(logger, job.id).warning("Could not store job progress", extra={"error": str(e)})
        if self.on_progress:
            try:
                self.on_progress(job)
            except Exception as e:
                job_logger(logger, job.id).debug("Progress callback failed", extra={"error": str(e)})

    def _run_sequential(self, job: Job, identifiers: Sequence[str], outcomes: List[ItemOutcome]) -> None:
        pipeline = self._pipeline(job.options)
        for index, identifier in enumerate(identifiers):
            outcome = self._process_item(pipeline, job, index, identifier)
            self._record(job, outcome)
            outcomes.append(outcome)

    def _run_parallel(self, job: Job, identifiers: Sequence[str], outcomes: List[ItemOutcome]) -> None:
        # Registry calls still pass one at a time through the client's shared gate
        pipeline = self._pipeline(job.options)
        workers = max(1, self.settings.enrich_concurrency)
        progress_lock = threading.Lock()
        with _fut.ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"job-{job.id[:8]}") as ex:
            futures = [
                ex.submit(self._process_item, pipeline, job, index, identifier)
                for index, identifier in enumerate(identifiers)
            ]
            for fut in _fut.as_completed(futures):
                outcome = fut.result()
                with progress_lock:
                    self._record(job, outcome)
                    outcomes.append(outcome)

    @staticmethod
    def _collect(outcomes: List[ItemOutcome]) -> Tuple[List[EnrichedCompany], List[JobItemError]]:
        ordered = sorted(outcomes, key=lambda o: o[0])
        results = [company for _, _, company, _ in ordered if company is not None]
        errors = [
            JobItemError(identifier=ident, error=err or "Unknown error")
            for _, ident, company, err in ordered
            if company is None
        ]
        return results, errors

    def _finish(self, job: Job, results: List[EnrichedCompany], errors: List[JobItemError], t0: float) -> None:
        job.finalize(
            self.now(),
            results=results,
            errors=errors,
            actual_duration=int(time.monotonic() - t0),
        )
        self.jobs.update_job(job)
        job_logger(logger, job.id).info(
            "Job finished: %d ok, %d failed", job.processed_items, job.failed_items,
            extra={"status": job.status.value},
        )

    def _abort(
        self,
        job: Job,
        identifiers: Sequence[str],
        outcomes: List[ItemOutcome],
        t0: float,
        *,
        reason: str,
    ) -> None:
        """Finalize from what was collected so far; unprocessed items count as failed."""
        log = job_logger(logger, job.id)
        try:
            if not job.is_terminal:
                if job.status is JobStatus.pending:
                    job.mark_processing(self.now(), estimated_duration=len(identifiers) * self.settings.job_seconds_per_item)
                done = {index for index, _, _, _ in outcomes}
                aborted: List[ItemOutcome] = []
                for index, identifier in enumerate(identifiers):
                    if index in done or job.remaining_items <= 0:
                        continue
                    job.record_failure(self.now())
                    aborted.append((index, identifier, None, f"Job aborted: {reason}"))
                results, errors = self._collect(list(outcomes) + aborted)
                job.finalize(
                    self.now(),
                    results=results,
                    errors=errors,
                    actual_duration=int(time.monotonic() - t0),
                )
        except Exception:
            log.exception("Could not finalize aborted job")
            return
        # The in-memory job is terminal here; keep trying to store that snapshot
        for attempt in range(1, FINAL_WRITE_ATTEMPTS + 1):
            try:
                self.jobs.update_job(job)
                return
            except Exception as e:
                log.warning("Final job write failed (attempt %d)", attempt, extra={"error": str(e)})
        log.error("Job left unstored in terminal state", extra={"status": job.status.value})
