from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.enriched_company import EnrichedCompany
from models.processing_options import ProcessingOptions


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStateError(RuntimeError):
    """Raised when a job transition or counter update would break its invariants."""


class JobKind(str, enum.Enum):
    single = "single"
    bulk = "bulk"


class JobStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.completed, JobStatus.failed)


class JobItemError(BaseModel):
    identifier: str
    error: str


class Job(BaseModel):
    """Tracking record for one single or bulk enrichment run.

    Counters and status only move forward: ``processed + failed`` never
    exceeds ``total_items`` and nothing leaves a terminal status.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    kind: JobKind = JobKind.bulk
    status: JobStatus = JobStatus.pending
    total_items: int = Field(default=1, ge=0)
    processed_items: int = 0
    failed_items: int = 0
    error_log: List[JobItemError] = Field(default_factory=list)
    results: List[EnrichedCompany] = Field(default_factory=list)
    options: ProcessingOptions = Field(default_factory=ProcessingOptions)

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    estimated_duration: Optional[int] = None
    actual_duration: Optional[int] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def remaining_items(self) -> int:
        return self.total_items - self.processed_items - self.failed_items

    def mark_processing(self, now: datetime, estimated_duration: Optional[int] = None) -> None:
        if self.status is not JobStatus.pending:
            raise JobStateError(f"Job {self.id} cannot start from status {self.status.value}")
        self.status = JobStatus.processing
        self.estimated_duration = estimated_duration
        self.updated_at = now

    def record_success(self, now: datetime) -> None:
        self._check_room()
        self.processed_items += 1
        self.updated_at = now

    def record_failure(self, now: datetime) -> None:
        self._check_room()
        self.failed_items += 1
        self.updated_at = now

    def finalize(
        self,
        now: datetime,
        *,
        results: List[EnrichedCompany],
        errors: List[JobItemError],
        actual_duration: int,
    ) -> None:
        """Enter the terminal status implied by the counters.

        ``completed`` when at least one item succeeded, otherwise ``failed``.
        """
        if self.is_terminal:
            raise JobStateError(f"Job {self.id} is already {self.status.value}")
        if self.status is not JobStatus.processing:
            raise JobStateError(f"Job {self.id} was never started")
        self.status = JobStatus.completed if self.processed_items > 0 else JobStatus.failed
        self.results = list(results)
        self.error_log = list(errors)
        self.actual_duration = actual_duration
        self.updated_at = now
        self.completed_at = now

    def _check_room(self) -> None:
        if self.status is not JobStatus.processing:
            raise JobStateError(f"Job {self.id} is not processing (status {self.status.value})")
        if self.remaining_items <= 0:
            raise JobStateError(f"Job {self.id} has no items left to account for")
