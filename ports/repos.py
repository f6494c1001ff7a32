from __future__ import annotations

from typing import List, Optional, Protocol, Tuple

from models.enriched_company import EnrichedCompany
from models.job import Job
from models.registry_record import Filing


class CompaniesRepoPort(Protocol):
    def upsert_company(self, company: EnrichedCompany) -> EnrichedCompany:
        ...

    def get_by_number(self, company_number: str) -> Optional[EnrichedCompany]:
        ...

    def search(self, query: str, limit: int = 10) -> List[EnrichedCompany]:
        ...

    def list_companies(self, offset: int = 0, limit: int = 50) -> Tuple[List[EnrichedCompany], int]:
        ...


class JobsRepoPort(Protocol):
    def create_job(self, job: Job) -> Job:
        ...

    def get_job(self, job_id: str) -> Optional[Job]:
        ...

    def update_job(self, job: Job) -> Job:
        ...

    def recent_jobs(self, limit: int = 10) -> List[Job]:
        ...


class FilingsRepoPort(Protocol):
    def replace_filings(self, company_number: str, filings: List[Filing]) -> int:
        ...

    def list_filings(self, company_number: str) -> List[Filing]:
        ...
