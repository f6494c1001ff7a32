from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from models.enriched_company import EnrichedCompany
from pipelines.runner import RunContext
from ports.repos import CompaniesRepoPort


class PersistCompany:
    def __init__(self, repo: CompaniesRepoPort, now: Callable[[], datetime] = lambda: datetime.now(timezone.utc)) -> None:
        self.repo = repo
        self.now = now

    def run(self, ctx: RunContext) -> RunContext:
        if ctx.record is None or ctx.estimates is None:
            raise RuntimeError("PersistCompany needs a record and derived estimates")
        company = EnrichedCompany.from_record(ctx.record, ctx.sic_codes, ctx.estimates, self.now())
        ctx.company = self.repo.upsert_company(company)
        return ctx
