from __future__ import annotations

import logging

from pipelines.runner import RunContext
from ports.registry import RegistryClientPort
from ports.repos import FilingsRepoPort

logger = logging.getLogger(__name__)


class FetchFilings:
    """Optional step: store filing history next to the company. Never fails the item."""

    def __init__(self, client: RegistryClientPort, repo: FilingsRepoPort) -> None:
        self.client = client
        self.repo = repo

    def run(self, ctx: RunContext) -> RunContext:
        if not ctx.options.filing_history or ctx.company is None:
            return ctx
        number = ctx.company.company_number
        filings = self.client.get_filing_history(number)
        try:
            ctx.meta["filings_saved"] = self.repo.replace_filings(number, filings)
        except Exception as e:
            logger.warning("Could not store filing history for %s", number, extra={"step": "filings", "error": str(e)})
            ctx.meta["filings_saved"] = 0
        return ctx
