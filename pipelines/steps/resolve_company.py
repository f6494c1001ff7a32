from __future__ import annotations

import logging
from typing import List

from models.registry_record import SearchCandidate
from pipelines.runner import RunContext
from ports.registry import RegistryClientPort
from services.company_utils import is_company_number, pick_best_match, search_variations
from services.errors import NotFoundError

logger = logging.getLogger(__name__)


class ResolveCompany:
    """Turn a free-text identifier into a registry record.

    8-digit numbers go straight to the detail endpoint; names are searched,
    retried with common suffix variations when nothing comes back, and the
    best-matching candidate's details are fetched.
    """

    def __init__(self, client: RegistryClientPort) -> None:
        self.client = client

    def run(self, ctx: RunContext) -> RunContext:
        query = (ctx.identifier or "").strip()
        if is_company_number(query):
            ctx.record = self.client.get_details(query)
            ctx.meta["resolved_via"] = "number"
            return ctx

        candidates = self._search_with_fallbacks(query, ctx)
        best = pick_best_match(query, candidates)
        if best is None:
            raise NotFoundError(
                f'Company "{query}" not found in registry. This may be a sole trader, '
                "partnership, or inactive business not required to register."
            )
        ctx.record = self.client.get_details(best.company_number)
        ctx.meta["resolved_via"] = "search"
        return ctx

    def _search_with_fallbacks(self, query: str, ctx: RunContext) -> List[SearchCandidate]:
        candidates = self.client.search(query)
        ctx.meta["search_query"] = query
        if candidates:
            return candidates
        for variation in search_variations(query):
            candidates = self.client.search(variation)
            if candidates:
                logger.info("Matched via search variation %r", variation, extra={"step": "resolve"})
                ctx.meta["search_query"] = variation
                return candidates
        return []
