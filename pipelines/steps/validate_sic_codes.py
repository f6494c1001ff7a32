from __future__ import annotations

from pipelines.runner import RunContext
from services.company_utils import filter_sic_codes


class ValidateSicCodes:
    def run(self, ctx: RunContext) -> RunContext:
        raw = list(ctx.record.sic_codes) if ctx.record else []
        ctx.sic_codes = filter_sic_codes(raw)
        ctx.meta["sic_codes_dropped"] = len(raw) - len(ctx.sic_codes)
        return ctx
