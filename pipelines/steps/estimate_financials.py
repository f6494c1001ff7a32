from __future__ import annotations

from estimators.base import Estimator, derive_estimates
from pipelines.runner import RunContext


class EstimateFinancials:
    def __init__(self, estimator: Estimator) -> None:
        self.estimator = estimator

    def run(self, ctx: RunContext) -> RunContext:
        if ctx.record is None:
            raise RuntimeError("EstimateFinancials needs a resolved registry record")
        ctx.estimates = derive_estimates(ctx.record, ctx.sic_codes, self.estimator)
        return ctx
