from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from models.enriched_company import DerivedEstimates, EnrichedCompany
from models.processing_options import ProcessingOptions
from models.registry_record import RegistryRecord
from utils.logging_setup import init_logging

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """State carried through the steps for one identifier."""

    identifier: str
    options: ProcessingOptions = field(default_factory=ProcessingOptions)
    record: Optional[RegistryRecord] = None
    sic_codes: List[str] = field(default_factory=list)
    estimates: Optional[DerivedEstimates] = None
    company: Optional[EnrichedCompany] = None
    meta: dict = field(default_factory=dict)


class Step(Protocol):
    def run(self, ctx: RunContext) -> RunContext:
        ...


class Pipeline:
    """Runs the steps for one identifier in order; the first raising step ends the item."""

    def __init__(self, steps: List[Step]):
        self.steps = steps

    def run(self, ctx: RunContext) -> RunContext:
        # Make logging idempotent for any direct runner use
        init_logging()
        for step in self.steps:
            t0 = time.monotonic()
            ctx = step.run(ctx)
            logger.debug(
                "Step done for %s", ctx.identifier,
                extra={"step": type(step).__name__, "duration_ms": int((time.monotonic() - t0) * 1000)},
            )
        return ctx
