from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ProcessingOptions(BaseModel):
    """Per-request switches for single lookups and bulk jobs."""

    use_cache: bool = True
    filing_history: bool = False
    parallel_processing: bool = False
    estimator: str = "sme_bracket"

    model_config = ConfigDict(extra="ignore")
