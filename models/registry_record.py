from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from utils.number_parsing import parse_iso_date, whole_years_between


class RegistryRecord(BaseModel):
    """Registry company profile as fetched, plus retrieval annotations. Never mutated."""

    company_number: str
    company_name: str
    company_status: str
    date_of_creation: Optional[str] = None
    company_type: Optional[str] = Field(default=None, alias="type")
    jurisdiction: Optional[str] = None
    registered_office_address: Optional[dict[str, Any]] = None
    # Codes exactly as delivered; filtering happens in the pipeline
    sic_codes: Tuple[Any, ...] = ()
    # Only populated by callers that know a reported turnover
    turnover: Optional[int] = None

    data_retrieved_at: datetime
    status_interpretation: str = "Unknown status"
    age_years: Optional[float] = None

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    @property
    def incorporation_date(self) -> Optional[date]:
        return parse_iso_date(self.date_of_creation)

    @property
    def company_age(self) -> Optional[int]:
        """Whole calendar years between incorporation and retrieval."""
        return whole_years_between(self.incorporation_date, self.data_retrieved_at.date())


class SearchCandidate(BaseModel):
    """One hit from the registry name search."""

    company_number: str
    title: str = ""
    company_status: Optional[str] = None
    date_of_creation: Optional[str] = None
    address_snippet: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class Filing(BaseModel):
    transaction_id: Optional[str] = None
    date: Optional[str] = None
    filing_type: Optional[str] = Field(default=None, alias="type")
    description: Optional[str] = None
    subcategory: Optional[Any] = None
    document_id: Optional[str] = None
    category: str = "other"
    days_since_filing: Optional[int] = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)
