from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.registry_record import RegistryRecord


ESTIMATED = "estimated"


class DerivedEstimates(BaseModel):
    employee_count: int = Field(ge=1)
    estimated_revenue: Decimal = Field(ge=0)
    estimated_valuation: Decimal = Field(ge=0)
    estimator: str

    model_config = ConfigDict(frozen=True)


class EnrichedCompany(BaseModel):
    """App/DB record shape: registry fields plus derived estimates."""

    company_number: str
    company_name: str
    status: Optional[str] = None
    status_interpretation: Optional[str] = None
    incorporation_date: Optional[str] = None
    company_type: Optional[str] = None
    jurisdiction: Optional[str] = None
    registered_address: Optional[dict[str, Any]] = None
    sic_codes: List[str] = Field(default_factory=list)
    age_years: Optional[float] = None

    employee_count: int = Field(ge=1)
    employee_count_source: str = ESTIMATED
    estimated_revenue: Decimal = Field(ge=0)
    revenue_source: str = ESTIMATED
    estimated_valuation: Decimal = Field(ge=0)
    valuation_source: str = ESTIMATED
    estimator: Optional[str] = None

    data_retrieved_at: Optional[datetime] = None
    last_processed: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_record(
        cls,
        record: RegistryRecord,
        sic_codes: List[str],
        estimates: DerivedEstimates,
        processed_at: datetime,
    ) -> "EnrichedCompany":
        return cls(
            company_number=record.company_number,
            company_name=record.company_name,
            status=record.company_status,
            status_interpretation=record.status_interpretation,
            incorporation_date=record.date_of_creation,
            company_type=record.company_type,
            jurisdiction=record.jurisdiction,
            registered_address=record.registered_office_address,
            sic_codes=list(sic_codes),
            age_years=record.age_years,
            employee_count=estimates.employee_count,
            estimated_revenue=estimates.estimated_revenue,
            estimated_valuation=estimates.estimated_valuation,
            estimator=estimates.estimator,
            data_retrieved_at=record.data_retrieved_at,
            last_processed=processed_at,
        )
