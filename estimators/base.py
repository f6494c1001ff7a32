from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal
from typing import List, Optional, Protocol, Sequence, Tuple

from models.enriched_company import DerivedEstimates
from models.registry_record import RegistryRecord


class Estimator(Protocol):
    """Derives employee count, revenue and valuation from registry data.

    Implementations must be pure: identical inputs give identical outputs.
    """

    name: str

    def estimate_employee_count(self, record: RegistryRecord, sic_codes: Sequence[str]) -> int:
        ...

    def estimate_revenue(self, employee_count: int, sic_codes: Sequence[str], location: str = "UK") -> Decimal:
        ...

    def estimate_valuation(
        self,
        revenue: Decimal,
        employee_count: int,
        sic_codes: Sequence[str],
        company_age: Optional[int],
    ) -> Decimal:
        ...


def floor_to_unit(value: Decimal) -> Decimal:
    return max(Decimal(0), value.to_integral_value(rounding=ROUND_FLOOR))


def matches_prefix(sic_codes: Sequence[str], prefixes: Tuple[str, ...]) -> bool:
    return any(code.startswith(prefixes) for code in sic_codes)


def first_matching(sic_codes: Sequence[str], rules: Sequence[Tuple[Tuple[str, ...], object]]):
    """Return the payload of the first rule (in declared order) matching any code."""
    for prefixes, payload in rules:
        if matches_prefix(sic_codes, prefixes):
            return payload
    return None


def derive_estimates(record: RegistryRecord, sic_codes: List[str], estimator: Estimator) -> DerivedEstimates:
    """Employee count feeds revenue, revenue feeds valuation."""
    employees = estimator.estimate_employee_count(record, sic_codes)
    revenue = estimator.estimate_revenue(employees, sic_codes, _location(record))
    valuation = estimator.estimate_valuation(revenue, employees, sic_codes, record.company_age)
    return DerivedEstimates(
        employee_count=employees,
        estimated_revenue=revenue,
        estimated_valuation=valuation,
        estimator=estimator.name,
    )


def _location(record: RegistryRecord) -> str:
    address = record.registered_office_address or {}
    return str(address.get("locality") or "UK")
