"""
Turnover-driven estimator.

Alternate model kept for comparison with the SME brackets; its constants
are independent and it is never the default.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Sequence

from estimators.base import first_matching, floor_to_unit, matches_prefix
from estimators.registry import register
from models.registry_record import RegistryRecord


TECH_PREFIXES = ("62", "63", "58", "26")
MANUFACTURING_PREFIXES = tuple(str(n) for n in range(10, 26))
FINANCIAL_PREFIXES = ("64", "65", "66")
RETAIL_PREFIXES = ("47",)

# (turnover strictly above, turnover per employee)
TURNOVER_BANDS = ((50_000_000, 100_000), (10_000_000, 150_000), (1_000_000, 80_000))
SMALL_TURNOVER_PER_EMPLOYEE = 50_000
MAX_EMPLOYEES = 500_000

BASE_REVENUE_PER_EMPLOYEE = Decimal("75000")
REVENUE_MULTIPLIERS = (
    (FINANCIAL_PREFIXES, Decimal("2.5")),
    (TECH_PREFIXES, Decimal("1.8")),
    (RETAIL_PREFIXES, Decimal("0.6")),
    (MANUFACTURING_PREFIXES, Decimal("1.1")),
)
LONDON_PREMIUM = Decimal("1.3")

VALUATION_MULTIPLES = (
    (TECH_PREFIXES, Decimal("3.5")),
    (FINANCIAL_PREFIXES, Decimal("1.8")),
    (MANUFACTURING_PREFIXES, Decimal("1.2")),
)


class TurnoverEstimator:
    name = "turnover"

    def estimate_employee_count(self, record: RegistryRecord, sic_codes: Sequence[str]) -> int:
        turnover = record.turnover or 0
        employees = 1
        if turnover > 0:
            per_head = SMALL_TURNOVER_PER_EMPLOYEE
            for floor, per_employee in TURNOVER_BANDS:
                if turnover > floor:
                    per_head = per_employee
                    break
            employees = turnover // per_head
        if matches_prefix(sic_codes, TECH_PREFIXES):
            employees = int(floor_to_unit(Decimal(employees) * Decimal("0.8")))
        if matches_prefix(sic_codes, MANUFACTURING_PREFIXES):
            employees = int(floor_to_unit(Decimal(employees) * Decimal("1.3")))
        return max(1, min(employees, MAX_EMPLOYEES))

    def estimate_revenue(self, employee_count: int, sic_codes: Sequence[str], location: str = "UK") -> Decimal:
        multiplier = first_matching(sic_codes, REVENUE_MULTIPLIERS) or Decimal("1")
        if "london" in (location or "").lower():
            multiplier *= LONDON_PREMIUM
        return floor_to_unit(Decimal(employee_count) * BASE_REVENUE_PER_EMPLOYEE * multiplier)

    def estimate_valuation(
        self,
        revenue: Decimal,
        employee_count: int,
        sic_codes: Sequence[str],
        company_age: Optional[int],
    ) -> Decimal:
        multiple = first_matching(sic_codes, VALUATION_MULTIPLES) or Decimal("1")
        if company_age is not None:
            if company_age > 10:
                multiple *= Decimal("1.1")
            if company_age < 2:
                multiple *= Decimal("0.8")
        if employee_count > 1000:
            multiple *= Decimal("1.2")
        if employee_count < 10:
            multiple *= Decimal("0.7")
        return floor_to_unit(Decimal(revenue) * multiple)


def _register():
    register(TurnoverEstimator.name, TurnoverEstimator)


_register()
