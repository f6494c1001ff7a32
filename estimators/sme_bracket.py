"""
UK SME estimator calibrated on ONS business population figures.

Most UK limited companies are micro businesses (1-9 staff), so sector
brackets are narrow and the final headcount is capped at 12.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence, Tuple

from estimators.base import first_matching, floor_to_unit
from estimators.registry import register
from models.registry_record import RegistryRecord


@dataclass(frozen=True)
class SectorBracket:
    lo: int
    hi: int
    age_threshold: int
    older: int
    younger: int
    revenue_per_employee: Decimal
    revenue_multiple: Decimal

    def base_employees(self, age: Optional[int]) -> int:
        raw = self.older if age is not None and age > self.age_threshold else self.younger
        return max(self.lo, min(self.hi, raw))


# Checked in this order; first prefix matching any code wins
SECTOR_BRACKETS: Tuple[Tuple[Tuple[str, ...], SectorBracket], ...] = (
    # Specialised construction trades (roofing, plumbing, electrical)
    (("43",), SectorBracket(1, 4, 5, 3, 2, Decimal("48000"), Decimal("0.6"))),
    # General construction
    (("41",), SectorBracket(2, 8, 10, 6, 3, Decimal("62000"), Decimal("0.9"))),
    # Civil engineering
    (("42",), SectorBracket(5, 15, 15, 12, 7, Decimal("75000"), Decimal("1.2"))),
    # Services to buildings and landscape
    (("81",), SectorBracket(1, 3, 3, 2, 1, Decimal("35000"), Decimal("0.5"))),
)
DEFAULT_BRACKET = SectorBracket(1, 5, 8, 4, 2, Decimal("55000"), Decimal("0.8"))

# (age strictly above, multiplier); only the first applicable step is used
AGE_GROWTH_STEPS = ((20, Decimal("1.5")), (10, Decimal("1.3")), (5, Decimal("1.1")))
MAX_EMPLOYEES = 12

# (employees at most, factor)
EFFICIENCY_TIERS = ((2, Decimal("0.75")), (5, Decimal("0.85")), (10, Decimal("0.95")))
LIQUIDITY_TIERS = ((2, Decimal("0.75")), (5, Decimal("0.85")))
DEFAULT_LIQUIDITY = Decimal("0.9")


def _bracket(sic_codes: Sequence[str]) -> SectorBracket:
    return first_matching(sic_codes, SECTOR_BRACKETS) or DEFAULT_BRACKET


def _tier(value: int, tiers, default: Decimal) -> Decimal:
    for limit, factor in tiers:
        if value <= limit:
            return factor
    return default


def _maturity(age: Optional[int]) -> Decimal:
    if age is None:
        return Decimal("1.0")
    if age > 15:
        return Decimal("1.15")
    if age > 8:
        return Decimal("1.08")
    if age > 3:
        return Decimal("1.02")
    if age < 2:
        return Decimal("0.85")
    return Decimal("1.0")


class SmeBracketEstimator:
    name = "sme_bracket"

    def estimate_employee_count(self, record: RegistryRecord, sic_codes: Sequence[str]) -> int:
        age = record.company_age
        employees = Decimal(_bracket(sic_codes).base_employees(age))
        if age is not None:
            for threshold, factor in AGE_GROWTH_STEPS:
                if age > threshold:
                    employees = floor_to_unit(employees * factor)
                    break
        return max(1, min(int(employees), MAX_EMPLOYEES))

    def estimate_revenue(self, employee_count: int, sic_codes: Sequence[str], location: str = "UK") -> Decimal:
        rate = _bracket(sic_codes).revenue_per_employee
        efficiency = _tier(employee_count, EFFICIENCY_TIERS, Decimal("1.0"))
        return floor_to_unit(Decimal(employee_count) * rate * efficiency)

    def estimate_valuation(
        self,
        revenue: Decimal,
        employee_count: int,
        sic_codes: Sequence[str],
        company_age: Optional[int],
    ) -> Decimal:
        multiple = _bracket(sic_codes).revenue_multiple
        liquidity = _tier(employee_count, LIQUIDITY_TIERS, DEFAULT_LIQUIDITY)
        return floor_to_unit(Decimal(revenue) * multiple * _maturity(company_age) * liquidity)


def _register():
    register(SmeBracketEstimator.name, SmeBracketEstimator)


_register()
