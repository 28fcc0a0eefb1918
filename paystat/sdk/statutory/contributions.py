"""Non-income-tax statutory contributions (pension, social security, levies).

Each deduction type resolves its band, computes raw employee/employer
amounts by the band's calculation method, then clamps each share to what
is left under its monthly and annual caps given YTD and same-period
amounts already withheld.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from ..schemas import (
    CalculatedStatutory,
    CalculationInput,
    RateBand,
    StatutoryDeductionType,
)
from .bands import resolve_band
from .money import ZERO, clamp_to_cap, percent_of, round_money

logger = logging.getLogger(__name__)

DEFAULT_MONDAY_COUNT = 4


@dataclass(frozen=True)
class ContributionLine:
    """A computed non-tax deduction with unrounded amounts."""

    stat_type: StatutoryDeductionType
    band: RateBand
    employee_amount: Decimal
    employer_amount: Decimal

    @property
    def code(self) -> str:
        return self.stat_type.code

    def to_record(self) -> CalculatedStatutory:
        return CalculatedStatutory(
            statutory_code=self.stat_type.code,
            statutory_name=self.stat_type.name,
            statutory_type=self.stat_type.statutory_type,
            employee_amount=round_money(self.employee_amount),
            employer_amount=round_money(self.employer_amount),
            calculation_method=self.band.calculation_method,
        )


def count_mondays(start: date, end: date) -> int:
    """Count Mondays between two dates, inclusive."""
    if end < start:
        return 0
    first_monday = start + timedelta(days=(7 - start.weekday()) % 7)
    if first_monday > end:
        return 0
    return (end - first_monday).days // 7 + 1


def resolve_monday_count(inputs: CalculationInput) -> int:
    """Explicit count, else counted from the period dates, else 4."""
    if inputs.monday_count is not None:
        return inputs.monday_count
    if inputs.period_start and inputs.period_end:
        return count_mondays(inputs.period_start, inputs.period_end)
    return DEFAULT_MONDAY_COUNT


def raw_amounts(band: RateBand, gross_pay: Decimal, monday_count: int) -> Tuple[Decimal, Decimal]:
    """Compute uncapped (employee, employer) amounts for a band."""
    method = band.calculation_method
    if method == "percentage":
        return percent_of(gross_pay, band.employee_rate), percent_of(gross_pay, band.employer_rate)
    if method == "per_monday":
        mondays = Decimal(monday_count)
        return mondays * band.per_monday_amount, mondays * band.employer_per_monday_amount
    if method == "fixed":
        return band.fixed_amount, band.employer_fixed_amount
    raise ValueError(f"Unknown calculation method: {method}")


def apply_caps(
    amount: Decimal,
    monthly_cap: Optional[Decimal],
    annual_cap: Optional[Decimal],
    ytd_amount: Decimal,
    period_amount: Decimal,
) -> Decimal:
    """Clamp an amount to the monthly cap, then to the annual cap.

    The monthly window is the pay period, so only same-period amounts count
    against it. The annual window counts YTD plus same-period amounts.
    """
    capped = clamp_to_cap(amount, monthly_cap, period_amount)
    return clamp_to_cap(capped, annual_cap, ytd_amount + period_amount)


def calc_contribution(
    stat_type: StatutoryDeductionType,
    inputs: CalculationInput,
    monday_count: int,
) -> Optional[ContributionLine]:
    """Compute one non-tax deduction.

    Returns:
        ContributionLine, or None if no band applies or both shares are
        zero after rounding
    """
    band = resolve_band(stat_type, inputs.gross_pay, inputs.age, inputs.effective_date)
    if band is None:
        return None

    raw_employee, raw_employer = raw_amounts(band, inputs.gross_pay, monday_count)
    ytd = inputs.ytd_amounts.get(stat_type.code)
    period = inputs.period_amounts.get(stat_type.code)

    employee = apply_caps(
        raw_employee, band.employee_monthly_cap, band.employee_annual_cap,
        ytd.employee_amount, period.employee_amount,
    )
    employer = apply_caps(
        raw_employer, band.employer_monthly_cap, band.employer_annual_cap,
        ytd.employer_amount, period.employer_amount,
    )
    if employee != raw_employee or employer != raw_employer:
        logger.debug(
            f"{stat_type.code}: capped employee {raw_employee} -> {employee}, "
            f"employer {raw_employer} -> {employer}"
        )

    if round_money(employee) <= ZERO and round_money(employer) <= ZERO:
        logger.debug(f"{stat_type.code}: nothing to withhold, omitted")
        return None

    return ContributionLine(
        stat_type=stat_type,
        band=band,
        employee_amount=employee,
        employer_amount=employer,
    )


def calc_contributions(inputs: CalculationInput) -> List[ContributionLine]:
    """Compute every non-tax deduction, in configuration order."""
    monday_count = resolve_monday_count(inputs)
    lines = []
    for stat_type in inputs.statutory_types:
        if stat_type.is_income_tax or not stat_type.in_effect(inputs.effective_date):
            continue
        line = calc_contribution(stat_type, inputs, monday_count)
        if line is not None:
            lines.append(line)
    return lines
