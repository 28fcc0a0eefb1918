"""Progressive income tax for a pay period.

Two accrual methods:

- non_cumulative: tax this period's adjusted taxable income on its own.
  YTD figures are running sums for reporting only.
- cumulative (PAYE-style): tax total YTD income, then subtract tax already
  withheld this year (opening balance, prior runs, earlier runs for the
  same period). A negative result is a refund when the country allows
  mid-year refunds, otherwise it is clamped to zero and the shortfall is
  absorbed, not carried forward.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List

from ..schemas import (
    CalculatedStatutory,
    CalculationInput,
    IncomeTaxSummary,
    RateBand,
    StatutoryDeductionType,
)
from .money import ZERO, percent_of, round_money

logger = logging.getLogger(__name__)


def bracket_tax(income: Decimal, bands: List[RateBand]) -> Decimal:
    """Progressive tax on an income value.

    Walks bands ascending by lower bound, taxing the slice of income inside
    each band at its employee_rate, and stops at the band containing the
    income. Pure and non-decreasing in income.

    Example:
        bands [0-3000 @ 0%, 3000-8000 @ 10%], income 5000 -> 200
    """
    tax = ZERO
    for band in sorted(bands, key=lambda b: b.lower):
        floor = band.lower
        if income <= floor:
            break
        ceiling = band.max_amount
        top = income if ceiling is None else min(income, ceiling)
        tax += percent_of(top - floor, band.employee_rate)
        if ceiling is None or income <= ceiling:
            break
    return tax


def _untaxed_excess(income: Decimal, bands: List[RateBand]) -> Decimal:
    if not bands:
        return ZERO
    top = max(bands, key=lambda b: b.lower)
    if top.max_amount is None or income <= top.max_amount:
        return ZERO
    return income - top.max_amount


@dataclass(frozen=True)
class IncomeTaxOutcome:
    """Computed income tax with unrounded amounts."""

    stat_type: StatutoryDeductionType
    method: str
    total_tax_due: Decimal
    previous_ytd_income: Decimal
    previous_ytd_tax: Decimal
    period_tax_already_paid: Decimal
    raw_tax: Decimal
    amount: Decimal
    ytd_taxable_income: Decimal
    refund_line_label: str = ""

    @property
    def forfeited_refund(self) -> Decimal:
        return self.amount - self.raw_tax if self.raw_tax < ZERO else ZERO

    @property
    def ytd_tax_paid(self) -> Decimal:
        return self.previous_ytd_tax + self.period_tax_already_paid + self.amount

    @property
    def is_refund(self) -> bool:
        return round_money(self.amount) < ZERO

    @property
    def status(self) -> str:
        if self.is_refund:
            return "refund"
        if round_money(self.amount) > ZERO:
            return "withheld"
        if self.raw_tax < ZERO:
            return "clamped"
        return "zero"

    @property
    def emitted(self) -> bool:
        """Income tax is emitted only when non-zero (refunds included)."""
        return round_money(self.amount) != ZERO

    def to_record(self) -> CalculatedStatutory:
        name = self.stat_type.name
        if self.is_refund and self.refund_line_label:
            name = self.refund_line_label
        return CalculatedStatutory(
            statutory_code=self.stat_type.code,
            statutory_name=name,
            statutory_type=self.stat_type.statutory_type,
            employee_amount=round_money(self.amount),
            employer_amount=ZERO,
            calculation_method=self.method,
            ytd_taxable_income=round_money(self.ytd_taxable_income),
            ytd_tax_paid=round_money(self.ytd_tax_paid),
            is_refund=self.is_refund,
        )

    def to_summary(self) -> IncomeTaxSummary:
        return IncomeTaxSummary(
            method=self.method,
            status=self.status,
            total_tax_due=round_money(self.total_tax_due),
            previous_ytd_income=round_money(self.previous_ytd_income),
            previous_ytd_tax=round_money(self.previous_ytd_tax),
            period_tax_already_paid=round_money(self.period_tax_already_paid),
            raw_tax=round_money(self.raw_tax),
            amount=round_money(self.amount),
            forfeited_refund=round_money(self.forfeited_refund),
            ytd_taxable_income=round_money(self.ytd_taxable_income),
            ytd_tax_paid=round_money(self.ytd_tax_paid),
        )


def calc_income_tax(
    stat_type: StatutoryDeductionType,
    bands: List[RateBand],
    adjusted_taxable_income: Decimal,
    total_tax_credits: Decimal,
    inputs: CalculationInput,
) -> IncomeTaxOutcome:
    """Compute this period's income tax.

    Args:
        stat_type: The income-tax deduction type
        bands: Its applicable brackets (already overlap-checked)
        adjusted_taxable_income: max(0, gross - taxable income reduction)
        total_tax_credits: Credits subtracted from the tax
        inputs: Calculation input (YTD, period amounts, opening balances, settings)

    Returns:
        IncomeTaxOutcome
    """
    settings = inputs.tax_settings
    opening = inputs.opening_balances
    ytd = inputs.ytd_amounts
    period = inputs.period_amounts

    previous_ytd_income = ytd.taxable_income + (opening.taxable_income if opening else ZERO)
    previous_ytd_tax = ytd.get(stat_type.code).employee_amount + (opening.tax_paid if opening else ZERO)
    period_tax = period.get(stat_type.code).employee_amount
    new_ytd_income = previous_ytd_income + period.taxable_income + adjusted_taxable_income

    if settings.tax_calculation_method == "cumulative":
        total_tax_due = bracket_tax(new_ytd_income, bands)
        raw_tax = total_tax_due - previous_ytd_tax - period_tax - total_tax_credits
        if raw_tax < ZERO and not settings.refunds_enabled:
            amount = ZERO
            logger.debug(f"{stat_type.code}: negative tax {raw_tax} clamped, refunds disabled")
        else:
            amount = raw_tax
        tax_base = new_ytd_income
    else:
        total_tax_due = bracket_tax(adjusted_taxable_income, bands)
        raw_tax = total_tax_due - total_tax_credits
        amount = max(ZERO, raw_tax)
        tax_base = adjusted_taxable_income

    excess = _untaxed_excess(tax_base, bands)
    if excess > ZERO:
        logger.warning(
            f"{stat_type.code}: {excess} of income lies above the top bracket and is untaxed"
        )

    logger.debug(
        f"{stat_type.code}: {settings.tax_calculation_method} tax due {total_tax_due}, "
        f"raw {raw_tax}, amount {amount}"
    )
    label = settings.refund_line_item_label if settings.refund_display_type == "separate_line_item" else ""
    return IncomeTaxOutcome(
        stat_type=stat_type,
        method=settings.tax_calculation_method,
        total_tax_due=total_tax_due,
        previous_ytd_income=previous_ytd_income,
        previous_ytd_tax=previous_ytd_tax,
        period_tax_already_paid=period_tax,
        raw_tax=raw_tax,
        amount=amount,
        ytd_taxable_income=new_ytd_income,
        refund_line_label=label,
    )
