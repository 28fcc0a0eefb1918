"""Tax relief on statutory contributions and relief schemes.

Two independent sources, each capped individually then summed:

1. Statutory relief - a share of a computed non-tax deduction (e.g. 100% of
   the employee's pension contribution) is deductible from taxable income.
2. Scheme relief - enrolled schemes first, then schemes applied without
   enrollment (personal reliefs and a fixed allow-list of codes).

Tiered schemes use a formula registry keyed by scheme code. Register new
country formulas with @register_tiered_formula instead of editing the
generic logic; unregistered codes fall back to relief_value / 12.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Set

from ..schemas import (
    CalculatedRelief,
    EmployeeReliefEnrollment,
    TaxReliefContext,
    TaxReliefScheme,
)
from .contributions import ContributionLine
from .money import MONTHS_PER_YEAR, ZERO, clamp_to_cap, percent_of, round_money, to_decimal

logger = logging.getLogger(__name__)

# Schemes applied without enrollment besides category 'personal_relief'
AUTO_APPLY_CODES = frozenset({
    "AGE_RELIEF",
    "SENIOR_CITIZEN",
    "PENSIONER",
    "DISABILITY",
    "DISABILITY_RELIEF",
    "PERSONAL_ALLOWANCE",
    "PERSONAL_RELIEF",
    "CRA",
    "NG_CRA",
})
AUTO_APPLY_CATEGORY = "personal_relief"

TieredFormula = Callable[[TaxReliefScheme, Decimal, Optional[EmployeeReliefEnrollment]], Decimal]

TIERED_FORMULAS: Dict[str, TieredFormula] = {}


def register_tiered_formula(*codes: str) -> Callable[[TieredFormula], TieredFormula]:
    """Register a monthly tiered-relief formula for one or more scheme codes."""
    def decorator(formula: TieredFormula) -> TieredFormula:
        for code in codes:
            TIERED_FORMULAS[code.strip().upper()] = formula
        return formula
    return decorator


def annual_value_monthly(
    scheme: TaxReliefScheme,
    gross_pay: Decimal,
    enrollment: Optional[EmployeeReliefEnrollment] = None,
) -> Decimal:
    """Monthly share of the scheme's annual relief_value."""
    return to_decimal(scheme.relief_value) / MONTHS_PER_YEAR


def get_tiered_formula(code: str) -> TieredFormula:
    return TIERED_FORMULAS.get(code, annual_value_monthly)


# Nigeria consolidated relief allowance floor (NGN per year)
NG_CRA_FLOOR = Decimal("200000")


@register_tiered_formula("CRA", "NG_CRA")
def nigeria_consolidated_relief(
    scheme: TaxReliefScheme,
    gross_pay: Decimal,
    enrollment: Optional[EmployeeReliefEnrollment] = None,
) -> Decimal:
    """Nigeria CRA: max(floor, 1% of annual gross) + 20% of annual gross, monthly.

    relief_value overrides the floor when configured.
    """
    annual_gross = gross_pay * MONTHS_PER_YEAR
    floor = scheme.relief_value if scheme.relief_value is not None else NG_CRA_FLOOR
    annual_relief = max(floor, annual_gross * Decimal("0.01")) + annual_gross * Decimal("0.20")
    return annual_relief / MONTHS_PER_YEAR


@dataclass(frozen=True)
class ReliefLine:
    """A computed relief, rounded to cents when built.

    Totals and the taxable-income reduction are summed from these rounded
    amounts so they agree with the emitted relief lines.
    """

    code: str
    name: str
    source: str
    relief_type: str
    calculation_method: str
    amount: Decimal

    @property
    def reduces_taxable_income(self) -> bool:
        return self.relief_type in ("deduction", "exemption")

    @property
    def is_tax_credit(self) -> bool:
        return self.relief_type == "credit"

    def to_record(self) -> CalculatedRelief:
        return CalculatedRelief(
            relief_code=self.code,
            relief_name=self.name,
            source=self.source,
            relief_type=self.relief_type,
            calculation_method=self.calculation_method,
            amount=self.amount,
            reduces_taxable_income=self.reduces_taxable_income,
            is_tax_credit=self.is_tax_credit,
        )


def _ytd_claimed(
    context: TaxReliefContext,
    code: str,
    enrollment: Optional[EmployeeReliefEnrollment] = None,
) -> Decimal:
    if code in context.ytd_reliefs_claimed:
        return context.ytd_reliefs_claimed[code]
    if enrollment is not None:
        return enrollment.ytd_claimed
    return ZERO


def statutory_reliefs(
    contributions: Iterable[ContributionLine],
    context: TaxReliefContext,
    on: date,
) -> List[ReliefLine]:
    """Relief on computed contributions that have a matching relief rule."""
    rules = {r.statutory_type_code: r for r in context.rules if r.in_effect(on)}
    lines = []
    for contribution in contributions:
        rule = rules.get(contribution.code)
        if rule is None:
            continue

        amount = ZERO
        if rule.applies_to_employee_contribution:
            amount += percent_of(contribution.employee_amount, rule.relief_percentage)
        if rule.applies_to_employer_contribution:
            amount += percent_of(contribution.employer_amount, rule.relief_percentage)
        amount = clamp_to_cap(amount, rule.monthly_cap)
        amount = clamp_to_cap(amount, rule.annual_cap, _ytd_claimed(context, contribution.code))

        amount = round_money(amount)
        logger.debug(f"{contribution.code}: statutory relief {amount}")
        if amount > ZERO:
            lines.append(ReliefLine(
                code=contribution.code,
                name=rule.statutory_type_name or contribution.stat_type.name,
                source="statutory",
                relief_type=rule.relief_type,
                calculation_method="percentage_of_contribution",
                amount=amount,
            ))
    return lines


def enrollment_contribution(
    enrollment: Optional[EmployeeReliefEnrollment],
    gross_pay: Decimal,
) -> Decimal:
    """Contribution amount declared by an enrollment (0 without one)."""
    if enrollment is None:
        return ZERO
    if enrollment.contribution_amount is not None:
        return enrollment.contribution_amount
    return percent_of(gross_pay, enrollment.contribution_percentage)


def scheme_relief_amount(
    scheme: TaxReliefScheme,
    gross_pay: Decimal,
    enrollment: Optional[EmployeeReliefEnrollment] = None,
) -> Decimal:
    """Uncapped monthly relief for a scheme by its calculation method."""
    method = scheme.calculation_method
    if method == "fixed_amount":
        return annual_value_monthly(scheme, gross_pay, enrollment)
    if method == "percentage_of_income":
        return percent_of(gross_pay, scheme.relief_percentage)
    if method == "percentage_of_contribution":
        return percent_of(enrollment_contribution(enrollment, gross_pay), scheme.relief_percentage)
    if method == "tiered":
        return get_tiered_formula(scheme.scheme_code)(scheme, gross_pay, enrollment)
    raise ValueError(f"Unknown relief calculation method: {method}")


def _scheme_line(
    scheme: TaxReliefScheme,
    context: TaxReliefContext,
    gross_pay: Decimal,
    enrollment: Optional[EmployeeReliefEnrollment] = None,
) -> Optional[ReliefLine]:
    amount = scheme_relief_amount(scheme, gross_pay, enrollment)
    amount = clamp_to_cap(amount, scheme.monthly_cap)
    amount = clamp_to_cap(amount, scheme.annual_cap, _ytd_claimed(context, scheme.scheme_code, enrollment))

    amount = round_money(amount)
    logger.debug(f"{scheme.scheme_code}: scheme relief {amount} ({scheme.calculation_method})")
    if amount <= ZERO:
        return None
    return ReliefLine(
        code=scheme.scheme_code,
        name=scheme.scheme_name,
        source="scheme",
        relief_type=scheme.relief_type,
        calculation_method=scheme.calculation_method,
        amount=amount,
    )


def enrolled_scheme_reliefs(
    context: TaxReliefContext,
    gross_pay: Decimal,
    age: Optional[int],
    on: date,
) -> List[ReliefLine]:
    """Relief for schemes the employee actively enrolled in."""
    schemes = {s.scheme_code: s for s in context.schemes if s.in_effect(on)}
    lines = []
    for enrollment in context.enrollments:
        if not enrollment.is_active_on(on):
            continue
        scheme = schemes.get(enrollment.scheme_code)
        if scheme is None:
            logger.debug(f"{enrollment.scheme_code}: enrollment for inactive scheme, skipped")
            continue
        if not scheme.admits_age(age):
            logger.debug(f"{scheme.scheme_code}: age {age} outside scheme window, skipped")
            continue
        line = _scheme_line(scheme, context, gross_pay, enrollment)
        if line is not None:
            lines.append(line)
    return lines


def auto_scheme_reliefs(
    context: TaxReliefContext,
    gross_pay: Decimal,
    age: Optional[int],
    on: date,
    covered: Set[str],
) -> List[ReliefLine]:
    """Relief for schemes that apply without enrollment.

    Only schemes in the personal_relief category or on the allow-list
    qualify. Age-gated schemes are skipped entirely when age is unknown.
    """
    allowed = AUTO_APPLY_CODES | set(context.auto_apply_codes)
    lines = []
    for scheme in context.schemes:
        if scheme.scheme_code in covered or not scheme.in_effect(on):
            continue
        if scheme.scheme_category != AUTO_APPLY_CATEGORY and scheme.scheme_code not in allowed:
            continue
        if scheme.is_age_gated and (age is None or not scheme.admits_age(age)):
            continue
        line = _scheme_line(scheme, context, gross_pay)
        if line is not None:
            lines.append(line)
    return lines


def calc_reliefs(
    contributions: Iterable[ContributionLine],
    context: Optional[TaxReliefContext],
    gross_pay: Decimal,
    age: Optional[int],
    on: date,
) -> List[ReliefLine]:
    """Union statutory, enrolled and auto-applied reliefs."""
    if context is None:
        return []

    lines = statutory_reliefs(contributions, context, on)
    lines.extend(enrolled_scheme_reliefs(context, gross_pay, age, on))
    covered = {e.scheme_code for e in context.enrollments if e.is_active_on(on)}
    lines.extend(auto_scheme_reliefs(context, gross_pay, age, on, covered))
    return lines
