"""Per-employee, per-period statutory calculation pipeline.

Stages run strictly forward, and each stage takes the previous stage's
output as its only input:

    CalculationInput
      -> run_contributions -> ContributionStage   (non-tax deductions)
      -> run_reliefs       -> ReliefStage         (reliefs on contributions + schemes)
      -> run_income_tax    -> TaxStage            (progressive income tax)
      -> build_result      -> StatutoryCalculationResult

The pipeline is a pure function of its inputs: no I/O and no shared state.
Invocations for different employees are independent.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from ..codes import validate_codes
from ..errors import ConfigurationError
from ..schemas import (
    CalculatedStatutory,
    CalculationInput,
    StatutoryCalculationResult,
    StatutoryDeductionType,
)
from .bands import applicable_bands
from .contributions import ContributionLine, calc_contributions
from .income_tax import IncomeTaxOutcome, calc_income_tax
from .money import ZERO, round_money
from .relief import ReliefLine, calc_reliefs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContributionStage:
    inputs: CalculationInput
    contributions: Tuple[ContributionLine, ...]


@dataclass(frozen=True)
class ReliefStage:
    contribution_stage: ContributionStage
    reliefs: Tuple[ReliefLine, ...]
    total_taxable_income_reduction: Decimal
    total_tax_credits: Decimal

    @property
    def inputs(self) -> CalculationInput:
        return self.contribution_stage.inputs


@dataclass(frozen=True)
class TaxStage:
    relief_stage: ReliefStage
    adjusted_taxable_income: Decimal
    income_tax: Optional[IncomeTaxOutcome]

    @property
    def inputs(self) -> CalculationInput:
        return self.relief_stage.inputs


def income_tax_type(inputs: CalculationInput) -> Optional[StatutoryDeductionType]:
    """The single income-tax type in effect, if any.

    Raises:
        ConfigurationError: If more than one income-tax type is in effect
    """
    types = [
        t for t in inputs.statutory_types
        if t.is_income_tax and t.in_effect(inputs.effective_date)
    ]
    if len(types) > 1:
        raise ConfigurationError(
            f"Multiple income tax types configured: {', '.join(t.code for t in types)}"
        )
    return types[0] if types else None


def validate_inputs(inputs: CalculationInput) -> None:
    """Check input maps against the configured code sets.

    Raises:
        ConfigurationError: On unknown, duplicate or colliding codes
    """
    codes = [t.code for t in inputs.statutory_types]
    duplicates = sorted({c for c in codes if codes.count(c) > 1})
    if duplicates:
        raise ConfigurationError(f"Duplicate statutory codes: {', '.join(duplicates)}")

    validate_codes(inputs.ytd_amounts.amounts, codes, "YTD statutory")
    validate_codes(inputs.period_amounts.amounts, codes, "period statutory")

    context = inputs.relief_context
    if context is not None:
        rule_codes = [r.statutory_type_code for r in context.rules]
        scheme_codes = [s.scheme_code for s in context.schemes]
        shared = sorted(set(rule_codes) & set(scheme_codes))
        if shared:
            # Claimed-relief totals are keyed by code alone
            raise ConfigurationError(
                f"Relief scheme codes shared with relief rules: {', '.join(shared)}"
            )
        relief_codes = rule_codes + scheme_codes
        validate_codes(context.ytd_reliefs_claimed, relief_codes, "YTD relief")


def run_contributions(inputs: CalculationInput) -> ContributionStage:
    validate_inputs(inputs)
    contributions = tuple(calc_contributions(inputs))
    logger.debug(f"{len(contributions)} non-tax deduction(s) computed")
    return ContributionStage(inputs=inputs, contributions=contributions)


def run_reliefs(stage: ContributionStage) -> ReliefStage:
    inputs = stage.inputs
    reliefs = tuple(calc_reliefs(
        stage.contributions,
        inputs.relief_context,
        inputs.gross_pay,
        inputs.age,
        inputs.effective_date,
    ))
    reduction = sum((r.amount for r in reliefs if r.reduces_taxable_income), ZERO)
    credits = sum((r.amount for r in reliefs if r.is_tax_credit), ZERO)
    logger.debug(f"{len(reliefs)} relief(s): income reduction {reduction}, credits {credits}")
    return ReliefStage(
        contribution_stage=stage,
        reliefs=reliefs,
        total_taxable_income_reduction=reduction,
        total_tax_credits=credits,
    )


def run_income_tax(stage: ReliefStage) -> TaxStage:
    inputs = stage.inputs
    adjusted = max(ZERO, inputs.gross_pay - stage.total_taxable_income_reduction)

    tax_type = income_tax_type(inputs)
    outcome = None
    if tax_type is not None:
        bands = applicable_bands(tax_type, inputs.age, inputs.effective_date)
        if not bands:
            raise ConfigurationError(f"{tax_type.code}: income tax type has no rate bands in effect")
        outcome = calc_income_tax(tax_type, bands, adjusted, stage.total_tax_credits, inputs)

    return TaxStage(relief_stage=stage, adjusted_taxable_income=adjusted, income_tax=outcome)


def build_result(stage: TaxStage) -> StatutoryCalculationResult:
    """Emit records, totals and the relief list from the final stage."""
    relief_stage = stage.relief_stage
    contributions = relief_stage.contribution_stage.contributions

    deductions: List[CalculatedStatutory] = [c.to_record() for c in contributions]
    total_employee = sum((c.employee_amount for c in contributions), ZERO)
    total_employer = sum((c.employer_amount for c in contributions), ZERO)

    outcome = stage.income_tax
    if outcome is not None and outcome.emitted:
        deductions.append(outcome.to_record())
        total_employee += outcome.amount

    reliefs = [r.to_record() for r in relief_stage.reliefs]
    return StatutoryCalculationResult(
        deductions=deductions,
        total_employee_deductions=round_money(total_employee),
        total_employer_contributions=round_money(total_employer),
        reliefs=reliefs or None,
        total_taxable_income_reduction=round_money(relief_stage.total_taxable_income_reduction),
        total_tax_credits=round_money(relief_stage.total_tax_credits),
        adjusted_taxable_income=round_money(stage.adjusted_taxable_income),
        income_tax=outcome.to_summary() if outcome is not None else None,
    )


def calculate_statutory_deductions(inputs: CalculationInput) -> StatutoryCalculationResult:
    """Compute one employee's statutory deductions and reliefs for one pay period.

    Args:
        inputs: Validated calculation input

    Returns:
        StatutoryCalculationResult

    Raises:
        ConfigurationError: On inconsistent configuration (no partial result)
    """
    return build_result(run_income_tax(run_reliefs(run_contributions(inputs))))
