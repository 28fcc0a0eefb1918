"""Payroll history and YTD aggregation.

The calculation engine never reads history itself; this module turns an
employee's recorded pay periods into the read-only snapshots it consumes:

- YTD amounts: every run this tax year except runs for the current period
- Period amounts: earlier runs for the current period (off-cycle case)
- YTD reliefs claimed: every recorded relief this tax year

History is stored per employee as a JSON list at
<data_dir>/history/<employee_id>.json.

Callers running payroll concurrently must serialize calculations per
employee: reading history while another run for the same employee is
being recorded gives a stale snapshot.
"""

import json
import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .codes import Code
from .errors import InvalidInputError
from .schemas import (
    CalculationInput,
    CountryConfig,
    PeriodRequest,
    PeriodStatutoryAmounts,
    StatutoryAmount,
    StatutoryCalculationResult,
    YtdStatutoryAmounts,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class HistoryStatutoryLine(BaseModel):
    """A statutory amount recorded for a past run."""

    model_config = ConfigDict(extra="forbid")

    code: Code
    employee_amount: Decimal = ZERO
    employer_amount: Decimal = ZERO


class PayrollHistoryEntry(BaseModel):
    """One recorded payroll run for an employee."""

    model_config = ConfigDict(extra="forbid")

    pay_period_id: str
    pay_date: date
    tax_year: int
    run_type: Literal["regular", "off_cycle"] = "regular"
    gross_pay: Decimal = Field(default=ZERO, ge=0)
    taxable_income: Decimal = Field(default=ZERO, ge=0)
    statutory: List[HistoryStatutoryLine] = Field(default_factory=list)
    reliefs: Dict[Code, Decimal] = Field(default_factory=dict)


_history_adapter = TypeAdapter(List[PayrollHistoryEntry])


def _sum_entries(entries: Iterable[PayrollHistoryEntry], model: type) -> YtdStatutoryAmounts:
    employee = defaultdict(lambda: ZERO)
    employer = defaultdict(lambda: ZERO)
    taxable_income = ZERO
    for entry in entries:
        taxable_income += entry.taxable_income
        for line in entry.statutory:
            employee[line.code] += line.employee_amount
            employer[line.code] += line.employer_amount

    amounts = {
        code: StatutoryAmount(employee_amount=employee[code], employer_amount=employer[code])
        for code in employee.keys() | employer.keys()
    }
    return model(amounts=amounts, taxable_income=taxable_income)


def _only_codes(snapshot: YtdStatutoryAmounts, codes: set) -> YtdStatutoryAmounts:
    dropped = sorted(set(snapshot.amounts) - codes)
    if dropped:
        logger.debug(f"Ignoring history for codes no longer configured: {', '.join(dropped)}")
    return snapshot.model_copy(update={
        "amounts": {c: a for c, a in snapshot.amounts.items() if c in codes},
    })


def aggregate_ytd(
    entries: Iterable[PayrollHistoryEntry],
    tax_year: int,
    pay_period_id: str,
) -> YtdStatutoryAmounts:
    """Sum this tax year's runs, excluding runs for the current period."""
    relevant = [
        e for e in entries
        if e.tax_year == tax_year and e.pay_period_id != pay_period_id
    ]
    return _sum_entries(relevant, YtdStatutoryAmounts)


def aggregate_period(
    entries: Iterable[PayrollHistoryEntry],
    tax_year: int,
    pay_period_id: str,
) -> PeriodStatutoryAmounts:
    """Sum earlier runs for the current period."""
    relevant = [
        e for e in entries
        if e.tax_year == tax_year and e.pay_period_id == pay_period_id
    ]
    if relevant:
        logger.debug(f"{len(relevant)} earlier run(s) for period {pay_period_id}")
    return _sum_entries(relevant, PeriodStatutoryAmounts)


def aggregate_relief_claims(
    entries: Iterable[PayrollHistoryEntry],
    tax_year: int,
) -> Dict[str, Decimal]:
    """Total relief claimed this tax year, by rule or scheme code."""
    claimed: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for entry in entries:
        if entry.tax_year != tax_year:
            continue
        for code, amount in entry.reliefs.items():
            claimed[code] += amount
    return dict(claimed)


def entry_from_result(
    result: StatutoryCalculationResult,
    request: PeriodRequest,
) -> PayrollHistoryEntry:
    """Build the history entry recording a calculation result."""
    return PayrollHistoryEntry(
        pay_period_id=request.pay_period_id,
        pay_date=request.effective_date,
        tax_year=request.resolved_tax_year,
        run_type=request.run_type,
        gross_pay=request.gross_pay,
        taxable_income=result.adjusted_taxable_income,
        statutory=[
            HistoryStatutoryLine(
                code=line.statutory_code,
                employee_amount=line.employee_amount,
                employer_amount=line.employer_amount,
            )
            for line in result.deductions
        ],
        reliefs={r.relief_code: r.amount for r in result.reliefs or []},
    )


def load_history(path: Path) -> List[PayrollHistoryEntry]:
    """Load payroll history (empty list if the file doesn't exist)."""
    if not path.exists():
        return []
    with open(path, "r") as f:
        return _history_adapter.validate_python(json.load(f))


def save_history(path: Path, entries: List[PayrollHistoryEntry]) -> Path:
    """Write payroll history, sorted by pay date."""
    path.parent.mkdir(parents=True, exist_ok=True)
    ordered = sorted(entries, key=lambda e: e.pay_date)
    with open(path, "w") as f:
        json.dump(_history_adapter.dump_python(ordered, mode="json"), f, indent=2)
    return path


def append_history(path: Path, entry: PayrollHistoryEntry) -> Path:
    """Append one entry to a history file."""
    entries = load_history(path)
    entries.append(entry)
    return save_history(path, entries)


def build_calculation_input(
    request: PeriodRequest,
    country: CountryConfig,
    history: Optional[List[PayrollHistoryEntry]] = None,
) -> CalculationInput:
    """Assemble engine input from a request, country config and history.

    Explicit snapshots on the request win over history-derived ones.
    """
    history = history or []
    tax_year = request.resolved_tax_year
    config = country.effective_on(request.effective_date)

    # History may hold codes retired since it was recorded; explicit maps
    # are validated strictly by the engine instead.
    type_codes = {t.code for t in config.statutory_types}
    relief_codes = {r.statutory_type_code for r in config.relief_rules}
    relief_codes |= {s.scheme_code for s in config.relief_schemes}

    ytd = request.ytd_amounts
    if ytd is None:
        ytd = _only_codes(aggregate_ytd(history, tax_year, request.pay_period_id), type_codes)
    period = request.period_amounts
    if period is None:
        period = _only_codes(aggregate_period(history, tax_year, request.pay_period_id), type_codes)
    claimed = request.ytd_reliefs_claimed
    if claimed is None:
        claimed = {
            code: amount
            for code, amount in aggregate_relief_claims(history, tax_year).items()
            if code in relief_codes
        }

    return CalculationInput(
        gross_pay=request.gross_pay,
        effective_date=request.effective_date,
        employee_age=request.employee_age,
        date_of_birth=request.date_of_birth,
        monday_count=request.monday_count,
        period_start=request.period_start,
        period_end=request.period_end,
        statutory_types=config.statutory_types,
        opening_balances=request.opening_balances,
        ytd_amounts=ytd,
        period_amounts=period,
        tax_settings=config.tax_settings,
        relief_context=config.relief_context(request.enrollments, claimed),
    )


def load_request(path: Path) -> PeriodRequest:
    """Load a period request from a YAML or JSON file.

    Raises:
        InvalidInputError: If the file is missing or fails validation
    """
    if not path.exists():
        raise InvalidInputError(f"Request file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    try:
        return PeriodRequest.model_validate(data)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid request {path.name}:\n{e}") from e
