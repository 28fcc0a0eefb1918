"""Pydantic schemas for statutory deduction configuration, inputs and results.

Configuration schemas use extra='forbid' to reject unknown fields, ensuring
typos in country config files cause clear errors rather than silent ignoring.

Conventions:
- Monetary values are Decimal. Negative gross pay, caps and rates are
  rejected at validation time.
- Rates and relief percentages are percentages (5 = 5%).
- Codes are normalized (stripped, upper-case) - see codes.Code.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .codes import Code


CalculationMethod = Literal["percentage", "fixed", "per_monday"]
TaxCalculationMethod = Literal["cumulative", "non_cumulative"]
ReliefCalculationMethod = Literal[
    "fixed_amount", "percentage_of_income", "percentage_of_contribution", "tiered"
]
ReliefType = Literal["deduction", "credit", "exemption", "reduced_rate"]
RefundMethod = Literal["automatic", "end_of_year", "manual_claim"]
RefundDisplayType = Literal["reduced_tax", "separate_line_item"]
IncomeTaxStatus = Literal["withheld", "refund", "clamped", "zero"]

INCOME_TAX = "income_tax"
ZERO = Decimal("0")


def _in_effect(effective_from: Optional[date], effective_to: Optional[date], on: date) -> bool:
    """True if `on` falls inside an inclusive, optionally open, date range."""
    if effective_from is not None and on < effective_from:
        return False
    if effective_to is not None and on > effective_to:
        return False
    return True


def _admits_age(min_age: Optional[int], max_age: Optional[int], age: Optional[int]) -> bool:
    """True if an age window admits the age. Unknown age only passes open windows."""
    if min_age is None and max_age is None:
        return True
    if age is None:
        return False
    if min_age is not None and age < min_age:
        return False
    if max_age is not None and age > max_age:
        return False
    return True


# =============================================================================
# Rate configuration
# =============================================================================


class RateBand(BaseModel):
    """One tier of a statutory deduction schedule.

    For non-tax deductions the bounds select the band by gross pay. For
    income tax the bands are progressive brackets over cumulative income.
    """

    model_config = ConfigDict(extra="forbid")

    min_amount: Optional[Decimal] = Field(default=None, ge=0, description="Lower bound (inclusive, None = 0)")
    max_amount: Optional[Decimal] = Field(default=None, ge=0, description="Upper bound (inclusive, None = open)")
    calculation_method: CalculationMethod = "percentage"
    employee_rate: Decimal = Field(default=ZERO, ge=0, le=100, description="Employee rate in percent")
    employer_rate: Decimal = Field(default=ZERO, ge=0, le=100, description="Employer rate in percent")
    fixed_amount: Decimal = Field(default=ZERO, ge=0, description="Employee fixed amount per period")
    employer_fixed_amount: Decimal = Field(default=ZERO, ge=0, description="Employer fixed amount per period")
    per_monday_amount: Decimal = Field(default=ZERO, ge=0, description="Employee amount per qualifying Monday")
    employer_per_monday_amount: Decimal = Field(default=ZERO, ge=0, description="Employer amount per qualifying Monday")
    employee_annual_cap: Optional[Decimal] = Field(default=None, ge=0)
    employer_annual_cap: Optional[Decimal] = Field(default=None, ge=0)
    employee_monthly_cap: Optional[Decimal] = Field(default=None, ge=0)
    employer_monthly_cap: Optional[Decimal] = Field(default=None, ge=0)
    min_age: Optional[int] = Field(default=None, ge=0)
    max_age: Optional[int] = Field(default=None, ge=0)
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    is_active: bool = True

    @model_validator(mode="after")
    def check_ranges(self) -> "RateBand":
        if self.min_amount is not None and self.max_amount is not None:
            if self.max_amount < self.min_amount:
                raise ValueError(f"max_amount ({self.max_amount}) < min_amount ({self.min_amount})")
        if self.min_age is not None and self.max_age is not None and self.max_age < self.min_age:
            raise ValueError(f"max_age ({self.max_age}) < min_age ({self.min_age})")
        return self

    @property
    def lower(self) -> Decimal:
        return self.min_amount if self.min_amount is not None else ZERO

    def contains(self, amount: Decimal) -> bool:
        if amount < self.lower:
            return False
        return self.max_amount is None or amount <= self.max_amount

    def applies_to(self, age: Optional[int], on: date) -> bool:
        """True if the band is active, in effect on the date, and admits the age."""
        return (
            self.is_active
            and _in_effect(self.effective_from, self.effective_to, on)
            and _admits_age(self.min_age, self.max_age, age)
        )


class StatutoryDeductionType(BaseModel):
    """One kind of mandated withholding (pension, social security, income tax...)."""

    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    code: Code
    name: str
    country: Optional[Code] = None
    statutory_type: str = Field(default="other", description="'income_tax' or another classification")
    required: bool = Field(default=False, description="Fail if no band applies to the employee")
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    is_active: bool = True
    bands: List[RateBand] = Field(default_factory=list)

    @property
    def is_income_tax(self) -> bool:
        return self.statutory_type == INCOME_TAX

    def in_effect(self, on: date) -> bool:
        return self.is_active and _in_effect(self.effective_from, self.effective_to, on)


# =============================================================================
# YTD / period snapshots
# =============================================================================


class OpeningBalances(BaseModel):
    """YTD snapshot imported for a mid-year joiner or a system migration."""

    model_config = ConfigDict(extra="forbid")

    tax_year: Optional[int] = None
    as_of: Optional[date] = None
    taxable_income: Decimal = Field(default=ZERO, ge=0)
    tax_paid: Decimal = Field(default=ZERO, ge=0)


class StatutoryAmount(BaseModel):
    """Accumulated employee/employer amounts for one statutory code."""

    model_config = ConfigDict(extra="forbid")

    employee_amount: Decimal = ZERO
    employer_amount: Decimal = ZERO


class YtdStatutoryAmounts(BaseModel):
    """Amounts paid this tax year, excluding the current pay period."""

    model_config = ConfigDict(extra="forbid")

    amounts: Dict[Code, StatutoryAmount] = Field(default_factory=dict)
    taxable_income: Decimal = Field(default=ZERO, description="Taxable income already recorded")

    def get(self, code: str) -> StatutoryAmount:
        return self.amounts.get(code) or StatutoryAmount()


class PeriodStatutoryAmounts(YtdStatutoryAmounts):
    """Amounts already paid for the same pay period in earlier runs (off-cycle)."""
    pass


# =============================================================================
# Tax relief configuration
# =============================================================================


class TaxReliefRule(BaseModel):
    """Relief derived from a statutory contribution (e.g., pension relief on NIS)."""

    model_config = ConfigDict(extra="forbid")

    statutory_type_code: Code
    statutory_type_name: Optional[str] = None
    relief_percentage: Decimal = Field(default=Decimal("100"), ge=0, le=100)
    relief_type: ReliefType = "deduction"
    monthly_cap: Optional[Decimal] = Field(default=None, ge=0)
    annual_cap: Optional[Decimal] = Field(default=None, ge=0)
    applies_to_employee_contribution: bool = True
    applies_to_employer_contribution: bool = False
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    is_active: bool = True

    def in_effect(self, on: date) -> bool:
        return self.is_active and _in_effect(self.effective_from, self.effective_to, on)


class TaxReliefScheme(BaseModel):
    """Relief not tied to a mandatory contribution (allowances, savings, youth...)."""

    model_config = ConfigDict(extra="forbid")

    scheme_code: Code
    scheme_name: str
    scheme_category: str = "personal_relief"
    relief_type: ReliefType = "deduction"
    calculation_method: ReliefCalculationMethod = "fixed_amount"
    relief_value: Optional[Decimal] = Field(default=None, ge=0, description="Annual amount")
    relief_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    monthly_cap: Optional[Decimal] = Field(default=None, ge=0)
    annual_cap: Optional[Decimal] = Field(default=None, ge=0)
    min_age: Optional[int] = Field(default=None, ge=0)
    max_age: Optional[int] = Field(default=None, ge=0)
    requires_proof: bool = False
    legal_reference: Optional[str] = None
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    is_active: bool = True

    @property
    def is_age_gated(self) -> bool:
        return self.min_age is not None or self.max_age is not None

    def admits_age(self, age: Optional[int]) -> bool:
        return _admits_age(self.min_age, self.max_age, age)

    def in_effect(self, on: date) -> bool:
        return self.is_active and _in_effect(self.effective_from, self.effective_to, on)


class EmployeeReliefEnrollment(BaseModel):
    """An employee's opt-in to a relief scheme."""

    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    scheme_code: Code
    status: str = "active"
    contribution_amount: Optional[Decimal] = Field(default=None, ge=0)
    contribution_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    ytd_claimed: Decimal = Field(default=ZERO, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def is_active_on(self, on: date) -> bool:
        return self.status == "active" and _in_effect(self.start_date, self.end_date, on)


class TaxReliefContext(BaseModel):
    """Everything the relief engine needs besides the computed contributions."""

    model_config = ConfigDict(extra="forbid")

    rules: List[TaxReliefRule] = Field(default_factory=list)
    schemes: List[TaxReliefScheme] = Field(default_factory=list)
    enrollments: List[EmployeeReliefEnrollment] = Field(default_factory=list)
    ytd_reliefs_claimed: Dict[Code, Decimal] = Field(default_factory=dict)
    auto_apply_codes: List[Code] = Field(
        default_factory=list,
        description="Country-specific scheme codes auto-applied without enrollment",
    )


# =============================================================================
# Country settings and calculation input
# =============================================================================


class CountryTaxSettings(BaseModel):
    """How a country accrues income tax and treats negative period tax."""

    model_config = ConfigDict(extra="forbid")

    country: Optional[Code] = None
    tax_calculation_method: TaxCalculationMethod = "cumulative"
    allow_mid_year_refunds: bool = True
    refund_method: RefundMethod = "automatic"
    refund_display_type: RefundDisplayType = "reduced_tax"
    refund_line_item_label: str = "PAYE Refund"

    @property
    def refunds_enabled(self) -> bool:
        """Mid-year refunds only apply to automatic refunds under the cumulative method."""
        return (
            self.tax_calculation_method == "cumulative"
            and self.allow_mid_year_refunds
            and self.refund_method == "automatic"
        )


class CountryConfig(BaseModel):
    """Complete rate and relief configuration for one country (countries/<CC>.yaml)."""

    model_config = ConfigDict(extra="forbid")

    country: Code
    tax_settings: CountryTaxSettings = Field(default_factory=CountryTaxSettings)
    statutory_types: List[StatutoryDeductionType] = Field(default_factory=list)
    relief_rules: List[TaxReliefRule] = Field(default_factory=list)
    relief_schemes: List[TaxReliefScheme] = Field(default_factory=list)
    auto_apply_codes: List[Code] = Field(default_factory=list)

    def effective_on(self, on: date) -> "CountryConfig":
        """Return a copy holding only the types, bands, rules and schemes in effect on a date."""
        types = []
        for stat_type in self.statutory_types:
            if not stat_type.in_effect(on):
                continue
            bands = [
                b for b in stat_type.bands
                if b.is_active and _in_effect(b.effective_from, b.effective_to, on)
            ]
            types.append(stat_type.model_copy(update={"bands": bands}))
        return self.model_copy(update={
            "statutory_types": types,
            "relief_rules": [r for r in self.relief_rules if r.in_effect(on)],
            "relief_schemes": [s for s in self.relief_schemes if s.in_effect(on)],
        })

    def relief_context(
        self,
        enrollments: Optional[List[EmployeeReliefEnrollment]] = None,
        ytd_reliefs_claimed: Optional[Dict[str, Decimal]] = None,
    ) -> Optional[TaxReliefContext]:
        """Build a relief context, or None if the country defines no reliefs and none are enrolled."""
        if not (self.relief_rules or self.relief_schemes or enrollments):
            return None
        return TaxReliefContext(
            rules=self.relief_rules,
            schemes=self.relief_schemes,
            enrollments=enrollments or [],
            ytd_reliefs_claimed=ytd_reliefs_claimed or {},
            auto_apply_codes=self.auto_apply_codes,
        )


class CalculationInput(BaseModel):
    """Inputs for one employee's one pay period."""

    model_config = ConfigDict(extra="forbid")

    gross_pay: Decimal = Field(..., ge=0, description="Gross pay for the period")
    effective_date: date
    employee_age: Optional[int] = Field(default=None, ge=0)
    date_of_birth: Optional[date] = None
    monday_count: Optional[int] = Field(default=None, ge=0, description="Qualifying Mondays in the period")
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    statutory_types: List[StatutoryDeductionType] = Field(default_factory=list)
    opening_balances: Optional[OpeningBalances] = None
    ytd_amounts: YtdStatutoryAmounts = Field(default_factory=YtdStatutoryAmounts)
    period_amounts: PeriodStatutoryAmounts = Field(default_factory=PeriodStatutoryAmounts)
    tax_settings: CountryTaxSettings = Field(default_factory=CountryTaxSettings)
    relief_context: Optional[TaxReliefContext] = None

    @model_validator(mode="after")
    def check_period(self) -> "CalculationInput":
        if self.period_start and self.period_end and self.period_end < self.period_start:
            raise ValueError(f"period_end ({self.period_end}) is before period_start ({self.period_start})")
        return self

    @property
    def age(self) -> Optional[int]:
        """Explicit age, else age at the effective date from date_of_birth, else unknown."""
        if self.employee_age is not None:
            return self.employee_age
        if self.date_of_birth is None:
            return None
        on, dob = self.effective_date, self.date_of_birth
        return on.year - dob.year - ((on.month, on.day) < (dob.month, dob.day))


# =============================================================================
# Results
# =============================================================================


class CalculatedStatutory(BaseModel):
    """One emitted deduction line."""

    model_config = ConfigDict(extra="forbid")

    statutory_code: str
    statutory_name: str
    statutory_type: str
    employee_amount: Decimal
    employer_amount: Decimal = ZERO
    calculation_method: str
    ytd_taxable_income: Optional[Decimal] = None
    ytd_tax_paid: Optional[Decimal] = None
    is_refund: bool = False


class CalculatedRelief(BaseModel):
    """One emitted tax relief."""

    model_config = ConfigDict(extra="forbid")

    relief_code: str
    relief_name: str
    source: Literal["statutory", "scheme"]
    relief_type: ReliefType
    calculation_method: str
    amount: Decimal
    reduces_taxable_income: bool
    is_tax_credit: bool


class IncomeTaxSummary(BaseModel):
    """How this period's income tax was reached.

    Present whenever an income-tax type is configured, including periods
    where no income-tax line is emitted, so a zero produced by clamping is
    distinguishable from a skipped deduction.
    """

    model_config = ConfigDict(extra="forbid")

    method: TaxCalculationMethod
    status: IncomeTaxStatus
    total_tax_due: Decimal
    previous_ytd_income: Decimal
    previous_ytd_tax: Decimal
    period_tax_already_paid: Decimal
    raw_tax: Decimal
    amount: Decimal
    forfeited_refund: Decimal = ZERO
    ytd_taxable_income: Decimal
    ytd_tax_paid: Decimal


class StatutoryCalculationResult(BaseModel):
    """Result of one calculation call."""

    model_config = ConfigDict(extra="forbid")

    deductions: List[CalculatedStatutory] = Field(default_factory=list)
    total_employee_deductions: Decimal = ZERO
    total_employer_contributions: Decimal = ZERO
    reliefs: Optional[List[CalculatedRelief]] = None
    total_taxable_income_reduction: Decimal = ZERO
    total_tax_credits: Decimal = ZERO
    adjusted_taxable_income: Decimal = ZERO
    income_tax: Optional[IncomeTaxSummary] = None

    def get(self, code: str) -> Optional[CalculatedStatutory]:
        """Find an emitted deduction by statutory code."""
        for line in self.deductions:
            if line.statutory_code == code:
                return line
        return None


# =============================================================================
# Period request (CLI / MCP input file)
# =============================================================================


class PeriodRequest(BaseModel):
    """A pay-period calculation request as written in an input file.

    YTD and period snapshots may be given explicitly; otherwise they are
    derived from the employee's payroll history.
    """

    model_config = ConfigDict(extra="forbid")

    employee_id: Optional[str] = None
    country: Optional[Code] = None
    pay_period_id: str
    tax_year: Optional[int] = None
    run_type: Literal["regular", "off_cycle"] = "regular"
    gross_pay: Decimal = Field(..., ge=0)
    effective_date: date
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    employee_age: Optional[int] = Field(default=None, ge=0)
    date_of_birth: Optional[date] = None
    monday_count: Optional[int] = Field(default=None, ge=0)
    opening_balances: Optional[OpeningBalances] = None
    enrollments: List[EmployeeReliefEnrollment] = Field(default_factory=list)
    ytd_amounts: Optional[YtdStatutoryAmounts] = None
    period_amounts: Optional[PeriodStatutoryAmounts] = None
    ytd_reliefs_claimed: Optional[Dict[Code, Decimal]] = None

    @property
    def resolved_tax_year(self) -> int:
        return self.tax_year if self.tax_year is not None else self.effective_date.year
