"""statutory - Per-period statutory deduction and tax relief calculation.

Scope:
- Rate band resolution by gross pay, age and date (bands.py)
- Non-tax contributions with monthly/annual caps (contributions.py)
- Tax relief on contributions and relief schemes (relief.py)
- Cumulative and non-cumulative progressive income tax (income_tax.py)
- Staged pipeline producing one result per call (engine.py)

Constraints:
- Pure calculation - no config file or history access (that's in config/history)
- Receives data, returns results; raises on inconsistent configuration
- Decimal amounts, rounded to cents only on emitted records

Usage:
    from paystat.sdk.statutory import calculate_statutory_deductions

    result = calculate_statutory_deductions(CalculationInput(...))
"""

from .bands import resolve_band, applicable_bands, check_non_overlapping
from .contributions import calc_contributions, count_mondays
from .relief import (
    calc_reliefs,
    register_tiered_formula,
    scheme_relief_amount,
    AUTO_APPLY_CODES,
)
from .income_tax import bracket_tax, calc_income_tax
from .engine import (
    calculate_statutory_deductions,
    run_contributions,
    run_reliefs,
    run_income_tax,
    build_result,
    ContributionStage,
    ReliefStage,
    TaxStage,
)

__all__ = [
    # Bands
    "resolve_band",
    "applicable_bands",
    "check_non_overlapping",
    # Contributions
    "calc_contributions",
    "count_mondays",
    # Relief
    "calc_reliefs",
    "register_tiered_formula",
    "scheme_relief_amount",
    "AUTO_APPLY_CODES",
    # Income tax
    "bracket_tax",
    "calc_income_tax",
    # Pipeline
    "calculate_statutory_deductions",
    "run_contributions",
    "run_reliefs",
    "run_income_tax",
    "build_result",
    "ContributionStage",
    "ReliefStage",
    "TaxStage",
]
