"""Rate band resolution.

Selects the band of a statutory deduction type that applies to a gross-pay
amount, an employee age and an effective date. Bands applicable to the
employee must not overlap on their bound dimension; an overlap is a fatal
configuration error rather than a silent pick.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from ..errors import ConfigurationError
from ..schemas import RateBand, StatutoryDeductionType

logger = logging.getLogger(__name__)


def applicable_bands(
    stat_type: StatutoryDeductionType,
    age: Optional[int],
    on: date,
) -> List[RateBand]:
    """Bands that are active, in effect and admit the age, ascending by lower bound.

    Raises:
        ConfigurationError: If the applicable bands overlap
    """
    bands = sorted(
        (b for b in stat_type.bands if b.applies_to(age, on)),
        key=lambda b: b.lower,
    )
    check_non_overlapping(bands, stat_type.code)
    return bands


def check_non_overlapping(bands: List[RateBand], code: str) -> None:
    """Verify sorted bands do not overlap.

    Bands that touch (one's max equals the next's min) are allowed; on the
    shared boundary the lower band wins.

    Raises:
        ConfigurationError: On the first overlapping pair
    """
    for current, following in zip(bands, bands[1:]):
        if current.max_amount is None:
            raise ConfigurationError(
                f"{code}: open-ended band from {current.lower} overlaps band from {following.lower}"
            )
        if following.lower < current.max_amount:
            raise ConfigurationError(
                f"{code}: band {current.lower}-{current.max_amount} overlaps "
                f"band {following.lower}-{following.max_amount if following.max_amount is not None else 'open'}"
            )


def resolve_band(
    stat_type: StatutoryDeductionType,
    gross_pay: Decimal,
    age: Optional[int],
    on: date,
) -> Optional[RateBand]:
    """Return the band containing gross_pay, or None if the type does not apply.

    Args:
        stat_type: Deduction type holding the bands
        gross_pay: Period gross pay
        age: Employee age (None if unknown - age-restricted bands never match)
        on: Effective date

    Returns:
        The matching band, or None (the deduction is skipped)

    Raises:
        ConfigurationError: If bands overlap, or the type is required and
            no band matches
    """
    for band in applicable_bands(stat_type, age, on):
        if band.contains(gross_pay):
            logger.debug(f"{stat_type.code}: band {band.lower}-{band.max_amount} ({band.calculation_method})")
            return band

    if stat_type.required:
        raise ConfigurationError(
            f"{stat_type.code}: no rate band for gross pay {gross_pay}, age {age}, on {on}"
        )
    logger.debug(f"{stat_type.code}: no applicable band, skipped")
    return None
