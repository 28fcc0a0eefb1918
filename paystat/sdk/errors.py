"""Exceptions raised by the statutory calculation SDK.

Configuration problems and invalid inputs are fatal: a calculation either
produces a complete result or raises. Callers decide whether to halt a
payroll run, flag the employee, or escalate.
"""


class StatutoryCalculationError(Exception):
    """Base class for statutory calculation failures."""
    pass


class ConfigurationError(StatutoryCalculationError):
    """Raised when rate or relief configuration is inconsistent.

    Examples: overlapping rate bands, a required deduction type with no
    applicable band, or input maps keyed by codes the configuration does
    not define.
    """
    pass


class InvalidInputError(StatutoryCalculationError):
    """Raised when calculation inputs are out of range."""
    pass
