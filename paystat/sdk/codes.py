"""Statutory and relief code handling.

Codes key every YTD, period and relief-claim map. They are normalized at
the boundary (stripped, upper-cased) so 'nis', ' NIS' and 'NIS' are the
same code, and maps are checked against the configured code set before a
calculation starts so a typo fails loudly instead of reading as zero.
"""

from typing import Annotated, Iterable

from pydantic import StringConstraints

from .errors import ConfigurationError


Code = Annotated[
    str,
    StringConstraints(strip_whitespace=True, to_upper=True, min_length=1),
]


def normalize_code(code: str) -> str:
    """Normalize a raw code string the same way the schemas do."""
    normalized = code.strip().upper()
    if not normalized:
        raise ConfigurationError("Empty code")
    return normalized


def validate_codes(codes: Iterable[str], known: Iterable[str], context: str) -> None:
    """Reject codes that are not part of the configuration.

    Args:
        codes: Codes found in an input map (e.g., YTD amounts)
        known: Codes defined by the configuration
        context: What the map holds, used in the error message

    Raises:
        ConfigurationError: If any code is unknown
    """
    known_set = {normalize_code(c) for c in known}
    unknown = sorted({normalize_code(c) for c in codes} - known_set)
    if unknown:
        raise ConfigurationError(
            f"Unknown {context} code(s): {', '.join(unknown)}. "
            f"Configured: {', '.join(sorted(known_set)) or '(none)'}"
        )
