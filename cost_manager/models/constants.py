"""Domain constants and enumerations for validation."""

from enum import Enum
from typing import Tuple


class Currency(str, Enum):
    USD = "USD"
    GBP = "GBP"
    EURO = "EURO"
    ILS = "ILS"

    @classmethod
    def parse(cls, value: object) -> "Currency":
        """Return the matching member or raise ``ValueError`` (case-sensitive)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"unsupported currency {value!r}") from None


# Fixed validation order; rate-table errors name the first failing code.
CURRENCY_CODES: Tuple[str, ...] = ("USD", "GBP", "EURO", "ILS")

MONTHS_IN_YEAR = 12
