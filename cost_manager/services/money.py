"""Money / rounding helpers.

Centralized so reports, conversion, and the API layer use identical
rounding semantics (half away from zero, two decimals).
"""

from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]

CENT = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps the shortest repr, so 1.005 stays 1.005 rather than 1.00499...
    return Decimal(str(value))


def quantize2(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round2(value: Number) -> float:
    return float(quantize2(value))
