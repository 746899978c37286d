from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Mapping

from cost_manager.core.errors import ConversionError
from cost_manager.services.money import Number, to_decimal

"""Currency conversion against a rate table.

Rates are "units of currency per 1 USD", so converting goes through the base:
    amount / rate[from] * rate[to]
Arithmetic is Decimal; callers decide when (and whether) to round.
"""


def _code(currency: object) -> str:
    return getattr(currency, "value", currency)  # type: ignore[return-value]


def require_rate(rates: Mapping[str, float], code: str) -> Decimal:
    raw = rates.get(code)
    if raw is None:
        raise ConversionError(f"Missing rate for {code}", field=code)
    try:
        value = to_decimal(raw)
    except (InvalidOperation, TypeError, ValueError):
        raise ConversionError(f"Unusable rate for {code}", field=code) from None
    if not value.is_finite() or value <= 0:
        raise ConversionError(f"Unusable rate for {code}", field=code)
    return value


def convert(
    amount: Number, from_currency: object, to_currency: object, rates: Mapping[str, float]
) -> Decimal:
    src, dst = _code(from_currency), _code(to_currency)
    value = to_decimal(amount)
    # Both codes must be present even for identity conversions
    rate_from = require_rate(rates, src)
    rate_to = require_rate(rates, dst)
    if src == dst:
        return value
    return value / rate_from * rate_to
