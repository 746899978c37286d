from __future__ import annotations

import math
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Dict, Iterator

from cost_manager.core.errors import ValidationError
from .constants import CURRENCY_CODES


def _coerce_rate(raw: Any) -> float | None:
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.strip()
    elif not isinstance(raw, (int, float)):
        return None
    try:
        value = float(raw)
    except (ValueError, OverflowError):
        # Unparseable text, or an integer too large for a float
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


class RateTable(Mapping):
    """Validated mapping of every supported currency to units per 1 USD.

    Construction is all-or-nothing: a single bad entry rejects the whole table.
    """

    __slots__ = ("_rates",)

    def __init__(self, rates: Mapping[str, Any]):
        if not isinstance(rates, Mapping):
            raise ValidationError("rate table must be a JSON object")
        checked: Dict[str, float] = {}
        for code in CURRENCY_CODES:
            value = _coerce_rate(rates.get(code))
            if value is None:
                raise ValidationError(f"Invalid rate for {code}", field=code)
            checked[code] = value
        self._rates = MappingProxyType(checked)

    def __getitem__(self, code: str) -> float:
        key = getattr(code, "value", code)
        return self._rates[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rates)

    def __len__(self) -> int:
        return len(self._rates)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self._rates) == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._rates.items())))

    def __repr__(self) -> str:
        return f"RateTable({dict(self._rates)!r})"

    def as_dict(self) -> Dict[str, float]:
        return dict(self._rates)
