from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Mapping, Sequence, Tuple, TYPE_CHECKING

from cost_manager.core.errors import ValidationError
from cost_manager.models.constants import MONTHS_IN_YEAR, Currency
from cost_manager.models.cost import ExpenseRecord
from cost_manager.services.money import quantize2, round2
from cost_manager.services.rates.conversion import convert, require_rate

if TYPE_CHECKING:  # pragma: no cover
    from cost_manager.services.ledger import LedgerStore
    from cost_manager.services.rates.provider import RateProvider

"""Currency-normalized views over the ledger.

Scopes implemented:
    - Monthly report (per-record lines + grand total)
    - Category totals for one month
    - Month totals across a year (always 12 entries)

Design notes:
    Every view is a pure function of a ReportSnapshot: one rate table and one
    full record scan, both fixed before computing starts. Amounts stay Decimal
    and unrounded; the report total is the only value rounded here (sum first,
    round once). Category and month totals are rounded only by ``as_dict``.
    A missing rate fails the whole call with ConversionError.
"""


@dataclass(frozen=True)
class ReportSnapshot:
    rates: Mapping[str, float]
    records: Tuple[ExpenseRecord, ...]


async def take_snapshot(provider: "RateProvider", ledger: "LedgerStore") -> ReportSnapshot:
    """One rate acquisition and one ledger scan per aggregate request."""
    rates = await provider.get_active_rates()
    records = await ledger.query_all()
    return ReportSnapshot(rates=rates, records=tuple(records))


def _target(currency: object) -> Currency:
    try:
        return Currency.parse(currency)
    except ValueError as e:
        raise ValidationError(str(e), field="currency") from None


def _check_period(year: int, month: int | None = None) -> None:
    if not isinstance(year, int) or isinstance(year, bool) or not 1 <= year <= 9999:
        raise ValidationError("year must be an integer between 1 and 9999", field="year")
    if month is not None and (
        not isinstance(month, int) or isinstance(month, bool) or not 1 <= month <= 12
    ):
        raise ValidationError("month must be an integer between 1 and 12", field="month")


def _in_month(records: Sequence[ExpenseRecord], year: int, month: int) -> List[ExpenseRecord]:
    return [r for r in records if r.date.year == year and r.date.month == month]


# ---------------- Monthly report -----------------
@dataclass(frozen=True)
class ReportLine:
    day: int
    category: str
    description: str
    sum: Decimal
    currency: Currency


@dataclass(frozen=True)
class MonthlyReport:
    year: int
    month: int
    currency: Currency
    costs: Tuple[ReportLine, ...]
    total: Decimal

    def as_dict(self) -> Dict[str, object]:
        return {
            "year": self.year,
            "month": self.month,
            "costs": [
                {
                    "sum": round2(line.sum),
                    "currency": line.currency.value,
                    "category": line.category,
                    "description": line.description,
                    "day": line.day,
                }
                for line in self.costs
            ],
            "total": {"currency": self.currency.value, "total": float(self.total)},
        }


def monthly_report(
    snapshot: ReportSnapshot, year: int, month: int, target_currency: object
) -> MonthlyReport:
    """Return per-record converted lines for a month and their grand total.

    The total is sum-then-round: unrounded converted amounts are added and the
    result is rounded once, half away from zero, to two decimals.
    """
    _check_period(year, month)
    target = _target(target_currency)
    require_rate(snapshot.rates, target.value)
    lines = tuple(
        ReportLine(
            day=r.date.day,
            category=r.category,
            description=r.description,
            sum=convert(r.sum, r.currency, target, snapshot.rates),
            currency=target,
        )
        for r in _in_month(snapshot.records, year, month)
    )
    total = quantize2(sum((line.sum for line in lines), Decimal(0)))
    return MonthlyReport(year=year, month=month, currency=target, costs=lines, total=total)


# ---------------- Category totals -----------------
@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total: Decimal

    def as_dict(self) -> Dict[str, object]:
        return {"category": self.category, "total": round2(self.total)}


def category_totals(
    snapshot: ReportSnapshot, year: int, month: int, target_currency: object
) -> List[CategoryTotal]:
    """Group a month's records by exact category string (case-sensitive).

    Output order carries no meaning.
    """
    _check_period(year, month)
    target = _target(target_currency)
    require_rate(snapshot.rates, target.value)
    groups: Dict[str, Decimal] = {}
    for r in _in_month(snapshot.records, year, month):
        amount = convert(r.sum, r.currency, target, snapshot.rates)
        groups[r.category] = groups.get(r.category, Decimal(0)) + amount
    return [CategoryTotal(category=c, total=t) for c, t in groups.items()]


# ---------------- Month totals -----------------
@dataclass(frozen=True)
class MonthTotal:
    month: int
    total: Decimal

    def as_dict(self) -> Dict[str, object]:
        return {"month": self.month, "total": round2(self.total)}


def monthly_totals(
    snapshot: ReportSnapshot, year: int, target_currency: object
) -> List[MonthTotal]:
    """Return exactly 12 entries (January..December); empty months total 0."""
    _check_period(year)
    target = _target(target_currency)
    require_rate(snapshot.rates, target.value)
    totals: Dict[int, Decimal] = {m: Decimal(0) for m in range(1, MONTHS_IN_YEAR + 1)}
    for r in snapshot.records:
        if r.date.year != year:
            continue
        totals[r.date.month] += convert(r.sum, r.currency, target, snapshot.rates)
    return [MonthTotal(month=m, total=totals[m]) for m in range(1, MONTHS_IN_YEAR + 1)]
