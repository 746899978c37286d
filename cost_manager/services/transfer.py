"""Backup / restore of ledger state.

Artifact format::

    {"costs": [ExpenseRecord...], "rates": {"USD":..,"GBP":..,"EURO":..,"ILS":..}}

Import is strictly additive. Incoming ids are ignored, so a new id is always
assigned. A valid ``rates`` block becomes the inline rate table. An invalid
one is skipped and the records still import.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Dict, List, Tuple

from pydantic import ValidationError as PydanticValidationError

from cost_manager.core.errors import ValidationError
from cost_manager.models.cost import CostIn, RecordedDate
from cost_manager.models.rates import RateTable
from cost_manager.services.ledger import LedgerStore, validation_error_from
from cost_manager.services.rates.provider import RateProvider
from cost_manager.services.rates.source import SourceMode

logger = logging.getLogger("cost_manager.transfer")

# Older exports stored the date under "Date"
_DATE_KEYS = ("date", "Date")


async def export_snapshot(ledger: LedgerStore, provider: RateProvider) -> Dict[str, Any]:
    records = await ledger.query_all()
    payload: Dict[str, Any] = {"costs": [r.as_export() for r in records]}
    rates = await provider.session_rates()
    if rates is not None:
        payload["rates"] = rates.as_dict()
    return payload


def _recorded_date(raw: Mapping) -> RecordedDate:
    for key in _DATE_KEYS:
        value = raw.get(key)
        if isinstance(value, Mapping) and all(
            isinstance(value.get(p), int) and not isinstance(value.get(p), bool)
            for p in ("year", "month", "day")
        ):
            try:
                return RecordedDate(
                    year=value["year"], month=value["month"], day=value["day"]
                )
            except PydanticValidationError:
                break
    return RecordedDate.today()


def _split_payload(payload: Any) -> Tuple[Sequence, Any]:
    if isinstance(payload, Sequence) and not isinstance(payload, (str, bytes)):
        return payload, None
    if isinstance(payload, Mapping):
        items = payload.get("costs", payload.get("records", []))
        if items is None:
            items = []
        if not isinstance(items, Sequence) or isinstance(items, (str, bytes)):
            raise ValidationError("costs must be a list", field="costs")
        return items, payload.get("rates")
    raise ValidationError("import payload must be a list or an object", field="payload")


def _parse_items(items: Sequence) -> List[Tuple[CostIn, RecordedDate]]:
    parsed: List[Tuple[CostIn, RecordedDate]] = []
    for index, raw in enumerate(items):
        if not isinstance(raw, Mapping):
            raise ValidationError(f"costs.{index}: expected an object", field=f"costs.{index}")
        try:
            cost = CostIn(
                sum=raw.get("sum"),
                currency=raw.get("currency"),
                category=raw.get("category", ""),
                description=raw.get("description"),
            )
        except PydanticValidationError as e:
            raise validation_error_from(e, prefix=f"costs.{index}.") from e
        parsed.append((cost, _recorded_date(raw)))
    return parsed


async def import_snapshot(ledger: LedgerStore, provider: RateProvider, payload: Any) -> int:
    """Append every record in ``payload`` and return how many were added.

    All records are validated before the first write. Writes then happen one
    record per transaction, so a storage failure leaves a committed prefix.
    """
    items, rates = _split_payload(payload)
    parsed = _parse_items(items)
    added = 0
    for cost, recorded in parsed:
        await ledger.append(cost, recorded)
        added += 1

    if isinstance(rates, Mapping):
        try:
            table = RateTable(rates)
        except ValidationError as e:
            logger.info("ignoring imported rates: %s", e.message)
        else:
            await provider.set_source(SourceMode.INLINE, table)
    logger.debug("imported %d costs", added)
    return added
