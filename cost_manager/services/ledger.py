"""Append-only ledger of expense records.

Every write is one sqlite transaction, so an add is either fully committed
or absent. Blocking sqlite calls run in a worker thread; storage failures
surface as ``PersistenceError``.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Callable, Dict, List, Optional, TypeVar

import anyio
from pydantic import ValidationError as PydanticValidationError

from cost_manager.core.errors import PersistenceError, ValidationError
from cost_manager.db.dal import Database
from cost_manager.models.cost import CostIn, ExpenseRecord, RecordedDate

logger = logging.getLogger("cost_manager.ledger")

T = TypeVar("T")


def validation_error_from(exc: PydanticValidationError, prefix: str = "") -> ValidationError:
    """Flatten a pydantic error into the domain ``ValidationError``."""
    first = exc.errors()[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    field = f"{prefix}{loc}" if loc else (prefix.rstrip(".") or None)
    return ValidationError(f"{field}: {message}" if field else message, field=field)


def _row_to_record(row: Dict[str, Any]) -> ExpenseRecord:
    return ExpenseRecord(
        id=row["id"],
        sum=row["sum"],
        currency=row["currency"],
        category=row["category"],
        description=row.get("description") or "",
        date=RecordedDate(year=row["year"], month=row["month"], day=row["day"]),
    )


class LedgerStore:
    def __init__(self, db: Database):
        self._db = db

    async def _run_db(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await anyio.to_thread.run_sync(fn, *args)
        except sqlite3.Error as e:
            raise PersistenceError(f"ledger storage failed: {e}") from e

    async def add_record(
        self,
        sum: Any,
        currency: Any,
        category: Any,
        description: Optional[str] = None,
    ) -> ExpenseRecord:
        try:
            cost = CostIn(
                sum=sum, currency=currency, category=category, description=description
            )
        except PydanticValidationError as e:
            raise validation_error_from(e) from e
        return await self.append(cost, RecordedDate.today())

    async def append(self, cost: CostIn, recorded: RecordedDate) -> ExpenseRecord:
        """Persist an already validated cost with an explicit date.

        Used by ``add_record`` (today) and by bulk import (supplied dates).
        """
        row = await self._run_db(
            self._db.insert_cost,
            cost.sum,
            cost.currency.value,
            cost.category,
            cost.description or "",
            recorded.year,
            recorded.month,
            recorded.day,
        )
        record = _row_to_record(row)
        logger.debug("cost %s added (%s %s)", record.id, record.sum, record.currency.value)
        return record

    async def query_all(self) -> List[ExpenseRecord]:
        rows = await self._run_db(self._db.list_costs)
        return [_row_to_record(r) for r in rows]

    async def count(self) -> int:
        return await self._run_db(self._db.count_costs)
