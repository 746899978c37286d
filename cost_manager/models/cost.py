from __future__ import annotations

import math
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import Currency


class RecordedDate(BaseModel):
    """Calendar date stored with every record as separate parts."""

    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=1, le=9999)
    month: int = Field(..., ge=1, le=12)
    day: int = Field(..., ge=1, le=31)

    @model_validator(mode="after")
    def real_calendar_day(self) -> "RecordedDate":
        # Rejects e.g. 2024-02-30 which passes the per-field bounds
        date(self.year, self.month, self.day)
        return self

    @classmethod
    def from_date(cls, d: date) -> "RecordedDate":
        return cls(year=d.year, month=d.month, day=d.day)

    @classmethod
    def today(cls) -> "RecordedDate":
        return cls.from_date(date.today())

    def as_date(self) -> date:
        return date(self.year, self.month, self.day)


class CostIn(BaseModel):
    sum: float
    currency: Currency
    category: str
    description: Optional[str] = None

    @field_validator("sum", mode="before")
    @classmethod
    def finite_sum(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("sum must be a number")
        if isinstance(v, (int, float)):
            try:
                finite = math.isfinite(v)
            except OverflowError:
                finite = False
            if not finite:
                raise ValueError("sum must be finite")
        return v

    @field_validator("sum")
    @classmethod
    def finite_after_coercion(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("sum must be finite")
        return v

    @field_validator("currency", mode="before")
    @classmethod
    def known_currency(cls, v: Any) -> Currency:
        return Currency.parse(v)

    @field_validator("description")
    @classmethod
    def normalize_description(cls, v: Optional[str]) -> str:
        return v if v is not None else ""


class ExpenseRecord(CostIn):
    """A stored ledger entry. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    id: int
    description: str = ""
    date: RecordedDate

    def as_export(self) -> dict:
        return {
            "id": self.id,
            "sum": self.sum,
            "currency": self.currency.value,
            "category": self.category,
            "description": self.description,
            "date": self.date.model_dump(),
        }
