"""Pydantic domain models for the Cost Manager ledger."""

from .constants import Currency, CURRENCY_CODES  # re-export
from .cost import CostIn, ExpenseRecord, RecordedDate
from .rates import RateTable

__all__ = [
    "Currency",
    "CURRENCY_CODES",
    "CostIn",
    "ExpenseRecord",
    "RecordedDate",
    "RateTable",
]
