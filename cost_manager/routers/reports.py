from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from cost_manager.models.constants import Currency
from cost_manager.services import aggregator
from cost_manager.services.ledger import LedgerStore
from cost_manager.services.rates.provider import RateProvider
from .deps import get_ledger, get_rate_provider

router = APIRouter(prefix="/reports", tags=["reports"])


class ReportLineOut(BaseModel):
    sum: float
    currency: Currency
    category: str
    description: str
    day: int


class ReportTotalOut(BaseModel):
    currency: Currency
    total: float


class MonthlyReportOut(BaseModel):
    year: int
    month: int
    costs: List[ReportLineOut]
    total: ReportTotalOut


class CategoryTotalOut(BaseModel):
    category: str
    total: float


class MonthTotalOut(BaseModel):
    month: int
    total: float


@router.get("/monthly", response_model=MonthlyReportOut, summary="Monthly report")
async def monthly_report_endpoint(
    year: int = Query(..., ge=1, le=9999),
    month: int = Query(..., ge=1, le=12),
    currency: Currency = Query(Currency.USD, description="Target currency"),
    provider: RateProvider = Depends(get_rate_provider),
    ledger: LedgerStore = Depends(get_ledger),
):
    snapshot = await aggregator.take_snapshot(provider, ledger)
    return aggregator.monthly_report(snapshot, year, month, currency).as_dict()


@router.get(
    "/categories",
    response_model=List[CategoryTotalOut],
    summary="Totals per category for one month",
)
async def category_totals_endpoint(
    year: int = Query(..., ge=1, le=9999),
    month: int = Query(..., ge=1, le=12),
    currency: Currency = Query(Currency.USD, description="Target currency"),
    provider: RateProvider = Depends(get_rate_provider),
    ledger: LedgerStore = Depends(get_ledger),
):
    snapshot = await aggregator.take_snapshot(provider, ledger)
    return [
        item.as_dict()
        for item in aggregator.category_totals(snapshot, year, month, currency)
    ]


@router.get(
    "/yearly", response_model=List[MonthTotalOut], summary="Totals per month for a year"
)
async def monthly_totals_endpoint(
    year: int = Query(..., ge=1, le=9999),
    currency: Currency = Query(Currency.USD, description="Target currency"),
    provider: RateProvider = Depends(get_rate_provider),
    ledger: LedgerStore = Depends(get_ledger),
):
    snapshot = await aggregator.take_snapshot(provider, ledger)
    return [item.as_dict() for item in aggregator.monthly_totals(snapshot, year, currency)]
