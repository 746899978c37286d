from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from cost_manager.services.rates.provider import RateProvider
from .deps import get_rate_provider

"""Rates router: active table, source configuration and manual refresh.

Endpoints:
    - GET  /rates          -> active rate table (fetches once per session in url mode)
    - GET  /rates/source   -> persisted source configuration
    - PUT  /rates/source   -> switch source {mode: url|inline, url?, rates?}
    - POST /rates/refresh  -> drop session cache and refetch from configured URL
"""

router = APIRouter(prefix="/rates", tags=["rates"])


class SourceUpdatePayload(BaseModel):
    mode: str = Field(..., description="'url' or 'inline'")
    url: Optional[str] = Field(None, description="Rates JSON URL (url mode)")
    rates: Optional[Dict[str, Any]] = Field(
        None, description='Inline table, e.g. {"USD":1,"GBP":1.8,"EURO":0.7,"ILS":3.4}'
    )


@router.get("", summary="Active rate table")
async def active_rates(provider: RateProvider = Depends(get_rate_provider)):
    table = await provider.get_active_rates()
    return table.as_dict()


@router.get("/source", summary="Current rate source configuration")
async def get_source(provider: RateProvider = Depends(get_rate_provider)):
    source = await provider.current_source()
    return source.as_dict()


@router.put("/source", summary="Switch rate source")
async def set_source(
    payload: SourceUpdatePayload, provider: RateProvider = Depends(get_rate_provider)
):
    config = payload.rates if payload.mode != "url" else payload.url
    source = await provider.set_source(payload.mode, config)
    return source.as_dict()


@router.post("/refresh", summary="Refetch rates from the configured URL")
async def refresh_rates(provider: RateProvider = Depends(get_rate_provider)):
    table = await provider.refresh()
    return {"status": "ok", "rates": table.as_dict()}
