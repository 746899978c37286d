from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from cost_manager.services import transfer
from cost_manager.services.ledger import LedgerStore
from cost_manager.services.rates.provider import RateProvider
from .deps import get_ledger, get_rate_provider

router = APIRouter(prefix="/backup", tags=["backup"])


@router.get("/export", summary="Download every cost plus the session rate table")
async def export_endpoint(
    ledger: LedgerStore = Depends(get_ledger),
    provider: RateProvider = Depends(get_rate_provider),
):
    payload = await transfer.export_snapshot(ledger, provider)
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d-%H-%M-%S")
    return JSONResponse(
        content=payload,
        headers={
            "Content-Disposition": f'attachment; filename="cost-manager-export-{stamp}.json"'
        },
    )


@router.post("/import", summary="Append costs from an export (rates best-effort)")
async def import_endpoint(
    payload: Any = Body(...),
    ledger: LedgerStore = Depends(get_ledger),
    provider: RateProvider = Depends(get_rate_provider),
):
    added = await transfer.import_snapshot(ledger, provider, payload)
    return {"added": added}
