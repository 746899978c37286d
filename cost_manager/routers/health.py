from fastapi import APIRouter, Depends

from cost_manager.services.ledger import LedgerStore
from cost_manager.services.rates.provider import RateProvider
from .deps import get_ledger, get_rate_provider

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness and rate cache status")
async def health(
    ledger: LedgerStore = Depends(get_ledger),
    provider: RateProvider = Depends(get_rate_provider),
):
    source = await provider.current_source()
    return {
        "status": "ok",
        "costs": await ledger.count(),
        "rates_source": source.mode.value,
        "rates_loaded": provider.cached_rates() is not None,
    }
