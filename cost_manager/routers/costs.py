from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from cost_manager.models.cost import ExpenseRecord
from cost_manager.services.ledger import LedgerStore
from .deps import get_ledger

router = APIRouter(prefix="/costs", tags=["costs"])


# The ledger validates and raises the domain ValidationError (400).
class CostCreatePayload(BaseModel):
    sum: Any = None
    currency: Any = None
    category: Any = None
    description: Optional[str] = None


@router.post(
    "", response_model=ExpenseRecord, status_code=201, summary="Record an expense"
)
async def create_cost(payload: CostCreatePayload, ledger: LedgerStore = Depends(get_ledger)):
    return await ledger.add_record(
        payload.sum, payload.currency, payload.category, payload.description
    )


@router.get("", response_model=List[ExpenseRecord], summary="List every stored expense")
async def list_costs(ledger: LedgerStore = Depends(get_ledger)):
    return await ledger.query_all()
