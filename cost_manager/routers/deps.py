from __future__ import annotations

from fastapi import Request

from cost_manager.services.ledger import LedgerStore
from cost_manager.services.rates.provider import RateProvider

"""FastAPI dependencies resolving the per-app service instances.

``create_app`` builds one RateProvider and one LedgerStore and keeps them on
``app.state``; routes reach them only through these helpers.
"""


def get_rate_provider(request: Request) -> RateProvider:
    return request.app.state.rate_provider


def get_ledger(request: Request) -> LedgerStore:
    return request.app.state.ledger
