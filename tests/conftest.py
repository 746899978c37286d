"""Shared pytest fixtures: temp sqlite database and a mocked rates endpoint."""

import asyncio
from pathlib import Path
from typing import Any, Dict, List

import httpx
import pytest

from cost_manager.core.config import Settings
from cost_manager.db.dal import Database
from cost_manager.db.migrate import apply_migrations
from cost_manager.services.ledger import LedgerStore
from cost_manager.services.rates.provider import RateProvider

RATES_URL = "https://rates.example.test/rates.json"
RATES = {"USD": 1, "GBP": 1.8, "EURO": 0.7, "ILS": 3.4}


def run(coro):
    return asyncio.run(coro)


class RatesServer:
    """httpx handler that serves a rate table and records every request."""

    def __init__(self, body: Any = None, status_code: int = 200):
        self.body = dict(RATES) if body is None else body
        self.status_code = status_code
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.body, (bytes, str)):
            return httpx.Response(self.status_code, content=self.body)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def calls(self) -> int:
        return len(self.requests)


def refuse_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected network access: {request.url}")


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    path = tmp_path / "costs.sqlite3"
    apply_migrations(path)
    return path


@pytest.fixture
def db(db_path: Path) -> Database:
    return Database(db_path)


@pytest.fixture
def server() -> RatesServer:
    return RatesServer()


@pytest.fixture
def provider(db: Database, server: RatesServer) -> RateProvider:
    return RateProvider(db, default_url=RATES_URL, retries=0, transport=server.transport)


@pytest.fixture
def ledger(db: Database) -> LedgerStore:
    return LedgerStore(db)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        data_dir=tmp_path,
        db_path=tmp_path / "api.sqlite3",
        default_rates_url=RATES_URL,
        http_retries=0,
        prime_rates_on_startup=False,
    )


def rates(**overrides: float) -> Dict[str, float]:
    table = dict(RATES)
    table.update(overrides)
    return table
