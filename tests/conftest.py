"""
Shared pytest fixtures for the URP engine tests.

This module provides:
- A seeded in-memory record store (tenant ``acme`` from fixtures/acme.json,
  plus a one-account ``umbrella`` tenant for isolation checks)
- A fake clock and a cache driven by it, so TTL tests never sleep
- An isolated registry holding the built-in recipes, and an executor

Usage:
    def test_something(executor):
        result = executor.execute("trial_balance", "acme", {"fiscalYear": 2024})
"""

from __future__ import annotations

import datetime
from decimal import Decimal
from pathlib import Path

import pytest

from urp.core.cache import InMemoryCache
from urp.core.logging import configure_logging
from urp.core.models import Entity, Transaction, TransactionLine
from urp.core.settings import UrpSettings
from urp.recipes.executor import RecipeExecutor
from urp.recipes.library import default_registry
from urp.store import InMemoryRecordStore, load_fixture_file

FIXTURES_DIR = Path(__file__).parent / "fixtures"
ACME_FIXTURE = FIXTURES_DIR / "acme.json"


class FakeClock:
    """Monotonic clock stand-in that only moves when told to."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _logging():
    """Every test starts from the same structlog configuration."""
    configure_logging(level="INFO", json_format=True)


@pytest.fixture
def acme_fixture_path() -> Path:
    return ACME_FIXTURE


@pytest.fixture
def store() -> InMemoryRecordStore:
    """In-memory store seeded with the acme tenant and a small umbrella tenant."""
    s = InMemoryRecordStore()
    load_fixture_file(s, ACME_FIXTURE)
    s.add_entity(
        Entity(
            id="u1000",
            org_id="umbrella",
            type="account",
            name="Umbrella Cash",
            code="1000",
            identifier_code="UMBRELLA.FINANCE.GL.ACCOUNT.ASSET.v1",
        )
    )
    s.add_transaction(
        Transaction(
            id="u-je-1",
            org_id="umbrella",
            type="journal_entry",
            date=datetime.date(2024, 6, 1),
            lines=(TransactionLine(entity_id="u1000", line_amount=Decimal("999")),),
        )
    )
    return s


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> InMemoryCache:
    return InMemoryCache(max_size=100, default_ttl_seconds=300, clock=clock)


@pytest.fixture
def settings() -> UrpSettings:
    return UrpSettings(_env_file=None, default_cache_ttl=300)


@pytest.fixture
def registry(settings: UrpSettings):
    """Fresh registry with the built-in recipes; never shared between tests."""
    return default_registry(settings)


@pytest.fixture
def executor(registry, store, cache, settings) -> RecipeExecutor:
    return RecipeExecutor(registry, store, cache=cache, settings=settings)
