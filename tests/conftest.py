"""Shared fixtures: a controllable clock, an in-memory store and a service."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from pos_ledger import LedgerService
from pos_ledger.schemas import INGREDIENTS, MENU, ORDERS, STOCK
from pos_ledger.store import InMemoryRecordStore
from tests.test_utils import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryRecordStore:
    """Store seeded with a small ledger: two flour prices, eggs, one recipe, one order and a price registry."""
    store = InMemoryRecordStore()
    store.seed(
        STOCK.name,
        STOCK.header_fields,
        [
            {"name": "Flour", "quantity": "1000", "price": "50", "user": "alice", "date": "2024-05-01T08:00:00.000Z"},
            {"name": "Egg", "quantity": "10", "price": "40", "user": "alice", "date": "2024-05-02T08:00:00.000Z"},
            {"name": "Flour", "quantity": "1000", "price": "80", "user": "bob", "date": "2024-06-01T08:00:00.000Z"},
        ],
    )
    store.seed(
        MENU.name,
        MENU.header_fields,
        [
            {
                "name": "Pancake",
                "price": "60",
                "ingredients": '[{"name": "Flour", "qty": 100}, {"name": "Egg", "qty": 2}]',
                "date": "2024-05-01T09:00:00.000Z",
            },
        ],
    )
    store.seed(
        ORDERS.name,
        ORDERS.header_fields,
        [
            {
                "items": '[{"name": "Pancake", "price": 60, "quantity": 2}]',
                "totalPrice": "120",
                "totalCost": "26",
                "date": "2024-05-03T12:00:00.000Z",
            },
        ],
    )
    store.seed(
        INGREDIENTS.name,
        INGREDIENTS.header_fields,
        [
            {"name": "Egg", "quantity": "10", "unit": "pcs", "price": "40", "user": "alice", "date": "2024-05-01T08:00:00.000Z"},
            {"name": "Egg", "quantity": "10", "unit": "pcs", "price": "60", "user": "bob", "date": "2024-06-01T08:00:00.000Z"},
            {"name": "Flour", "quantity": "1000", "unit": "g", "price": "70", "user": "alice", "date": "2024-05-15T08:00:00.000Z"},
        ],
    )
    return store


@pytest.fixture
def ledger(store: InMemoryRecordStore, clock: FakeClock) -> Iterator[LedgerService]:
    service = LedgerService(store, clock=clock, now=lambda: "2024-05-10T10:00:00.000Z")
    yield service
    service.close()
