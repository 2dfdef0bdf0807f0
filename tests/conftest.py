from datetime import datetime, timedelta, timezone

import pytest

from storefront.domain.exceptions import StoreUnavailableError
from storefront.infrastructure.memory_store import InMemoryDocumentStore, InMemoryKeyValueStore
from storefront.infrastructure.unit_of_work import UnitOfWork


def catalog_document(name: str, price: float, stock: int, **extra) -> dict:
    data = {
        "schemaVersion": 2,
        "name": name,
        "price": price,
        "stockQuantity": stock,
        "colorOptions": ["red", "blue"],
        "sizeOptions": ["S", "M"],
        "category": "tops",
        "description": "",
    }
    data.update(extra)
    return data


class FakeClock:
    """Каждый вызов на секунду позже предыдущего"""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


@pytest.fixture
def store():
    return InMemoryDocumentStore({
        "catalog/X": catalog_document("Shirt", 100.0, 5),
        "catalog/Y": catalog_document("Hat", 40.0, 4),
        "catalog/Z": catalog_document("Socks", 10.0, 50),
    })


@pytest.fixture
def uow(store):
    return UnitOfWork(store)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def users():
    return InMemoryKeyValueStore({
        "users": {
            "admin-1": {"role": "admin", "email": "admin@shop.test"},
            "u1": {"role": "customer", "email": "u1@shop.test"},
            "u2": {"email": "u2@shop.test"},
        }
    })


@pytest.fixture
def failing_writes(store, monkeypatch):
    """После вызова fail() любая запись в хранилище падает как при сбое сети"""
    async def set_document(path, data, merge=False, expected_version=None):
        raise StoreUnavailableError(f"Хранилище недоступно: запись {path}")

    def fail():
        monkeypatch.setattr(store, "set_document", set_document)

    return fail
