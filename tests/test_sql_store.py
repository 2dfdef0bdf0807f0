"""Хранилище документов на SQLAlchemy (SQLite файл)."""
import asyncio
from datetime import datetime, timezone

import pytest

from storefront.application.get_order import GetOrderUseCase, ListAllOrdersUseCase
from storefront.application.place_order import PlaceOrderDTO, PlaceOrderUseCase
from storefront.application.update_line import LineTarget, UpdateLineStatusUseCase
from storefront.database import create_session_factory, create_tables
from storefront.domain.exceptions import ConcurrentModificationError
from storefront.domain.models import LineStatus, Order, OrderLine, PaymentMethod, Selection
from storefront.infrastructure.schema import order_to_document
from storefront.infrastructure.sql_store import SQLAlchemyDocumentStore
from storefront.infrastructure.subscriptions import OrderFeed
from storefront.infrastructure.unit_of_work import UnitOfWork


@pytest.fixture
async def session_factory(tmp_path):
    engine, factory = create_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await create_tables(engine)
    yield factory
    await engine.dispose()


@pytest.fixture
async def sql_store(session_factory):
    store = SQLAlchemyDocumentStore(session_factory)
    await store.set_document("catalog/X", {
        "schemaVersion": 2, "name": "Shirt", "price": 100.0, "stockQuantity": 5
    })
    return store


class TestSQLAlchemyDocumentStore:
    async def test_set_and_get(self, sql_store):
        version = await sql_store.set_document("customers/u1", {"ownerId": "u1"})
        snapshot = await sql_store.get_document("customers/u1")
        assert version == 1
        assert snapshot.data == {"ownerId": "u1"}
        assert snapshot.version == 1

    async def test_missing_document(self, sql_store):
        assert await sql_store.get_document("customers/nobody") is None

    async def test_merge_keeps_other_fields(self, sql_store):
        await sql_store.set_document("catalog/X", {"price": 80.0}, merge=True)
        snapshot = await sql_store.get_document("catalog/X")
        assert snapshot.data["price"] == 80.0
        assert snapshot.data["name"] == "Shirt"
        assert snapshot.version == 2

    async def test_stale_version_is_rejected(self, sql_store):
        await sql_store.set_document("catalog/X", {"price": 80.0}, merge=True, expected_version=1)
        with pytest.raises(ConcurrentModificationError) as error:
            await sql_store.set_document("catalog/X", {"price": 70.0}, merge=True, expected_version=1)
        assert error.value.actual == 2

    async def test_create_only_when_absent(self, sql_store):
        with pytest.raises(ConcurrentModificationError):
            await sql_store.set_document("catalog/X", {"name": "Other"}, expected_version=0)

    async def test_list_and_delete(self, sql_store):
        await sql_store.set_document("catalog/Y", {"schemaVersion": 2, "name": "Hat", "price": 1, "stockQuantity": 1})
        assert {s.id for s in await sql_store.list_documents("catalog")} == {"X", "Y"}

        await sql_store.delete_document("catalog/Y")
        assert [s.id for s in await sql_store.list_documents("catalog")] == ["X"]


class TestOrdersOnSQL:
    async def test_order_lifecycle(self, sql_store):
        uow = UnitOfWork(sql_store)
        order_id = await PlaceOrderUseCase(uow)(PlaceOrderDTO(
            owner_id="u1",
            payment_method=PaymentMethod.CARD,
            selections=[Selection(catalog_item_id="X", quantity=7)]
        ))

        stock = await sql_store.get_document("catalog/X")
        assert stock.data["stockQuantity"] == 0

        await UpdateLineStatusUseCase(uow)(
            LineTarget(owner_id="u1", order_id=order_id, catalog_item_id="X"), LineStatus.CANCELLED
        )
        order = await GetOrderUseCase(uow)("u1", order_id)
        assert order.line_items[0].status == LineStatus.CANCELLED
        assert order.line_items[0].approved is False
        assert [o.id for o in await ListAllOrdersUseCase(uow)()] == [order_id]

    async def test_subscribers_in_process_are_notified(self, sql_store):
        async with await OrderFeed(sql_store).subscribe("u1") as subscription:
            assert await subscription.next(timeout=1) == []

            order_id = await PlaceOrderUseCase(UnitOfWork(sql_store))(PlaceOrderDTO(
                owner_id="u1",
                payment_method=PaymentMethod.WALLET,
                selections=[Selection(catalog_item_id="X", quantity=1)]
            ))

            orders = await subscription.next(timeout=1)
            assert [order.id for order in orders] == [order_id]
        assert sql_store.listener_count() == 0


def order_document(order_id: str) -> dict:
    placed_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    return order_to_document(Order(
        id=order_id,
        owner_id="u1",
        payment_method=PaymentMethod.CARD,
        placed_at=placed_at,
        line_items=[OrderLine(catalog_item_id="X", name="Shirt", unit_price=100.0, quantity=1, saved_at=placed_at)]
    ))


class WriteDuringFirstListingStore(SQLAlchemyDocumentStore):
    """Первое чтение коллекции возвращает данные только после того, как чужая запись в нее закоммичена"""

    def __init__(self, session_factory, path: str, data: dict):
        super().__init__(session_factory)
        self._path = path
        self._data = data
        self._committed = asyncio.Event()
        self.writer = None

    async def list_documents(self, collection):
        snapshots = await super().list_documents(collection)
        if self.writer is None:
            self.writer = asyncio.create_task(self.set_document(self._path, self._data))
            await self._committed.wait()
        return snapshots

    async def _notify(self, collection):
        self._committed.set()
        await super()._notify(collection)


class TestSQLSubscriptions:
    async def test_write_during_initial_listing_is_delivered(self, session_factory):
        store = WriteDuringFirstListingStore(session_factory, "customers/u1/orders/o1", order_document("o1"))

        async with await OrderFeed(store).subscribe("u1") as subscription:
            await store.writer
            assert await store.get_document("customers/u1/orders/o1") is not None
            assert [order.id for order in subscription.latest] == ["o1"]

    async def test_concurrent_writes_converge(self, sql_store):
        async with await OrderFeed(sql_store).subscribe("u1") as subscription:
            await asyncio.gather(*(
                sql_store.set_document(f"customers/u1/orders/o{i}", order_document(f"o{i}"))
                for i in range(3)
            ))
            assert {order.id for order in subscription.latest} == {"o0", "o1", "o2"}
