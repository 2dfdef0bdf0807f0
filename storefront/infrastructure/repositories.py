import logging
from typing import List, Optional

from storefront.application.interfaces import (
    CatalogRepository, DocumentStore, OrderRepository,
    catalog_item_path, catalog_path, customer_path, customers_path, order_path, orders_path
)
from storefront.domain.exceptions import DocumentSchemaError
from storefront.domain.models import CatalogItem, Order, sort_most_recent_first
from storefront.infrastructure.schema import (
    catalog_item_from_document, catalog_item_to_document, order_from_document, order_to_document
)

logger = logging.getLogger(__name__)


class PendingWrite:
    def __init__(self, path: str, data: dict, merge: bool = False, expected_version: Optional[int] = None):
        self.path = path
        self.data = data
        self.merge = merge
        self.expected_version = expected_version


class DocumentOrderRepository(OrderRepository):
    """Заказы в customers/{ownerId}/orders/{orderId}. Записи копятся до commit"""

    def __init__(self, store: DocumentStore, writes: List[PendingWrite]):
        self._store = store
        self._writes = writes

    async def get_by_id(self, owner_id: str, order_id: str) -> Optional[Order]:
        snapshot = await self._store.get_document(order_path(owner_id, order_id))
        return order_from_document(snapshot) if snapshot else None

    async def list_for_owner(self, owner_id: str) -> List[Order]:
        orders = []
        for snapshot in await self._store.list_documents(orders_path(owner_id)):
            try:
                orders.append(order_from_document(snapshot))
            except DocumentSchemaError as e:
                logger.error(f"Пропущен заказ {snapshot.path}: {e}")
        return sort_most_recent_first(orders)

    async def list_owner_ids(self) -> List[str]:
        return [snapshot.id for snapshot in await self._store.list_documents(customers_path())]

    async def create(self, order: Order) -> None:
        # документ клиента нужен, чтобы админская подписка узнала о нем
        self._writes.append(PendingWrite(
            path=customer_path(order.owner_id),
            data={"ownerId": order.owner_id, "lastOrderAt": order.placed_at.isoformat()},
            merge=True
        ))
        self._writes.append(PendingWrite(
            path=order_path(order.owner_id, order.id),
            data=order_to_document(order),
            expected_version=0
        ))

    async def update(self, order: Order) -> None:
        self._writes.append(PendingWrite(
            path=order_path(order.owner_id, order.id),
            data=order_to_document(order),
            expected_version=order.version
        ))


class DocumentCatalogRepository(CatalogRepository):
    def __init__(self, store: DocumentStore, writes: List[PendingWrite]):
        self._store = store
        self._writes = writes

    async def get_by_id(self, item_id: str) -> Optional[CatalogItem]:
        snapshot = await self._store.get_document(catalog_item_path(item_id))
        return catalog_item_from_document(snapshot) if snapshot else None

    async def list_all(self) -> List[CatalogItem]:
        items = []
        for snapshot in await self._store.list_documents(catalog_path()):
            try:
                items.append(catalog_item_from_document(snapshot))
            except DocumentSchemaError as e:
                logger.error(f"Пропущен товар {snapshot.path}: {e}")
        return items

    async def update_stock(self, item: CatalogItem) -> None:
        document = catalog_item_to_document(item)
        self._writes.append(PendingWrite(
            path=catalog_item_path(item.id),
            data=document,
            expected_version=item.version
        ))

