"""Живые подписки на заказы и каталог поверх слушателей хранилища.

Гарантия одна: побеждает последнее полное состояние. Промежуточные
снимки могут быть пропущены, итоговое состояние сходится.
"""
import asyncio
import logging
from functools import partial
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from storefront.application.interfaces import (
    DocumentSnapshot, DocumentStore, catalog_path, customers_path, orders_path
)
from storefront.domain.exceptions import DocumentSchemaError
from storefront.domain.models import CatalogItem, Order, sort_most_recent_first
from storefront.infrastructure.schema import catalog_item_from_document, order_from_document

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription(Generic[T]):
    """Асинхронный поток снимков. Новый снимок заменяет непрочитанный.

    Подписку нужно отменить (cancel или выход из async with), иначе
    слушатели хранилища продолжат работать.
    """

    def __init__(self):
        self._latest: Optional[T] = None
        self._pending = False
        self._cancelled = False
        self._changed = asyncio.Event()
        self._finalizers: List[Callable[[], None]] = []

    @property
    def latest(self) -> Optional[T]:
        return self._latest

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def publish(self, value: T) -> None:
        if self._cancelled:
            return
        self._latest = value
        self._pending = True
        self._changed.set()

    def add_finalizer(self, finalizer: Callable[[], None]) -> None:
        if self._cancelled:
            finalizer()
        else:
            self._finalizers.append(finalizer)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._changed.set()
        while self._finalizers:
            self._finalizers.pop()()

    def __aiter__(self):
        return self

    async def __anext__(self) -> T:
        while True:
            if self._cancelled:
                raise StopAsyncIteration
            if self._pending:
                self._pending = False
                return self._latest
            self._changed.clear()
            await self._changed.wait()

    async def next(self, timeout: Optional[float] = None) -> T:
        return await asyncio.wait_for(self.__anext__(), timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.cancel()


class SubscriptionRegistry:
    """Отменяемые подписки по ключу (ownerId для админской агрегации)"""

    def __init__(self):
        self._handles: Dict[str, Callable[[], None]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def keys(self) -> List[str]:
        return list(self._handles)

    def add(self, key: str, cancel: Callable[[], None]) -> None:
        self.remove(key)
        self._handles[key] = cancel

    def remove(self, key: str) -> None:
        cancel = self._handles.pop(key, None)
        if cancel is not None:
            cancel()

    def close(self) -> None:
        for key in self.keys():
            self.remove(key)


def _decode_orders(snapshots: List[DocumentSnapshot]) -> List[Order]:
    orders = []
    for snapshot in snapshots:
        try:
            orders.append(order_from_document(snapshot))
        except DocumentSchemaError as e:
            logger.error(f"Пропущен заказ {snapshot.path}: {e}")
    return sort_most_recent_first(orders)


def _decode_catalog(snapshots: List[DocumentSnapshot]) -> List[CatalogItem]:
    items = []
    for snapshot in snapshots:
        try:
            items.append(catalog_item_from_document(snapshot))
        except DocumentSchemaError as e:
            logger.error(f"Пропущен товар {snapshot.path}: {e}")
    return items


class _OrderFanIn:
    """Одна подписка на заказы каждого клиента, сведенные в один поток.

    Список клиентов тоже живой: новый клиент получает подписку, удаленный
    теряет ее вместе со своими заказами в общем снимке.
    """

    def __init__(self, store: DocumentStore):
        self._store = store
        self._registry = SubscriptionRegistry()
        self._orders_by_owner: Dict[str, List[Order]] = {}
        self._lock = asyncio.Lock()
        self.subscription: Subscription[List[Order]] = Subscription()

    async def start(self) -> Subscription[List[Order]]:
        self.subscription.add_finalizer(self._registry.close)
        registration = await self._store.subscribe(customers_path(), self._on_customers)
        self.subscription.add_finalizer(registration.remove)
        return self.subscription

    async def _on_customers(self, snapshots: List[DocumentSnapshot]) -> None:
        async with self._lock:
            if self.subscription.cancelled:
                return
            owner_ids = [snapshot.id for snapshot in snapshots]

            for owner_id in self._registry.keys():
                if owner_id not in owner_ids:
                    self._registry.remove(owner_id)
                    self._orders_by_owner.pop(owner_id, None)
                    logger.info(f"Подписка на заказы клиента {owner_id} снята")

            for owner_id in owner_ids:
                if owner_id in self._registry:
                    continue
                registration = await self._store.subscribe(
                    orders_path(owner_id), partial(self._on_orders, owner_id)
                )
                if self.subscription.cancelled:
                    registration.remove()
                    return
                self._registry.add(owner_id, registration.remove)
                logger.info(f"Подписка на заказы клиента {owner_id} добавлена")

            self._publish()

    async def _on_orders(self, owner_id: str, snapshots: List[DocumentSnapshot]) -> None:
        if self.subscription.cancelled:
            return
        self._orders_by_owner[owner_id] = _decode_orders(snapshots)
        self._publish()

    def _publish(self) -> None:
        orders = [order for orders in self._orders_by_owner.values() for order in orders]
        self.subscription.publish(sort_most_recent_first(orders))


class OrderFeed:
    def __init__(self, store: DocumentStore):
        self._store = store

    async def subscribe(self, owner_id: str) -> Subscription[List[Order]]:
        """Все заказы клиента при каждом изменении любого из них"""
        subscription: Subscription[List[Order]] = Subscription()

        async def on_orders(snapshots: List[DocumentSnapshot]) -> None:
            subscription.publish(_decode_orders(snapshots))

        registration = await self._store.subscribe(orders_path(owner_id), on_orders)
        subscription.add_finalizer(registration.remove)
        return subscription

    async def subscribe_all(self) -> Subscription[List[Order]]:
        """Заказы всех клиентов одним потоком (админка)"""
        return await _OrderFanIn(self._store).start()


class CatalogFeed:
    def __init__(self, store: DocumentStore):
        self._store = store

    async def subscribe(self) -> Subscription[List[CatalogItem]]:
        subscription: Subscription[List[CatalogItem]] = Subscription()

        async def on_catalog(snapshots: List[DocumentSnapshot]) -> None:
            subscription.publish(_decode_catalog(snapshots))

        registration = await self._store.subscribe(catalog_path(), on_catalog)
        subscription.add_finalizer(registration.remove)
        return subscription
