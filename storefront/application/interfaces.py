from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from storefront.domain.models import CatalogItem, Order


@dataclass(frozen=True)
class DocumentSnapshot:
    """Документ хранилища на момент чтения. version == 0: документа нет"""
    path: str
    data: dict = field(default_factory=dict)
    version: int = 0

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def collection(self) -> str:
        return collection_of(self.path)


def collection_of(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


def customers_path() -> str:
    return "customers"


def customer_path(owner_id: str) -> str:
    return f"customers/{owner_id}"


def orders_path(owner_id: str) -> str:
    return f"customers/{owner_id}/orders"


def order_path(owner_id: str, order_id: str) -> str:
    return f"customers/{owner_id}/orders/{order_id}"


def catalog_path() -> str:
    return "catalog"


def catalog_item_path(item_id: str) -> str:
    return f"catalog/{item_id}"


Listener = Callable[[List[DocumentSnapshot]], Awaitable[None]]


class ListenerRegistration(ABC):
    @abstractmethod
    def remove(self) -> None:
        pass


class DocumentStore(ABC):
    @abstractmethod
    async def get_document(self, path: str) -> Optional[DocumentSnapshot]:
        pass

    @abstractmethod
    async def set_document(self, path: str, data: dict, merge: bool = False,
                           expected_version: Optional[int] = None) -> int:
        """Записывает документ, возвращает новую версию.

        expected_version: токен оптимистичной блокировки: запись пройдет,
        только если текущая версия совпадает (0: документа еще нет).
        """
        pass

    @abstractmethod
    async def delete_document(self, path: str) -> None:
        pass

    @abstractmethod
    async def list_documents(self, collection: str) -> List[DocumentSnapshot]:
        pass

    @abstractmethod
    async def subscribe(self, collection: str, listener: Listener) -> ListenerRegistration:
        """Сразу отдает текущий снимок коллекции, затем после каждой записи"""
        pass


class KeyValueStore(ABC):
    @abstractmethod
    async def get(self, path: str) -> Any:
        pass


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, owner_id: str, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def list_for_owner(self, owner_id: str) -> List[Order]:
        pass

    @abstractmethod
    async def list_owner_ids(self) -> List[str]:
        pass

    @abstractmethod
    async def create(self, order: Order) -> None:
        pass

    @abstractmethod
    async def update(self, order: Order) -> None:
        pass


class CatalogRepository(ABC):
    @abstractmethod
    async def get_by_id(self, item_id: str) -> Optional[CatalogItem]:
        pass

    @abstractmethod
    async def list_all(self) -> List[CatalogItem]:
        pass

    @abstractmethod
    async def update_stock(self, item: CatalogItem) -> None:
        pass

