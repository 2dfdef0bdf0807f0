from typing import List

from storefront.domain.exceptions import OrderNotFoundError
from storefront.domain.models import CatalogItem, Order, sort_most_recent_first


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, owner_id: str, order_id: str) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(owner_id, order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {order_id} не найден")
            return order


class ListOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, owner_id: str) -> List[Order]:
        async with self._uow() as uow:
            return await uow.orders.list_for_owner(owner_id)


class ListAllOrdersUseCase:
    """Заказы всех клиентов, снимок для админки"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self) -> List[Order]:
        async with self._uow() as uow:
            orders = []
            for owner_id in await uow.orders.list_owner_ids():
                orders.extend(await uow.orders.list_for_owner(owner_id))
            return sort_most_recent_first(orders)


class ListCatalogUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self) -> List[CatalogItem]:
        async with self._uow() as uow:
            return await uow.catalog.list_all()
