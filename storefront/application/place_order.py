import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List

from pydantic import BaseModel

from storefront.application.retry import run_with_version_retry
from storefront.domain.exceptions import CatalogItemNotFoundError, DomainException, EmptySelectionError
from storefront.domain.models import Order, OrderLine, PaymentMethod, Selection


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlaceOrderDTO(BaseModel):
    owner_id: str
    payment_method: PaymentMethod
    selections: List[Selection]


class PlaceOrderUseCase:
    """Корзина -> заказ. Остатки списываются по одному разу на строку,
    после записи заказа и без отката заказа при неудаче списания"""

    def __init__(self, unit_of_work, clock: Callable[[], datetime] = utcnow, max_attempts: int = 3):
        self._uow = unit_of_work
        self._clock = clock
        self._max_attempts = max_attempts

    async def __call__(self, order_data: PlaceOrderDTO) -> str:
        if not order_data.selections:
            raise EmptySelectionError("Нельзя оформить заказ без товаров")

        logger.info(f"Оформление заказа для пользователя {order_data.owner_id}, позиций: {len(order_data.selections)}")

        now = self._clock()
        async with self._uow() as uow:
            # 1. Снимок товаров каталога
            lines = []
            for selection in order_data.selections:
                item = await uow.catalog.get_by_id(selection.catalog_item_id)
                if not item:
                    raise CatalogItemNotFoundError(f"Товар {selection.catalog_item_id} не найден")
                lines.append(OrderLine(
                    catalog_item_id=item.id,
                    name=item.name,
                    unit_price=item.price,
                    quantity=selection.quantity,
                    variant_size=selection.variant_size,
                    variant_color=selection.variant_color,
                    saved_at=now
                ))

            # 2. Заказ целиком, одной записью
            order = Order(
                id=str(uuid.uuid4()),
                owner_id=order_data.owner_id,
                payment_method=order_data.payment_method,
                placed_at=now,
                line_items=lines
            )
            await uow.orders.create(order)
            await uow.commit()
        logger.info(f"Заказ создан: {order.id}")

        # 3. Списание остатков best effort: заказ уже источник истины
        for line in order.line_items:
            try:
                await self._deduct_stock(line.catalog_item_id, line.quantity)
            except DomainException as e:
                logger.warning(f"Остаток товара {line.catalog_item_id} не списан для заказа {order.id}: {e}")

        return order.id

    async def _deduct_stock(self, catalog_item_id: str, quantity: int) -> None:
        async def attempt():
            async with self._uow() as uow:
                item = await uow.catalog.get_by_id(catalog_item_id)
                if not item:
                    raise CatalogItemNotFoundError(f"Товар {catalog_item_id} не найден")
                updated = item.deducted(quantity, self._clock())
                await uow.catalog.update_stock(updated)
                await uow.commit()
                logger.info(
                    f"Списано {quantity} шт. товара {catalog_item_id}: "
                    f"{item.stock_quantity} -> {updated.stock_quantity}"
                )

        await run_with_version_retry(attempt, self._max_attempts, f"catalog/{catalog_item_id}")
