import logging
from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel

from storefront.application.place_order import utcnow
from storefront.application.retry import run_with_version_retry
from storefront.domain.exceptions import OrderNotFoundError
from storefront.domain.models import LineStatus, Order, OrderLine

logger = logging.getLogger(__name__)

LineGuard = Callable[[OrderLine], None]


class LineTarget(BaseModel):
    owner_id: str
    order_id: str
    catalog_item_id: str
    variant_size: Optional[str] = None
    variant_color: Optional[str] = None


class _LineUpdateUseCase:
    """Чтение заказа -> изменение строк -> запись всего заказа по версии.

    guard вызывается для каждой целевой строки свежепрочитанного заказа и
    может запретить переход исключением. Без guard движок ничего не запрещает.
    """

    def __init__(self, unit_of_work, clock: Callable[[], datetime] = utcnow, max_attempts: int = 3):
        self._uow = unit_of_work
        self._clock = clock
        self._max_attempts = max_attempts

    async def _apply(self, target: LineTarget, change: Callable[[Order, datetime], Order],
                     guard: Optional[LineGuard]) -> Order:
        async def attempt() -> Order:
            async with self._uow() as uow:
                order = await uow.orders.get_by_id(target.owner_id, target.order_id)
                if not order:
                    raise OrderNotFoundError(f"Заказ {target.order_id} не найден")
                if guard is not None:
                    for line in order.find_lines(target.catalog_item_id, target.variant_size, target.variant_color):
                        guard(line)
                updated = change(order, self._clock())
                await uow.orders.update(updated)
                await uow.commit()
                return updated

        return await run_with_version_retry(attempt, self._max_attempts, f"order/{target.order_id}")


class UpdateLineStatusUseCase(_LineUpdateUseCase):
    async def __call__(self, target: LineTarget, status: LineStatus, guard: Optional[LineGuard] = None) -> Order:
        def change(order: Order, now: datetime) -> Order:
            return order.with_line_status(
                target.catalog_item_id, status, now, target.variant_size, target.variant_color
            )

        order = await self._apply(target, change, guard)
        logger.info(f"Товар {target.catalog_item_id} в заказе {target.order_id} -> {status.value}")
        return order


class UpdateLineApprovalUseCase(_LineUpdateUseCase):
    async def __call__(self, target: LineTarget, approved: bool, guard: Optional[LineGuard] = None) -> Order:
        def change(order: Order, now: datetime) -> Order:
            return order.with_line_approval(
                target.catalog_item_id, approved, now, target.variant_size, target.variant_color
            )

        order = await self._apply(target, change, guard)
        logger.info(f"Товар {target.catalog_item_id} в заказе {target.order_id}: approved={approved}")
        return order
