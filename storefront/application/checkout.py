import logging
from typing import Iterable, Optional

from storefront.application.place_order import PlaceOrderDTO, PlaceOrderUseCase
from storefront.domain.cart import Cart, VariantKey
from storefront.domain.exceptions import EmptySelectionError
from storefront.domain.models import Actor, PaymentMethod

logger = logging.getLogger(__name__)


class CheckoutUseCase:
    """Оформление из корзины: только выбранные позиции, которые есть на складе.

    После успешного заказа оформленные позиции убираются из корзины; при
    ошибке корзина остается как была, чтобы пользователь мог повторить.
    """

    def __init__(self, unit_of_work, place_order: PlaceOrderUseCase):
        self._uow = unit_of_work
        self._place_order = place_order

    async def __call__(self, actor: Actor, cart: Cart, payment_method: PaymentMethod,
                       keys: Optional[Iterable[VariantKey]] = None) -> str:
        async with self._uow() as uow:
            catalog = {item.id: item for item in await uow.catalog.list_all()}

        available = {item.key for item in cart.in_stock(catalog)}
        wanted = set(keys) if keys is not None else None
        selections = [
            selection for selection in cart.selections(wanted)
            if (selection.catalog_item_id, selection.variant_size, selection.variant_color) in available
        ]
        if not selections:
            raise EmptySelectionError("Нет выбранных товаров в наличии")

        order_id = await self._place_order(PlaceOrderDTO(
            owner_id=actor.owner_id,
            payment_method=payment_method,
            selections=selections
        ))
        cart.discard(selections)
        logger.info(f"Корзина пользователя {actor.owner_id}: оформлено позиций {len(selections)}, заказ {order_id}")
        return order_id
