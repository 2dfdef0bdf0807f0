from typing import Iterable, Mapping, Optional

from pydantic import BaseModel, Field

from storefront.domain.models import CatalogItem, Selection


VariantKey = tuple[str, Optional[str], Optional[str]]


class CartItem(BaseModel):
    catalog_item_id: str
    name: str
    unit_price: float
    quantity: int = Field(gt=0)
    variant_size: Optional[str] = None
    variant_color: Optional[str] = None

    @property
    def key(self) -> VariantKey:
        return (self.catalog_item_id, self.variant_size, self.variant_color)

    def to_selection(self) -> Selection:
        return Selection(
            catalog_item_id=self.catalog_item_id,
            quantity=self.quantity,
            variant_size=self.variant_size,
            variant_color=self.variant_color,
        )


class Cart(BaseModel):
    """Корзина клиента. Живет на стороне клиента, сериализуется в JSON целиком"""
    items: list[CartItem] = Field(default_factory=list)

    def _find(self, key: VariantKey) -> Optional[CartItem]:
        return next((item for item in self.items if item.key == key), None)

    def add(self, product: CatalogItem, quantity: int, variant_size: Optional[str] = None,
            variant_color: Optional[str] = None) -> CartItem:
        """Тот же товар с тем же размером и цветом увеличивает количество"""
        existing = self._find((product.id, variant_size, variant_color))
        if existing:
            existing.quantity += quantity
            return existing
        item = CartItem(
            catalog_item_id=product.id,
            name=product.name,
            unit_price=product.price,
            quantity=quantity,
            variant_size=variant_size,
            variant_color=variant_color,
        )
        self.items.append(item)
        return item

    def remove(self, catalog_item_id: str, variant_size: Optional[str] = None,
               variant_color: Optional[str] = None) -> None:
        self.items = [
            item for item in self.items
            if not (
                item.catalog_item_id == catalog_item_id
                and (variant_size is None or item.variant_size == variant_size)
                and (variant_color is None or item.variant_color == variant_color)
            )
        ]

    def update_quantity(self, catalog_item_id: str, quantity: int,
                        variant_size: Optional[str] = None,
                        variant_color: Optional[str] = None) -> None:
        if quantity <= 0:
            self.remove(catalog_item_id, variant_size, variant_color)
            return
        for item in self.items:
            if item.catalog_item_id != catalog_item_id:
                continue
            if variant_size is not None and item.variant_size != variant_size:
                continue
            if variant_color is not None and item.variant_color != variant_color:
                continue
            item.quantity = quantity

    def clear(self) -> None:
        self.items = []

    def total(self) -> float:
        return sum(item.unit_price * item.quantity for item in self.items)

    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def in_stock(self, catalog: Mapping[str, CatalogItem]) -> list[CartItem]:
        """Позиции, которые сейчас есть на складе (только их можно оформить)"""
        return [
            item for item in self.items
            if item.catalog_item_id in catalog and catalog[item.catalog_item_id].is_in_stock
        ]

    def selections(self, keys: Optional[Iterable[VariantKey]] = None) -> list[Selection]:
        wanted = set(keys) if keys is not None else None
        return [
            item.to_selection() for item in self.items
            if wanted is None or item.key in wanted
        ]

    def discard(self, selections: Iterable[Selection]) -> None:
        """Убирает из корзины оформленные позиции"""
        ordered = {
            (s.catalog_item_id, s.variant_size, s.variant_color) for s in selections
        }
        self.items = [item for item in self.items if item.key not in ordered]


class WishlistItem(BaseModel):
    catalog_item_id: str
    name: str
    unit_price: float
    variant_size: Optional[str] = None
    variant_color: Optional[str] = None


class Wishlist(BaseModel):
    """Избранное: как корзина, но без количества и оформления"""
    items: list[WishlistItem] = Field(default_factory=list)

    def add(self, product: CatalogItem, variant_size: Optional[str] = None,
            variant_color: Optional[str] = None) -> None:
        for item in self.items:
            if (item.catalog_item_id, item.variant_size, item.variant_color) == (
                    product.id, variant_size, variant_color):
                return
        self.items.append(WishlistItem(
            catalog_item_id=product.id,
            name=product.name,
            unit_price=product.price,
            variant_size=variant_size,
            variant_color=variant_color,
        ))

    def remove(self, catalog_item_id: str) -> None:
        self.items = [item for item in self.items if item.catalog_item_id != catalog_item_id]

    def contains(self, catalog_item_id: str) -> bool:
        return any(item.catalog_item_id == catalog_item_id for item in self.items)

    def clear(self) -> None:
        self.items = []
