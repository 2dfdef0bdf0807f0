from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.domain.exceptions import OrderLineNotFoundError


LOW_STOCK_THRESHOLD = 10


class LineStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CARD = "CARD"
    WALLET = "WALLET"


class Role(str, Enum):
    ADMIN = "admin"
    CUSTOMER = "customer"


class DocumentModel(BaseModel):
    """Базовая модель: snake_case в коде, camelCase в документах хранилища"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Actor(BaseModel):
    """Кто выполняет операцию. Передается явно, глобального current user нет"""
    owner_id: str
    role: Role = Role.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class Selection(BaseModel):
    """Выбранная позиция: из корзины или кнопки 'купить сейчас'"""
    catalog_item_id: str
    quantity: int = Field(gt=0)
    variant_size: Optional[str] = None
    variant_color: Optional[str] = None


class OrderLine(DocumentModel):
    """Строка заказа: снимок товара на момент оформления"""
    catalog_item_id: str
    name: str
    unit_price: float = Field(ge=0)
    quantity: int = Field(gt=0)
    variant_size: Optional[str] = None
    variant_color: Optional[str] = None
    status: LineStatus = LineStatus.PENDING
    approved: bool = False
    saved_at: datetime
    updated_at: Optional[datetime] = None

    def matches(self, catalog_item_id: str, variant_size: Optional[str] = None,
                variant_color: Optional[str] = None) -> bool:
        if self.catalog_item_id != catalog_item_id:
            return False
        if variant_size is not None and self.variant_size != variant_size:
            return False
        if variant_color is not None and self.variant_color != variant_color:
            return False
        return True

    def with_status(self, status: LineStatus, now: datetime) -> "OrderLine":
        """Смена статуса. cancelled всегда снимает approved в той же записи"""
        return self.model_copy(update={
            "status": status,
            "approved": status != LineStatus.CANCELLED,
            "updated_at": now,
        })

    def with_approval(self, approved: bool, now: datetime) -> "OrderLine":
        return self.model_copy(update={"approved": approved, "updated_at": now})

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity


class Order(DocumentModel):
    id: str
    owner_id: str
    payment_method: PaymentMethod
    placed_at: datetime
    line_items: list[OrderLine] = Field(min_length=1)
    version: int = 0

    def find_lines(self, catalog_item_id: str, variant_size: Optional[str] = None,
                   variant_color: Optional[str] = None) -> list[OrderLine]:
        return [
            line for line in self.line_items
            if line.matches(catalog_item_id, variant_size, variant_color)
        ]

    def _replace_lines(self, catalog_item_id, variant_size, variant_color, change) -> "Order":
        """Пересобирает весь список строк, меняя только подходящие"""
        if not self.find_lines(catalog_item_id, variant_size, variant_color):
            raise OrderLineNotFoundError(f"Товар {catalog_item_id} не найден в заказе {self.id}")
        lines = [
            change(line) if line.matches(catalog_item_id, variant_size, variant_color) else line
            for line in self.line_items
        ]
        return self.model_copy(update={"line_items": lines})

    def with_line_status(self, catalog_item_id: str, status: LineStatus, now: datetime,
                         variant_size: Optional[str] = None,
                         variant_color: Optional[str] = None) -> "Order":
        return self._replace_lines(
            catalog_item_id, variant_size, variant_color,
            lambda line: line.with_status(status, now),
        )

    def with_line_approval(self, catalog_item_id: str, approved: bool, now: datetime,
                           variant_size: Optional[str] = None,
                           variant_color: Optional[str] = None) -> "Order":
        return self._replace_lines(
            catalog_item_id, variant_size, variant_color,
            lambda line: line.with_approval(approved, now),
        )

    @property
    def latest_line(self) -> OrderLine:
        return max(self.line_items, key=lambda line: line.saved_at)

    @property
    def summary_status(self) -> LineStatus:
        """Статус заказа для дашборда: статус самой поздней строки"""
        return self.latest_line.status

    @property
    def most_recent_at(self) -> datetime:
        return max(self.placed_at, self.latest_line.saved_at)

    @property
    def total(self) -> float:
        return sum(
            line.subtotal for line in self.line_items
            if line.status != LineStatus.CANCELLED
        )


class CatalogItem(DocumentModel):
    """Товар каталога"""
    id: str
    name: str
    price: float = Field(ge=0)
    stock_quantity: int = Field(ge=0)
    color_options: list[str] = Field(default_factory=list)
    size_options: list[str] = Field(default_factory=list)
    category: str = ""
    description: str = ""
    last_updated: Optional[datetime] = None
    version: int = 0

    def deducted(self, quantity: int, now: datetime) -> "CatalogItem":
        """Бизнес-правило: остаток не уходит ниже нуля"""
        return self.model_copy(update={
            "stock_quantity": max(self.stock_quantity - quantity, 0),
            "last_updated": now,
        })

    @property
    def is_in_stock(self) -> bool:
        return self.stock_quantity > 0

    @property
    def is_low_stock(self) -> bool:
        return 0 < self.stock_quantity < LOW_STOCK_THRESHOLD


def sort_most_recent_first(orders: list[Order]) -> list[Order]:
    return sorted(orders, key=lambda order: order.most_recent_at, reverse=True)
