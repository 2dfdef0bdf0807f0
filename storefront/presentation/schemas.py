from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from storefront.domain.models import LineStatus, PaymentMethod, Selection


class PlaceOrderRequest(BaseModel):
    payment_method: PaymentMethod
    selections: List[Selection]


class PlaceOrderResponse(BaseModel):
    order_id: str


class OrderLineResponse(BaseModel):
    catalog_item_id: str
    name: str
    unit_price: float
    quantity: int
    variant_size: Optional[str] = None
    variant_color: Optional[str] = None
    status: LineStatus
    approved: bool
    saved_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, line):
        return cls(
            catalog_item_id=line.catalog_item_id,
            name=line.name,
            unit_price=line.unit_price,
            quantity=line.quantity,
            variant_size=line.variant_size,
            variant_color=line.variant_color,
            status=line.status,
            approved=line.approved,
            saved_at=line.saved_at,
            updated_at=line.updated_at
        )


class OrderResponse(BaseModel):
    id: str
    owner_id: str
    payment_method: PaymentMethod
    placed_at: datetime
    status: LineStatus
    total: float
    line_items: List[OrderLineResponse]

    @classmethod
    def from_domain(cls, order):
        return cls(
            id=order.id,
            owner_id=order.owner_id,
            payment_method=order.payment_method,
            placed_at=order.placed_at,
            status=order.summary_status,
            total=order.total,
            line_items=[OrderLineResponse.from_domain(line) for line in order.line_items]
        )


class LineStatusRequest(BaseModel):
    status: LineStatus
    variant_size: Optional[str] = None
    variant_color: Optional[str] = None


class LineApprovalRequest(BaseModel):
    approved: bool
    variant_size: Optional[str] = None
    variant_color: Optional[str] = None


class CatalogItemResponse(BaseModel):
    id: str
    name: str
    price: float
    stock_quantity: int = Field(ge=0)
    color_options: List[str]
    size_options: List[str]
    category: str
    description: str
    in_stock: bool
    low_stock: bool

    @classmethod
    def from_domain(cls, item):
        return cls(
            id=item.id,
            name=item.name,
            price=item.price,
            stock_quantity=item.stock_quantity,
            color_options=item.color_options,
            size_options=item.size_options,
            category=item.category,
            description=item.description,
            in_stock=item.is_in_stock,
            low_stock=item.is_low_stock
        )


class ErrorResponse(BaseModel):
    detail: str
