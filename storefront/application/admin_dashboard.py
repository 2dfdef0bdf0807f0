from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel

from storefront.application.directory import UNKNOWN_EMAIL, UserDirectory
from storefront.domain.models import LineStatus, Order, sort_most_recent_first


class OrderSummary(BaseModel):
    pending: int = 0
    completed: int = 0
    cancelled: int = 0


class RecentOrder(BaseModel):
    id: str
    owner_id: str
    email: str
    placed_at: datetime
    status: LineStatus


class Dashboard(BaseModel):
    summary: OrderSummary
    recent_orders: List[RecentOrder]


def build_dashboard(orders: List[Order], emails: Dict[str, str], limit: int = 5) -> Dashboard:
    """Заказ считается по статусу самой поздней строки"""
    counts = {status: 0 for status in LineStatus}
    for order in orders:
        counts[order.summary_status] += 1

    recent = [
        RecentOrder(
            id=order.id,
            owner_id=order.owner_id,
            email=emails.get(order.owner_id, UNKNOWN_EMAIL),
            placed_at=order.placed_at,
            status=order.summary_status
        )
        for order in sort_most_recent_first(orders)[:limit]
    ]
    return Dashboard(
        summary=OrderSummary(
            pending=counts[LineStatus.PENDING],
            completed=counts[LineStatus.COMPLETED],
            cancelled=counts[LineStatus.CANCELLED]
        ),
        recent_orders=recent
    )


class AdminDashboardUseCase:
    def __init__(self, list_all_orders, directory: UserDirectory, limit: int = 5):
        self._list_all_orders = list_all_orders
        self._directory = directory
        self._limit = limit

    async def __call__(self) -> Dashboard:
        orders = await self._list_all_orders()
        emails = await self._directory.emails()
        return build_dashboard(orders, emails, self._limit)
