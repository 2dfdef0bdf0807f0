"""Сводка для админки."""
from datetime import datetime, timedelta, timezone

from storefront.application.admin_dashboard import AdminDashboardUseCase, build_dashboard
from storefront.application.directory import UNKNOWN_EMAIL, UserDirectory
from storefront.application.get_order import ListAllOrdersUseCase
from storefront.application.place_order import PlaceOrderDTO, PlaceOrderUseCase
from storefront.application.update_line import LineTarget, UpdateLineStatusUseCase
from storefront.domain.models import LineStatus, Order, OrderLine, PaymentMethod, Selection

T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)


def order(order_id: str, owner_id: str, minutes: int, status: LineStatus = LineStatus.PENDING) -> Order:
    at = T0 + timedelta(minutes=minutes)
    return Order(
        id=order_id,
        owner_id=owner_id,
        payment_method=PaymentMethod.CARD,
        placed_at=at,
        line_items=[OrderLine(catalog_item_id="X", name="Shirt", unit_price=1, quantity=1,
                              status=status, saved_at=at)],
    )


class TestBuildDashboard:
    def test_counts_by_summary_status(self):
        dashboard = build_dashboard([
            order("a", "u1", 1),
            order("b", "u1", 2, LineStatus.COMPLETED),
            order("c", "u2", 3, LineStatus.CANCELLED),
            order("d", "u2", 4, LineStatus.CANCELLED),
        ], {})
        assert dashboard.summary.pending == 1
        assert dashboard.summary.completed == 1
        assert dashboard.summary.cancelled == 2

    def test_recent_orders_are_limited_and_sorted(self):
        orders = [order(str(i), "u1", i) for i in range(8)]
        dashboard = build_dashboard(orders, {"u1": "u1@shop.test"}, limit=5)
        assert [recent.id for recent in dashboard.recent_orders] == ["7", "6", "5", "4", "3"]
        assert dashboard.recent_orders[0].email == "u1@shop.test"

    def test_unknown_email(self):
        dashboard = build_dashboard([order("a", "ghost", 1)], {})
        assert dashboard.recent_orders[0].email == UNKNOWN_EMAIL


class TestAdminDashboardUseCase:
    async def test_dashboard_from_store(self, uow, clock, users):
        place_order = PlaceOrderUseCase(uow, clock=clock)
        first = await place_order(PlaceOrderDTO(
            owner_id="u1", payment_method=PaymentMethod.CARD,
            selections=[Selection(catalog_item_id="X", quantity=1)]
        ))
        await place_order(PlaceOrderDTO(
            owner_id="u2", payment_method=PaymentMethod.WALLET,
            selections=[Selection(catalog_item_id="Z", quantity=1)]
        ))
        await UpdateLineStatusUseCase(uow, clock=clock)(
            LineTarget(owner_id="u1", order_id=first, catalog_item_id="X"), LineStatus.COMPLETED
        )

        dashboard = await AdminDashboardUseCase(ListAllOrdersUseCase(uow), UserDirectory(users))()

        assert dashboard.summary.pending == 1
        assert dashboard.summary.completed == 1
        assert [recent.email for recent in dashboard.recent_orders] == ["u2@shop.test", "u1@shop.test"]
