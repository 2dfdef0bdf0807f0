"""Модели заказа и товара: переходы строк и остатки."""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from storefront.domain.exceptions import OrderLineNotFoundError
from storefront.domain.models import (
    Actor, CatalogItem, LineStatus, Order, OrderLine, PaymentMethod, Role, sort_most_recent_first
)

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_line(item_id: str, saved_at: datetime = T0, **extra) -> OrderLine:
    return OrderLine(
        catalog_item_id=item_id,
        name=f"Item {item_id}",
        unit_price=10.0,
        quantity=2,
        saved_at=saved_at,
        **extra
    )


def make_order(order_id: str = "o1", lines=None, placed_at: datetime = T0) -> Order:
    return Order(
        id=order_id,
        owner_id="u1",
        payment_method=PaymentMethod.CARD,
        placed_at=placed_at,
        line_items=lines or [make_line("X"), make_line("Y")],
    )


class TestOrderLine:
    def test_new_line_is_pending_and_not_approved(self):
        line = make_line("X")
        assert line.status == LineStatus.PENDING
        assert line.approved is False
        assert line.updated_at is None

    def test_cancel_clears_approval(self):
        line = make_line("X", approved=True)
        now = T0 + timedelta(hours=1)

        cancelled = line.with_status(LineStatus.CANCELLED, now)

        assert cancelled.status == LineStatus.CANCELLED
        assert cancelled.approved is False
        assert cancelled.updated_at == now
        assert cancelled.saved_at == line.saved_at

    def test_complete_sets_approval(self):
        completed = make_line("X").with_status(LineStatus.COMPLETED, T0)
        assert completed.approved is True

    def test_approval_keeps_status(self):
        approved = make_line("X").with_approval(True, T0)
        assert approved.status == LineStatus.PENDING
        assert approved.approved is True

    def test_lines_are_immutable(self):
        line = make_line("X")
        with pytest.raises(ValidationError):
            line.status = LineStatus.COMPLETED

    def test_matches_by_variant(self):
        line = make_line("X", variant_size="M", variant_color="red")
        assert line.matches("X")
        assert line.matches("X", variant_size="M")
        assert not line.matches("X", variant_color="blue")
        assert not line.matches("Y")

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            OrderLine(catalog_item_id="X", name="X", unit_price=1, quantity=0, saved_at=T0)


class TestOrder:
    def test_order_requires_lines(self):
        with pytest.raises(ValidationError):
            Order(id="o1", owner_id="u1", payment_method=PaymentMethod.CARD, placed_at=T0, line_items=[])

    def test_line_status_touches_only_target_line(self):
        order = make_order()
        other_before = order.line_items[1]

        updated = order.with_line_status("X", LineStatus.CANCELLED, T0 + timedelta(minutes=5))

        assert updated.line_items[0].status == LineStatus.CANCELLED
        assert updated.line_items[1] == other_before
        assert [line.catalog_item_id for line in updated.line_items] == ["X", "Y"]

    def test_line_status_for_missing_line(self):
        with pytest.raises(OrderLineNotFoundError):
            make_order().with_line_status("nope", LineStatus.COMPLETED, T0)

    def test_variant_narrows_matched_lines(self):
        order = make_order(lines=[
            make_line("X", variant_size="S"),
            make_line("X", variant_size="M"),
        ])

        updated = order.with_line_approval("X", True, T0, variant_size="M")

        assert [line.approved for line in updated.line_items] == [False, True]

    def test_total_ignores_cancelled_lines(self):
        order = make_order().with_line_status("X", LineStatus.CANCELLED, T0)
        assert order.total == 20.0

    def test_summary_status_follows_latest_line(self):
        order = make_order(lines=[
            make_line("X", saved_at=T0),
            make_line("Y", saved_at=T0 + timedelta(seconds=1)),
        ]).with_line_status("Y", LineStatus.COMPLETED, T0)
        assert order.summary_status == LineStatus.COMPLETED

    def test_sort_most_recent_first(self):
        older = make_order("old", placed_at=T0, lines=[make_line("X", saved_at=T0)])
        newer = make_order(
            "new", placed_at=T0 + timedelta(days=1),
            lines=[make_line("X", saved_at=T0 + timedelta(days=1))]
        )
        assert [o.id for o in sort_most_recent_first([older, newer])] == ["new", "old"]


class TestCatalogItem:
    def test_deduction_clamps_at_zero(self):
        item = CatalogItem(id="Y", name="Hat", price=40, stock_quantity=4)
        deducted = item.deducted(10, T0)
        assert deducted.stock_quantity == 0
        assert deducted.last_updated == T0

    def test_stock_flags(self):
        assert CatalogItem(id="a", name="a", price=1, stock_quantity=3).is_low_stock
        assert not CatalogItem(id="a", name="a", price=1, stock_quantity=30).is_low_stock
        assert not CatalogItem(id="a", name="a", price=1, stock_quantity=0).is_in_stock

    def test_negative_stock_rejected(self):
        with pytest.raises(ValidationError):
            CatalogItem(id="a", name="a", price=1, stock_quantity=-1)


class TestActor:
    def test_default_role_is_customer(self):
        assert not Actor(owner_id="u1").is_admin
        assert Actor(owner_id="a", role=Role.ADMIN).is_admin
