"""Unit tests for the waste/return decision queue."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pantry.domain.exceptions import EntityNotFoundError, ValidationError
from pantry.domain.model.cancelled_item import CancellationSource, WasteDecision
from pantry.domain.model.order import Order, OrderItem, OrderSource, OrderType
from pantry.domain.model.value_objects import Money, Quantity
from tests.kitchen import BEEF, BRANCH, BURGER, CHEESE, TENANT, build_kitchen


def _cancelled_burger(quantity: int = 1):
    """A burger order whose reservation was released into the queue."""
    kitchen = build_kitchen()
    item = OrderItem(
        id=None, name="Burger", quantity=Quantity(quantity),
        unit_price=Money.of("10.00"), product_id=BURGER,
    )
    order = Order.create(TENANT, BRANCH, OrderType.DINE_IN, OrderSource.POS, [item])
    kitchen.orders.save(order)
    lines = kitchen.resolver.ledger_lines_for(TENANT, [item.cart_line()], order.order_type)
    kitchen.ledger.reserve(TENANT, BRANCH, lines, order.id)
    rows = kitchen.waste_queue.release_order_items(
        order, [(item, item.cart_line())], CancellationSource.ORDER_CANCELLED
    )
    return kitchen, rows


def _row_for(rows, item_id: int):
    return next(r for r in rows if r.item_id == item_id)


class TestEnqueue:

    def test_one_row_per_ingredient(self):
        kitchen, rows = _cancelled_burger()
        assert len(rows) == 4
        assert all(r.is_pending for r in rows)
        assert _row_for(rows, CHEESE).quantity == Decimal("0.15")

    def test_reservation_released_immediately(self):
        kitchen, _ = _cancelled_burger()
        cheese = kitchen.record(CHEESE)
        assert cheese.reserved_quantity == Decimal("0")
        assert cheese.quantity == Decimal("10")

    def test_nothing_to_release(self):
        kitchen, _ = _cancelled_burger()
        order = kitchen.orders.get_by_id(1)
        rows = kitchen.waste_queue.create_cancelled_item_records(
            order, [], CancellationSource.ORDER_EDITED
        )
        assert rows == []


class TestResolve:

    def test_waste_deducts_frozen_quantity(self):
        kitchen, rows = _cancelled_burger(quantity=2)
        row = kitchen.waste_queue.resolve(_row_for(rows, CHEESE).id, WasteDecision.WASTE, decided_by=9)

        assert row.decision is WasteDecision.WASTE
        assert row.decided_by == 9
        assert kitchen.record(CHEESE).quantity == Decimal("9.7")

    def test_return_leaves_stock(self):
        kitchen, rows = _cancelled_burger()
        kitchen.waste_queue.resolve(_row_for(rows, CHEESE).id, WasteDecision.RETURN, decided_by=9)
        assert kitchen.record(CHEESE).quantity == Decimal("10")

    def test_resolved_exactly_once(self):
        kitchen, rows = _cancelled_burger()
        row_id = _row_for(rows, CHEESE).id
        kitchen.waste_queue.resolve(row_id, WasteDecision.WASTE, decided_by=9)

        with pytest.raises(ValidationError, match="already resolved"):
            kitchen.waste_queue.resolve(row_id, WasteDecision.WASTE, decided_by=9)
        assert kitchen.record(CHEESE).quantity == Decimal("9.85")

    def test_unknown_row(self):
        kitchen, _ = _cancelled_burger()
        with pytest.raises(EntityNotFoundError):
            kitchen.waste_queue.resolve(999, WasteDecision.WASTE, decided_by=9)

    def test_batch_collects_errors(self):
        kitchen, rows = _cancelled_burger()
        cheese, beef = _row_for(rows, CHEESE).id, _row_for(rows, BEEF).id
        result = kitchen.waste_queue.resolve_batch(
            [(cheese, WasteDecision.WASTE), (cheese, WasteDecision.RETURN),
             (beef, WasteDecision.RETURN), (999, WasteDecision.WASTE)],
            decided_by=9,
        )
        assert result.processed == 2
        assert len(result.errors) == 2
        assert result.errors[0].startswith(f"#{cheese}:")


class TestAutoExpire:

    def test_expired_rows_become_waste(self):
        kitchen, rows = _cancelled_burger()
        later = datetime.now(timezone.utc) + timedelta(hours=25)

        result = kitchen.waste_queue.auto_expire(now=later)

        assert result.processed == 4
        assert kitchen.waste_queue.list_pending(TENANT) == []
        assert kitchen.record(CHEESE).quantity == Decimal("9.85")
        row = kitchen.cancelled.get_by_id(_row_for(rows, CHEESE).id)
        assert row.decided_by is None

    def test_young_rows_kept(self):
        kitchen, _ = _cancelled_burger()
        later = datetime.now(timezone.utc) + timedelta(hours=23)
        assert kitchen.waste_queue.auto_expire(now=later).processed == 0
        assert len(kitchen.waste_queue.list_pending(TENANT)) == 4

    def test_decided_rows_not_expired_again(self):
        kitchen, rows = _cancelled_burger()
        kitchen.waste_queue.resolve(_row_for(rows, CHEESE).id, WasteDecision.WASTE, decided_by=9)
        later = datetime.now(timezone.utc) + timedelta(hours=25)

        assert kitchen.waste_queue.auto_expire(now=later).processed == 3
        assert kitchen.record(CHEESE).quantity == Decimal("9.85")


class TestStats:

    def test_counts_and_oldest(self):
        kitchen, _ = _cancelled_burger()
        later = datetime.now(timezone.utc) + timedelta(hours=19)

        stats = kitchen.waste_queue.stats(TENANT, BRANCH, now=later)

        assert stats.pending_count == 4
        assert stats.expiring_soon_count == 4
        assert stats.oldest_pending_hours == Decimal("19.0")

    def test_empty_queue(self):
        kitchen = build_kitchen()
        stats = kitchen.waste_queue.stats(TENANT)
        assert stats.pending_count == 0
        assert stats.oldest_pending_hours is None
