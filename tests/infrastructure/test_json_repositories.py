"""Tests for the JSON-file repositories.

Each test works on its own temporary data directory.
"""

import json
import threading
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from pantry.domain.model.cancelled_item import (
    CancellationSource,
    CancelledOrderItem,
    WasteDecision,
)
from pantry.domain.model.cart import ModifierType
from pantry.domain.model.item import CompositeComponent, Item, ItemScope
from pantry.domain.model.order import (
    Order,
    OrderItem,
    OrderItemModifier,
    OrderSource,
    OrderStatus,
    OrderType,
)
from pantry.domain.model.product import ALWAYS
from pantry.domain.model.stock import (
    InventoryMovement,
    LedgerAnomaly,
    MovementKind,
    StockKey,
    StockRecord,
)
from pantry.domain.model.units import Unit
from pantry.domain.model.value_objects import Money, Quantity
from pantry.infrastructure.persistence.json_cancelled_item_repository import (
    JsonCancelledItemRepository,
)
from pantry.infrastructure.persistence.json_catalog_repository import JsonCatalogRepository
from pantry.infrastructure.persistence.json_cost_repository import JsonCostRepository
from pantry.infrastructure.persistence.json_order_repository import JsonOrderRepository
from pantry.infrastructure.persistence.json_stock_repository import JsonStockRepository


class TestJsonCatalogRepository:

    def test_creates_empty_document(self, tmp_path):
        path = tmp_path / "data" / "catalog.json"
        JsonCatalogRepository(path)
        assert json.loads(path.read_text())["items"] == []

    def test_item_round_trip(self, tmp_path):
        repo = JsonCatalogRepository(tmp_path / "catalog.json")
        sauce = Item(
            id=None, name="Sauce", serving_unit=Unit.GRAMS, storage_unit=Unit.KG,
            scope=ItemScope.owned(3), is_composite=True,
            batch_quantity=Decimal("500"), batch_unit=Unit.GRAMS,
            components=[CompositeComponent(7, Decimal("300"))],
        )
        repo.save_item(sauce)

        loaded = repo.get_item(sauce.id)
        assert sauce.id == 1
        assert loaded == sauce

    def test_reads_recipe_edges(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({
            "products": [{
                "id": 1, "name": "Pizza", "price": "12.00", "has_variants": True,
                "variants": [{"id": 1, "name": "Small"}, {"id": 2, "name": "Large", "price": "15.00"}],
            }],
            "ingredients": [{"product_id": 1, "variant_id": 2, "item_id": 4, "quantity": "200"}],
            "modifiers": [{"id": 9, "product_id": 1, "name": "Extra", "item_id": 4, "quantity": "30", "extra_price": "1.50"}],
            "accessories": [{"product_id": 1, "item_id": 5, "quantity": "1"}],
            "bundles": [{"id": 1, "name": "Combo", "price": "20.00", "items": [{"product_id": 1, "variant_id": 1}]}],
        }))
        repo = JsonCatalogRepository(path)

        pizza = repo.get_product(1)
        assert pizza.price_for(2) == Money.of("15.00")
        assert pizza.price_for(1) == Money.of("12.00")
        assert repo.ingredients_for(1, 2)[0].quantity == Decimal("200")
        assert repo.modifiers_for(1)[0].extra_price == Money.of("1.50")
        assert repo.accessories_for(1)[0].applicable_order_types == frozenset({ALWAYS})
        assert repo.get_bundle(1).items[0].quantity == 1
        assert repo.list_items() == []


class TestJsonStockRepository:

    def test_save_batch_round_trip(self, tmp_path):
        repo = JsonStockRepository(tmp_path / "stock.json")
        key = StockKey(1, None, 3)
        record = StockRecord(key, Decimal("2.5"), Decimal("0.5"))
        movement = InventoryMovement(
            key, MovementKind.RESERVE, Decimal("0.5"), Decimal("2.5"), Decimal("2.5"),
            Decimal("0"), Decimal("0.5"), order_ref=4,
        )
        anomaly = LedgerAnomaly(key, MovementKind.CONSUME, Decimal("1"), Decimal("0.5"))

        repo.save_batch([record], [movement], [anomaly])

        assert repo.get(key) == record
        assert repo.list_for_branch(1, None) == [record]
        assert repo.list_for_branch(1, 2) == []
        assert repo.movements(key)[0].order_ref == 4
        assert repo.anomalies()[0].discrepancy == Decimal("0.5")

    def test_save_batch_updates_in_place(self, tmp_path):
        repo = JsonStockRepository(tmp_path / "stock.json")
        key = StockKey(1, 1, 3)
        repo.save_batch([StockRecord(key, Decimal("1"))], [], [])
        repo.save_batch([StockRecord(key, Decimal("4"))], [], [])

        assert len(repo.list_for_branch(1, 1)) == 1
        assert repo.get(key).quantity == Decimal("4")

    @pytest.mark.parametrize("shared", [True, False])
    def test_reads_never_see_a_half_written_file(self, tmp_path, shared):
        path = tmp_path / "stock.json"
        writer = JsonStockRepository(path)
        reader = writer if shared else JsonStockRepository(path)
        records = [StockRecord(StockKey(1, 1, i), Decimal(i)) for i in range(1, 50)]
        errors: list[Exception] = []
        done = threading.Event()

        def write():
            try:
                for _ in range(100):
                    writer.save_batch(records, [], [])
            except Exception as exc:
                errors.append(exc)
            finally:
                done.set()

        thread = threading.Thread(target=write)
        thread.start()
        try:
            while not done.is_set():
                rows = reader.list_for_branch(1, 1)
                assert len(rows) in (0, len(records))
        finally:
            thread.join()

        assert errors == []
        assert len(reader.list_for_branch(1, 1)) == len(records)
        assert [p.name for p in tmp_path.iterdir()] == ["stock.json"]


class TestJsonOrderRepository:

    def test_order_round_trip(self, tmp_path):
        repo = JsonOrderRepository(tmp_path / "orders.json")
        item = OrderItem(
            id=None, name="Burger", quantity=Quantity(2), unit_price=Money.of("10.00"),
            unit_cost_at_sale=Money.of("4.74"), product_id=1,
            modifiers=[OrderItemModifier(1, "Extra cheese", ModifierType.EXTRA, 1, Money.of("1.50"))],
        )
        order = Order.create(1, 1, OrderType.TAKEAWAY, OrderSource.POS, [item])
        repo.save(order)

        loaded = repo.get_by_id(order.id)
        assert order.id == 1
        assert loaded.total == Money.of("23.00")
        assert loaded.items[0].modifiers == item.modifiers
        assert loaded.history[0].reason == "Order created"
        assert repo.next_id() == 2

    def test_list_by_status(self, tmp_path):
        repo = JsonOrderRepository(tmp_path / "orders.json")
        item = OrderItem(id=None, name="Fries", quantity=Quantity(1), unit_price=Money.of("4.00"))
        repo.save(Order.create(1, 1, OrderType.DINE_IN, OrderSource.POS, [item]))

        assert len(repo.list_by_status(OrderStatus.IN_PROGRESS)) == 1
        assert repo.list_by_status(OrderStatus.PENDING) == []


class TestJsonCancelledItemRepository:

    def _row(self):
        return CancelledOrderItem(
            id=None, tenant_id=1, branch_id=1, order_id=1, item_id=3,
            quantity=Decimal("0.15"), unit=Unit.KG,
            source=CancellationSource.ORDER_CANCELLED, item_name="Cheese",
        )

    def test_add_assigns_ids(self, tmp_path):
        repo = JsonCancelledItemRepository(tmp_path / "cancelled.json")
        rows = [self._row(), self._row()]
        repo.add_all(rows)

        assert [r.id for r in rows] == [1, 2]
        assert repo.get_by_id(2).quantity == Decimal("0.15")

    def test_claim_only_once(self, tmp_path):
        repo = JsonCancelledItemRepository(tmp_path / "cancelled.json")
        repo.add_all([self._row()])
        now = datetime.now(timezone.utc)

        assert repo.claim(1, WasteDecision.WASTE, 5, now) is not None
        assert repo.claim(1, WasteDecision.RETURN, 6, now) is None
        assert repo.get_by_id(1).decided_by == 5
        assert repo.list_pending(1) == []

    def test_unclaim(self, tmp_path):
        repo = JsonCancelledItemRepository(tmp_path / "cancelled.json")
        repo.add_all([self._row()])
        repo.claim(1, WasteDecision.WASTE, 5)
        repo.unclaim(1)
        assert repo.get_by_id(1).is_pending


class TestJsonCostRepository:

    def test_costs_keyed_by_scope(self, tmp_path):
        repo = JsonCostRepository(tmp_path / "costs.json")
        repo.set_override(1, 3, Decimal("0.03"))
        repo.set_override(1, 3, Decimal("0.04"))
        repo.save_composite_cost(None, 8, Decimal("0.0022"))
        repo.save_product_cost(2, 1, None, Decimal("4.74"))

        assert repo.get_override(1, 3) == Decimal("0.04")
        assert repo.get_override(2, 3) is None
        assert repo.get_composite_cost(None, 8) == Decimal("0.0022")
        assert repo.get_composite_cost(1, 8) is None
        assert repo.get_product_cost(2, 1, None) == Decimal("4.74")
        assert repo.tenants() == {1, 2}
