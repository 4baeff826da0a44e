"""In-memory fake repositories for testing.

These implement the same abstract interfaces as the JSON repositories
but keep everything in a dict. No file I/O, no side effects.
"""

from __future__ import annotations

import copy
from concurrent.futures import Executor, Future
from decimal import Decimal

from pantry.domain.model.cancelled_item import CancelledOrderItem
from pantry.domain.model.item import Item
from pantry.domain.model.order import Order, OrderStatus
from pantry.domain.model.product import (
    Bundle,
    Product,
    ProductAccessory,
    ProductIngredient,
    ProductModifier,
)
from pantry.domain.model.stock import (
    InventoryMovement,
    LedgerAnomaly,
    StockKey,
    StockRecord,
)
from pantry.domain.repository.cancelled_item_repository import CancelledItemRepository
from pantry.domain.repository.catalog_repository import CatalogRepository
from pantry.domain.repository.cost_repository import CostRepository
from pantry.domain.repository.order_repository import OrderRepository
from pantry.domain.repository.stock_repository import StockRepository


class FakeCatalogRepository(CatalogRepository):

    def __init__(
        self,
        items: list[Item] | None = None,
        products: list[Product] | None = None,
        bundles: list[Bundle] | None = None,
        ingredients: list[ProductIngredient] | None = None,
        modifiers: list[ProductModifier] | None = None,
        accessories: list[ProductAccessory] | None = None,
    ) -> None:
        self._items: dict[int, Item] = {}
        self._next_item_id = 1
        for item in items or []:
            self.save_item(item)
        self._products = {p.id: p for p in products or []}
        self._bundles = {b.id: b for b in bundles or []}
        self.ingredients = list(ingredients or [])
        self.modifiers = list(modifiers or [])
        self.accessories = list(accessories or [])

    def get_item(self, item_id: int) -> Item | None:
        return self._items.get(item_id)

    def list_items(self) -> list[Item]:
        return list(self._items.values())

    def save_item(self, item: Item) -> None:
        if item.id is None:
            item.id = self._next_item_id
        self._next_item_id = max(self._next_item_id, item.id + 1)
        self._items[item.id] = item

    def get_product(self, product_id: int) -> Product | None:
        return self._products.get(product_id)

    def list_products(self) -> list[Product]:
        return list(self._products.values())

    def save_product(self, product: Product) -> None:
        self._products[product.id] = product

    def get_bundle(self, bundle_id: int) -> Bundle | None:
        return self._bundles.get(bundle_id)

    def list_ingredients(self) -> list[ProductIngredient]:
        return list(self.ingredients)

    def list_modifiers(self) -> list[ProductModifier]:
        return list(self.modifiers)

    def list_accessories(self) -> list[ProductAccessory]:
        return list(self.accessories)


class FakeStockRepository(StockRepository):

    def __init__(self, records: list[StockRecord] | None = None) -> None:
        super().__init__()
        self._store: dict[StockKey, StockRecord] = {}
        self._movements: list[InventoryMovement] = []
        self._anomalies: list[LedgerAnomaly] = []
        self.batches = 0
        for record in records or []:
            self._store[record.key] = copy.copy(record)

    def get(self, key: StockKey) -> StockRecord | None:
        record = self._store.get(key)
        return copy.copy(record) if record else None

    def list_for_branch(self, tenant_id: int, branch_id: int | None) -> list[StockRecord]:
        return [
            copy.copy(r) for k, r in self._store.items()
            if k.tenant_id == tenant_id and k.branch_id == branch_id
        ]

    def save_batch(
        self,
        records: list[StockRecord],
        movements: list[InventoryMovement],
        anomalies: list[LedgerAnomaly],
    ) -> None:
        self.batches += 1
        for record in records:
            self._store[record.key] = copy.copy(record)
        self._movements.extend(movements)
        self._anomalies.extend(anomalies)

    def movements(self, key: StockKey | None = None) -> list[InventoryMovement]:
        return [m for m in self._movements if key is None or m.key == key]

    def anomalies(self) -> list[LedgerAnomaly]:
        return list(self._anomalies)


class FakeOrderRepository(OrderRepository):
    """Stores deep copies so unsaved mutations never leak into the store."""

    def __init__(self) -> None:
        self._store: dict[int, Order] = {}
        self._next_id = 1

    def next_id(self) -> int:
        next_id = self._next_id
        self._next_id += 1
        return next_id

    def get_by_id(self, order_id: int) -> Order | None:
        order = self._store.get(order_id)
        return copy.deepcopy(order) if order else None

    def list_by_status(self, *statuses: OrderStatus) -> list[Order]:
        return [copy.deepcopy(o) for o in self._store.values() if o.status in statuses]

    def save(self, order: Order) -> None:
        if order.id is None:
            order.id = self.next_id()
        self._store[order.id] = copy.deepcopy(order)


class FakeCancelledItemRepository(CancelledItemRepository):

    def __init__(self) -> None:
        super().__init__()
        self._store: dict[int, CancelledOrderItem] = {}
        self._next_id = 1

    def get_by_id(self, record_id: int) -> CancelledOrderItem | None:
        record = self._store.get(record_id)
        return copy.deepcopy(record) if record else None

    def list_all(self) -> list[CancelledOrderItem]:
        return [copy.deepcopy(r) for r in self._store.values()]

    def add_all(self, records: list[CancelledOrderItem]) -> None:
        for record in records:
            record.id = self._next_id
            self._next_id += 1
            self._store[record.id] = copy.deepcopy(record)

    def save(self, record: CancelledOrderItem) -> None:
        self._store[record.id] = copy.deepcopy(record)  # type: ignore[index]


class FakeCostRepository(CostRepository):

    def __init__(self) -> None:
        self.overrides: dict[tuple[int, int], Decimal] = {}
        self.composites: dict[tuple[int | None, int], Decimal] = {}
        self.products: dict[tuple[int | None, int, int | None], Decimal] = {}

    def get_override(self, tenant_id: int, item_id: int) -> Decimal | None:
        return self.overrides.get((tenant_id, item_id))

    def set_override(self, tenant_id: int, item_id: int, cost: Decimal) -> None:
        self.overrides[(tenant_id, item_id)] = cost

    def get_composite_cost(self, tenant_id: int | None, item_id: int) -> Decimal | None:
        return self.composites.get((tenant_id, item_id))

    def save_composite_cost(self, tenant_id: int | None, item_id: int, cost: Decimal) -> None:
        self.composites[(tenant_id, item_id)] = cost

    def get_product_cost(
        self, tenant_id: int | None, product_id: int, variant_id: int | None
    ) -> Decimal | None:
        return self.products.get((tenant_id, product_id, variant_id))

    def save_product_cost(
        self,
        tenant_id: int | None,
        product_id: int,
        variant_id: int | None,
        cost: Decimal,
    ) -> None:
        self.products[(tenant_id, product_id, variant_id)] = cost

    def tenants(self) -> set[int]:
        keys = list(self.overrides) + list(self.composites) + list(self.products)
        return {k[0] for k in keys if k[0] is not None}


class InlineExecutor(Executor):
    """Runs submitted work immediately, so background reservations are deterministic."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future
