"""Domain service: Availability Calculator.

Two read-only views over the current stock snapshot:

- ``check_fulfillability`` decides whether a cart can be made, listing
  every shortage.  It fails closed: a line whose demand cannot be
  computed is reported as unverifiable and blocks the order.
- ``max_orderable`` is the storefront's "how many can I still sell".
  It fails open for products without a recipe, which get a large
  sentinel instead of zero so untracked products stay sellable.  Only
  recipe ingredients bound it; packaging accessories never do.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from pantry.domain.exceptions import (
    EntityNotFoundError,
    IncompatibleUnits,
    InsufficientInventory,
    UnresolvableRecipe,
)
from pantry.domain.model.cart import CartLine
from pantry.domain.model.item import Item
from pantry.domain.model.order import OrderType
from pantry.domain.model.stock import Shortage, StockRecord
from pantry.domain.model.units import to_serving_units
from pantry.domain.repository.catalog_repository import CatalogRepository
from pantry.domain.repository.stock_repository import StockRepository
from pantry.domain.service.bom_resolver import BomResolver, Requirements

MAX_ORDERABLE_SENTINEL = 999


@dataclass(frozen=True)
class Unverifiable:
    """A line or item whose stock sufficiency could not be computed."""

    label: str
    reason: str

    def describe(self) -> str:
        return f"{self.label}: {self.reason}"


@dataclass(frozen=True)
class FulfillabilityResult:
    shortages: list[Shortage] = field(default_factory=list)
    unverifiable: list[Unverifiable] = field(default_factory=list)

    @property
    def can_fulfill(self) -> bool:
        return not self.shortages and not self.unverifiable

    def raise_if_unfulfillable(self) -> None:
        if self.can_fulfill:
            return
        if self.shortages:
            message = None
            if self.unverifiable:
                details = "; ".join(
                    [s.describe() for s in self.shortages]
                    + [u.describe() for u in self.unverifiable]
                )
                message = f"Insufficient inventory: {details}"
            raise InsufficientInventory(self.shortages, message)
        details = "; ".join(u.describe() for u in self.unverifiable)
        raise UnresolvableRecipe(f"Cannot verify inventory: {details}")


class AvailabilityCalculator:

    def __init__(
        self,
        catalog_repo: CatalogRepository,
        stock_repo: StockRepository,
        resolver: BomResolver,
        strict_recipe_check: bool = True,
        sentinel: int = MAX_ORDERABLE_SENTINEL,
    ) -> None:
        self._catalog = catalog_repo
        self._stock_repo = stock_repo
        self._resolver = resolver
        self._strict_recipe_check = strict_recipe_check
        self._sentinel = sentinel

    def check_fulfillability(
        self,
        tenant_id: int,
        branch_id: int | None,
        lines: Iterable[CartLine],
        order_type: OrderType | None = None,
    ) -> FulfillabilityResult:
        """Aggregate demand over all lines, then compare to available stock.

        Aggregating first matters: two lines that each fit on their own
        may not fit together.
        """
        total = Requirements()
        unverifiable: list[Unverifiable] = []

        for line in lines:
            label = line.label or _line_label(line)
            try:
                demand = self._resolver.resolve(tenant_id, line, order_type)
            except (UnresolvableRecipe, IncompatibleUnits, EntityNotFoundError) as exc:
                unverifiable.append(Unverifiable(label, str(exc)))
                continue
            if self._strict_recipe_check:
                unverifiable.extend(
                    Unverifiable(name, "no recipe configured, stock cannot be verified")
                    for name in demand.untracked
                )
            total.merge(demand)

        stock = self._snapshot(tenant_id, branch_id)
        shortages: list[Shortage] = []
        for requirement in total:
            if requirement.quantity <= 0:
                continue
            item = self._catalog.get_item(requirement.item_id)
            if item is None:
                unverifiable.append(
                    Unverifiable(f"item #{requirement.item_id}", "item not found")
                )
                continue
            try:
                available = _available(stock.get(item.saved_id), item)
            except IncompatibleUnits as exc:
                unverifiable.append(Unverifiable(item.name, str(exc)))
                continue
            if available < requirement.quantity:
                shortages.append(
                    Shortage(
                        item_id=item.saved_id,
                        item_name=item.name,
                        required=requirement.quantity,
                        available=available,
                        unit=item.serving_unit,
                        product_name=", ".join(sorted(requirement.products)) or None,
                    )
                )

        return FulfillabilityResult(shortages, unverifiable)

    def max_orderable(self, tenant_id: int, branch_id: int | None) -> dict[int, int]:
        """Per active product, how many single units current stock supports.

        Across variants the best one counts, since the customer picks.
        """
        stock = self._snapshot(tenant_id, branch_id)
        result: dict[int, int] = {}
        for product in self._catalog.products_for(tenant_id):
            if not product.is_active:
                continue
            if product.has_variants:
                candidates = [v.id for v in product.variants]
            else:
                candidates = [None]
            result[product.id] = max(
                (self._max_for(tenant_id, product.id, vid, stock) for vid in candidates),
                default=0,
            )
        return result

    # --- Internal helpers -----------------------------------------------------

    def _max_for(
        self,
        tenant_id: int,
        product_id: int,
        variant_id: int | None,
        stock: dict[int, StockRecord],
    ) -> int:
        line = CartLine(quantity=1, product_id=product_id, variant_id=variant_id)
        try:
            demand = self._resolver.resolve(tenant_id, line, include_accessories=False)
        except UnresolvableRecipe:
            return self._sentinel
        except (IncompatibleUnits, EntityNotFoundError):
            return 0
        if demand.untracked:
            return self._sentinel

        best = self._sentinel
        for requirement in demand:
            if requirement.quantity <= 0:
                continue
            item = self._catalog.get_item(requirement.item_id)
            if item is None:
                return 0
            try:
                available = _available(stock.get(requirement.item_id), item)
            except IncompatibleUnits:
                return 0
            best = min(best, int(available // requirement.quantity))
        return max(best, 0)

    def _snapshot(self, tenant_id: int, branch_id: int | None) -> dict[int, StockRecord]:
        return {
            record.item_id: record
            for record in self._stock_repo.list_for_branch(tenant_id, branch_id)
        }


def _available(record: StockRecord | None, item: Item) -> Decimal:
    """Available-to-promise for *item*, in its serving unit."""
    quantity = record.available_quantity if record else Decimal("0")
    return to_serving_units(quantity, item.storage_unit, item.serving_unit)


def _line_label(line: CartLine) -> str:
    if line.bundle_id is not None:
        return f"bundle #{line.bundle_id}"
    return f"product #{line.product_id}"
