"""Domain service: ingredient cost calculation and the cost cascade.

Costs are per serving unit (e.g. $/gram).  A composite item's unit cost
is its batch cost divided by its batch yield; a product's cost is the
sum of its recipe.  Because composites never nest, a price change
propagates in exactly two phases:

    changed item -> composites containing it -> products using either
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal

from pantry.domain.exceptions import EntityNotFoundError, ValidationError
from pantry.domain.model.cart import CartLine
from pantry.domain.model.item import Item
from pantry.domain.model.value_objects import Money
from pantry.domain.repository.catalog_repository import CatalogRepository
from pantry.domain.repository.cost_repository import CostRepository
from pantry.domain.service.bom_resolver import BomResolver

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def weighted_average_cost(
    current_quantity: Decimal,
    current_cost: Decimal,
    received_quantity: Decimal,
    received_cost: Decimal,
) -> Decimal:
    """Blend the cost of stock on hand with a new delivery.

    Quantities must be in the same unit; costs are per that unit.
    """
    if received_quantity <= 0:
        raise ValidationError("Received quantity must be positive")
    if received_cost < 0:
        raise ValidationError("Received cost cannot be negative")
    if current_quantity <= 0:
        return received_cost
    total = current_quantity + received_quantity
    return (current_quantity * current_cost + received_quantity * received_cost) / total


@dataclass(frozen=True)
class CascadeResult:
    item_id: int
    tenant_id: int | None
    composites: dict[int, Decimal] = field(default_factory=dict)
    products: dict[tuple[int, int | None], Decimal] = field(default_factory=dict)
    scopes_recomputed: int = 1


class CostCalculator:

    def __init__(
        self,
        catalog_repo: CatalogRepository,
        cost_repo: CostRepository,
        resolver: BomResolver | None = None,
    ) -> None:
        self._catalog = catalog_repo
        self._cost_repo = cost_repo
        self._resolver = resolver or BomResolver(catalog_repo)

    def effective_cost(self, tenant_id: int | None, item_id: int) -> Decimal:
        """Cost per serving unit the tenant actually pays.

        Tenant override first, then for composites the last cascaded cost
        (or a live computation), then the item's own default.
        """
        item = self._item(tenant_id, item_id)
        if tenant_id is not None:
            override = self._cost_repo.get_override(tenant_id, item.saved_id)
            if override is not None:
                return override
        if item.is_composite:
            stored = self._cost_repo.get_composite_cost(tenant_id, item.saved_id)
            if stored is not None:
                return stored
            return self.composite_unit_cost(tenant_id, item)
        return item.cost_per_unit

    def composite_unit_cost(self, tenant_id: int | None, composite: Item) -> Decimal:
        batch_cost = sum(
            (
                component.quantity * self.effective_cost(tenant_id, component.component_item_id)
                for component in composite.components
            ),
            ZERO,
        )
        return batch_cost / composite.batch_yield()

    def recipe_cost(
        self, tenant_id: int | None, product_id: int, variant_id: int | None = None
    ) -> Decimal:
        return sum(
            (
                ingredient.quantity * self.effective_cost(tenant_id, ingredient.item_id)
                for ingredient in self._catalog.ingredients_for(product_id, variant_id)
            ),
            ZERO,
        )

    def line_unit_cost(self, tenant_id: int, line: CartLine) -> Money:
        """Ingredient cost of one unit of a cart line, for the sale snapshot.

        Covers everything the line consumes: recipe, extras, removals and
        ``always`` accessories.  Bundles sum their products.
        """
        demand = self._resolver.resolve(tenant_id, replace(line, quantity=1))
        total = sum(
            (
                requirement.quantity * self.effective_cost(tenant_id, requirement.item_id)
                for requirement in demand
                if requirement.quantity > 0
            ),
            ZERO,
        )
        return Money(total)

    def _item(self, tenant_id: int | None, item_id: int) -> Item:
        if tenant_id is not None:
            return self._catalog.effective_item(tenant_id, item_id)
        item = self._catalog.get_item(item_id)
        if item is None or not item.scope.is_shared:
            raise EntityNotFoundError(f"Item #{item_id} not found")
        return item


class CostCascade:

    def __init__(
        self,
        catalog_repo: CatalogRepository,
        cost_repo: CostRepository,
        calculator: CostCalculator,
    ) -> None:
        self._catalog = catalog_repo
        self._cost_repo = cost_repo
        self._calculator = calculator

    def on_item_cost_changed(self, item_id: int, tenant_id: int | None = None) -> CascadeResult:
        """Recompute every cost that depends on *item_id*.

        A tenant change only touches that tenant's costs.  A default
        (``tenant_id=None``) change also reaches every tenant with stored
        costs, since they inherit defaults they have not overridden.
        """
        item = self._catalog.get_item(item_id)
        if item is None:
            raise EntityNotFoundError(f"Item #{item_id} not found")

        result = self._cascade(item, tenant_id)
        scopes = 1
        if tenant_id is None:
            for other in sorted(self._cost_repo.tenants()):
                self._cascade(item, other)
                scopes += 1

        logger.info(
            "Cost cascade for item #%s: %d composite(s), %d product(s)",
            item_id,
            len(result.composites),
            len(result.products),
            extra={"tenant_id": tenant_id, "item_id": item_id, "scopes": scopes},
        )
        return replace(result, scopes_recomputed=scopes)

    def _cascade(self, item: Item, tenant_id: int | None) -> CascadeResult:
        changed: set[int] = {item.saved_id}
        if item.base_item_id is not None:
            changed.add(item.base_item_id)

        # Phase 1: composites containing the changed item, one level only
        composites: dict[int, Decimal] = {}
        for changed_id in list(changed):
            for composite in self._catalog.composites_using(changed_id):
                if not self._visible(composite, tenant_id):
                    continue
                cost = self._calculator.composite_unit_cost(tenant_id, composite)
                self._cost_repo.save_composite_cost(tenant_id, composite.saved_id, cost)
                composites[composite.saved_id] = cost

        # Phase 2: products whose recipe uses the item or a recomputed composite
        affected = changed | set(composites)
        products: dict[tuple[int, int | None], Decimal] = {}
        for ingredient in self._catalog.ingredients_using(affected):
            key = (ingredient.product_id, ingredient.variant_id)
            if key in products:
                continue
            product = self._catalog.get_product(ingredient.product_id)
            if product is None or product.tenant_id not in (None, tenant_id):
                continue
            cost = self._calculator.recipe_cost(tenant_id, *key)
            self._cost_repo.save_product_cost(tenant_id, key[0], key[1], cost)
            products[key] = cost

        return CascadeResult(item.saved_id, tenant_id, composites, products)

    @staticmethod
    def _visible(item: Item, tenant_id: int | None) -> bool:
        if tenant_id is None:
            return item.scope.is_shared
        return item.scope.visible_to(tenant_id)
