"""Domain service: BOM (bill of materials) resolution.

Turns one cart line into a flat, item-keyed demand in serving units:

    bundle -> products -> recipe (+ extras, - removals) + accessories
                       -> composite items expanded one level

Composite nesting is rejected when items are linked, so the expansion
below is a single bounded pass rather than a graph walk.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from decimal import Decimal

from pantry.domain.exceptions import (
    CircularCompositeReference,
    EntityNotFoundError,
    UnresolvableRecipe,
    ValidationError,
)
from pantry.domain.model.cart import CartLine, CartModifier, ModifierType
from pantry.domain.model.item import Item
from pantry.domain.model.order import OrderType
from pantry.domain.model.product import Product, ProductIngredient
from pantry.domain.model.units import to_storage_units
from pantry.domain.repository.catalog_repository import CatalogRepository
from pantry.domain.service.reservation_ledger import LedgerLine

ZERO = Decimal("0")


@dataclass
class Requirement:
    """Demand for one item, in the item's serving unit."""

    item_id: int
    quantity: Decimal
    sources: list[str] = field(default_factory=list)
    products: set[str] = field(default_factory=set)


class Requirements:
    """A summing multiset of item demand.

    Adding the same item twice sums the quantities; nothing is ever
    overwritten.  ``untracked`` names products that resolved without any
    recipe, so callers can decide whether that is acceptable.
    """

    def __init__(self) -> None:
        self._lines: dict[int, Requirement] = {}
        self.untracked: list[str] = []

    def add(
        self,
        item_id: int,
        quantity: Decimal,
        source: str,
        product: str | None = None,
    ) -> None:
        line = self._lines.setdefault(item_id, Requirement(item_id, ZERO))
        line.quantity += quantity
        line.sources.append(source)
        if product:
            line.products.add(product)

    def subtract(self, item_id: int, quantity: Decimal, source: str) -> None:
        """Reduce demand for an item, never below zero."""
        line = self._lines.get(item_id)
        if line is None:
            return
        line.quantity = max(ZERO, line.quantity - quantity)
        line.sources.append(source)

    def add_requirement(self, requirement: Requirement) -> None:
        line = self._lines.setdefault(
            requirement.item_id, Requirement(requirement.item_id, ZERO)
        )
        line.quantity += requirement.quantity
        line.sources.extend(requirement.sources)
        line.products |= requirement.products

    def merge(self, other: Requirements) -> None:
        for line in other:
            self.add_requirement(line)
        self.untracked.extend(other.untracked)

    def scaled(self, factor: int | Decimal) -> Requirements:
        result = Requirements()
        for line in self:
            result.add_requirement(
                Requirement(
                    line.item_id,
                    line.quantity * factor,
                    list(line.sources),
                    set(line.products),
                )
            )
        result.untracked = list(self.untracked)
        return result

    def quantity_of(self, item_id: int) -> Decimal:
        line = self._lines.get(item_id)
        return line.quantity if line else ZERO

    def item_ids(self) -> list[int]:
        return list(self._lines)

    def __iter__(self) -> Iterator[Requirement]:
        return iter(list(self._lines.values()))

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._lines


class BomResolver:

    def __init__(self, catalog_repo: CatalogRepository) -> None:
        self._catalog = catalog_repo

    # --- Public API -----------------------------------------------------------

    def resolve(
        self,
        tenant_id: int,
        line: CartLine,
        order_type: OrderType | None = None,
        include_accessories: bool = True,
    ) -> Requirements:
        """Flatten one cart line into raw-item demand (serving units).

        ``order_type=None`` means the type is not known yet; only
        accessories marked ``always`` are included then.  With
        ``include_accessories=False`` only recipe ingredients count.
        """
        if line.bundle_id is not None:
            return self._resolve_bundle(
                tenant_id, line.bundle_id, line, order_type, include_accessories
            )
        if line.product_id is None:
            raise ValidationError("Cart line needs a product or a bundle")
        return self._resolve_product(
            tenant_id,
            line.product_id,
            line.variant_id,
            line.quantity,
            line.modifiers,
            order_type,
            include_accessories,
        )

    def resolve_all(
        self,
        tenant_id: int,
        lines: Iterable[CartLine],
        order_type: OrderType | None = None,
    ) -> Requirements:
        total = Requirements()
        for line in lines:
            total.merge(self.resolve(tenant_id, line, order_type))
        return total

    def to_ledger_lines(self, tenant_id: int, requirements: Requirements) -> list[LedgerLine]:
        """Convert serving-unit demand into storage-unit ledger lines.

        Lines whose demand was floored to zero are dropped.  Raises
        ``IncompatibleUnits`` for a misconfigured item.
        """
        result: list[LedgerLine] = []
        for requirement in requirements:
            if requirement.quantity <= 0:
                continue
            item = self._catalog.effective_item(tenant_id, requirement.item_id)
            result.append(
                LedgerLine(
                    item_id=item.saved_id,
                    quantity=to_storage_units(
                        requirement.quantity, item.serving_unit, item.storage_unit
                    ),
                    storage_unit=item.storage_unit,
                    serving_unit=item.serving_unit,
                    item_name=item.name,
                )
            )
        return result

    def ledger_lines_for(
        self,
        tenant_id: int,
        lines: Iterable[CartLine],
        order_type: OrderType | None = None,
    ) -> list[LedgerLine]:
        return self.to_ledger_lines(
            tenant_id, self.resolve_all(tenant_id, lines, order_type)
        )

    # --- Resolution steps -----------------------------------------------------

    def _resolve_bundle(
        self,
        tenant_id: int,
        bundle_id: int,
        line: CartLine,
        order_type: OrderType | None,
        include_accessories: bool,
    ) -> Requirements:
        bundle = self._catalog.get_bundle(bundle_id)
        if bundle is None or bundle.tenant_id not in (None, tenant_id):
            raise EntityNotFoundError(f"Bundle #{bundle_id} not found")
        if line.modifiers:
            raise ValidationError(f"Bundle '{bundle.name}' does not take modifiers")
        if not bundle.items:
            raise UnresolvableRecipe(f"Bundle '{bundle.name}' contains no products")

        total = Requirements()
        for entry in bundle.items:
            total.merge(
                self._resolve_product(
                    tenant_id,
                    entry.product_id,
                    entry.variant_id,
                    entry.quantity * line.quantity,
                    (),
                    order_type,
                    include_accessories,
                )
            )
        return total

    def _resolve_product(
        self,
        tenant_id: int,
        product_id: int,
        variant_id: int | None,
        quantity: int,
        modifiers: Iterable[CartModifier],
        order_type: OrderType | None,
        include_accessories: bool = True,
    ) -> Requirements:
        product = self._product(tenant_id, product_id)
        label = product.name
        if variant_id is not None:
            label = f"{product.name} ({product.variant(variant_id).name})"
        elif product.has_variants:
            raise UnresolvableRecipe(
                f"Product '{product.name}' has variants; a variant must be chosen",
                product_id=product.id,
            )

        per_unit = Requirements()
        recipe: dict[int, ProductIngredient] = {}
        ingredients = self._catalog.ingredients_for(product.id, variant_id)
        if not ingredients:
            per_unit.untracked.append(label)
        for ingredient in ingredients:
            item = self._catalog.effective_item(tenant_id, ingredient.item_id)
            per_unit.add(item.saved_id, ingredient.quantity, f"{label}: recipe", label)
            recipe[ingredient.item_id] = ingredient

        self._apply_modifiers(tenant_id, product, label, recipe, modifiers, per_unit)

        accessories = self._catalog.accessories_for(product.id) if include_accessories else []
        for accessory in accessories:
            if accessory.applies_to(order_type) and accessory.applies_to_variant(variant_id):
                item = self._catalog.effective_item(tenant_id, accessory.item_id)
                per_unit.add(item.saved_id, accessory.quantity, f"{label}: accessory", label)

        return self._expand_composites(tenant_id, per_unit).scaled(quantity)

    def _apply_modifiers(
        self,
        tenant_id: int,
        product: Product,
        label: str,
        recipe: dict[int, ProductIngredient],
        modifiers: Iterable[CartModifier],
        per_unit: Requirements,
    ) -> None:
        offered = {m.id: m for m in self._catalog.modifiers_for(product.id)}
        chosen = list(modifiers)
        removals: list[CartModifier] = []

        for chosen_mod in chosen:
            modifier = offered.get(chosen_mod.modifier_id)
            if modifier is None:
                raise EntityNotFoundError(
                    f"Modifier #{chosen_mod.modifier_id} does not belong to '{product.name}'"
                )
            if chosen_mod.modifier_type is ModifierType.REMOVAL:
                removals.append(chosen_mod)
                continue
            if not modifier.addable:
                raise ValidationError(
                    f"'{modifier.name}' cannot be added to '{product.name}'"
                )
            if modifier.item_id is None or modifier.quantity <= 0:
                continue
            item = self._catalog.effective_item(tenant_id, modifier.item_id)
            per_unit.add(
                item.saved_id,
                modifier.quantity * chosen_mod.quantity,
                f"{label}: extra {modifier.name}",
                label,
            )

        for chosen_mod in removals:
            modifier = offered[chosen_mod.modifier_id]
            if not modifier.removable:
                raise ValidationError(
                    f"'{modifier.name}' cannot be removed from '{product.name}'"
                )
            if modifier.item_id is None:
                continue
            ingredient = recipe.get(modifier.item_id)
            if ingredient is None:
                continue
            if not ingredient.removable:
                raise ValidationError(
                    f"'{modifier.name}' is not a removable ingredient of '{product.name}'"
                )
            item = self._catalog.effective_item(tenant_id, ingredient.item_id)
            per_unit.subtract(
                item.saved_id,
                ingredient.quantity,
                f"{label}: no {modifier.name}",
            )

    def _expand_composites(self, tenant_id: int, demand: Requirements) -> Requirements:
        """Replace each composite item by its components, one level deep."""
        result = Requirements()
        result.untracked = list(demand.untracked)
        for requirement in demand:
            item = self._item(requirement.item_id)
            if not item.is_composite:
                result.add_requirement(requirement)
                continue
            if not item.components:
                raise UnresolvableRecipe(
                    f"Composite item '{item.name}' has no components"
                )

            factor = requirement.quantity / item.batch_yield()
            origin = requirement.sources[0] if requirement.sources else item.name
            for component in item.components:
                part = self._catalog.effective_item(tenant_id, component.component_item_id)
                if part.is_composite:
                    raise CircularCompositeReference(item.id, part.id)
                result.add_requirement(
                    Requirement(
                        part.saved_id,
                        component.quantity * factor,
                        [f"{origin} > {item.name}"],
                        set(requirement.products),
                    )
                )
        return result

    # --- Lookups --------------------------------------------------------------

    def _product(self, tenant_id: int, product_id: int) -> Product:
        product = self._catalog.get_product(product_id)
        if product is None or product.tenant_id not in (None, tenant_id):
            raise EntityNotFoundError(f"Product #{product_id} not found")
        return product

    def _item(self, item_id: int) -> Item:
        item = self._catalog.get_item(item_id)
        if item is None:
            raise EntityNotFoundError(f"Item #{item_id} not found")
        return item
