"""Item aggregate — raw materials, packaging and composite stock units.

An item is counted in its storage unit and consumed by recipes in its
serving unit.  A composite item ("House Sauce") is produced in batches
from plain items; composites never contain other composites, which keeps
both BOM expansion and cost propagation exactly one level deep.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from pantry.domain.exceptions import CircularCompositeReference, ValidationError
from pantry.domain.model.units import Unit, convert, validate_unit_pairing


class ItemType(Enum):
    FOOD = "food"
    NON_FOOD = "non_food"


@dataclass(frozen=True)
class ItemScope:
    """Who owns an item: shared default (``tenant_id is None``) or one tenant."""

    tenant_id: int | None = None

    @staticmethod
    def shared() -> ItemScope:
        return ItemScope(None)

    @staticmethod
    def owned(tenant_id: int) -> ItemScope:
        return ItemScope(tenant_id)

    @property
    def is_shared(self) -> bool:
        return self.tenant_id is None

    def visible_to(self, tenant_id: int) -> bool:
        return self.is_shared or self.tenant_id == tenant_id

    def __str__(self) -> str:
        return "shared" if self.is_shared else f"tenant:{self.tenant_id}"


@dataclass(frozen=True)
class CompositeComponent:
    """Edge ``composite -> component``, quantity in the component's serving unit."""

    component_item_id: int
    quantity: Decimal


@dataclass
class Item:
    """Aggregate root for a stock-keeping unit.

    Use ``Item.create()`` for new items; it validates the unit pairing.
    The plain constructor is left for repositories reconstituting
    persisted rows.
    """

    id: int | None
    name: str
    serving_unit: Unit
    storage_unit: Unit
    cost_per_unit: Decimal = Decimal("0")
    scope: ItemScope = field(default_factory=ItemScope.shared)
    item_type: ItemType = ItemType.FOOD
    is_composite: bool = False
    batch_quantity: Decimal | None = None
    batch_unit: Unit | None = None
    components: list[CompositeComponent] = field(default_factory=list)
    base_item_id: int | None = None  # set on a tenant clone of a shared item

    # --- Factory --------------------------------------------------------------

    @staticmethod
    def create(
        name: str,
        serving_unit: Unit,
        storage_unit: Unit,
        cost_per_unit: Decimal = Decimal("0"),
        scope: ItemScope | None = None,
        item_type: ItemType = ItemType.FOOD,
        is_composite: bool = False,
        batch_quantity: Decimal | None = None,
        batch_unit: Unit | None = None,
        base_item_id: int | None = None,
    ) -> Item:
        if not name or not name.strip():
            raise ValidationError("Item name is required")
        if cost_per_unit < 0:
            raise ValidationError("Item cost cannot be negative")
        validate_unit_pairing(storage_unit, serving_unit)

        item = Item(
            id=None,
            name=name.strip(),
            serving_unit=serving_unit,
            storage_unit=storage_unit,
            cost_per_unit=cost_per_unit,
            scope=scope or ItemScope.shared(),
            item_type=item_type,
            is_composite=is_composite,
            batch_quantity=batch_quantity,
            batch_unit=batch_unit,
            base_item_id=base_item_id,
        )
        if is_composite:
            item._validate_batch()
        return item

    # --- Mutations ------------------------------------------------------------

    def change_units(self, storage_unit: Unit, serving_unit: Unit) -> None:
        validate_unit_pairing(storage_unit, serving_unit)
        self.storage_unit = storage_unit
        self.serving_unit = serving_unit
        if self.is_composite:
            self._validate_batch()

    def update_cost(self, cost_per_unit: Decimal) -> None:
        if cost_per_unit < 0:
            raise ValidationError("Item cost cannot be negative")
        self.cost_per_unit = cost_per_unit

    def add_component(self, component: Item, quantity: Decimal) -> None:
        """Link *component* into this composite's batch recipe.

        Nesting is rejected here, at link time, so resolution never has
        to guard against cycles.
        """
        if not self.is_composite:
            raise ValidationError(f"Item '{self.name}' is not a composite item")
        if component.id is not None and component.id == self.id:
            raise CircularCompositeReference(self.id, component.id)
        if component.is_composite:
            raise CircularCompositeReference(self.id, component.id)
        if quantity <= 0:
            raise ValidationError("Component quantity must be positive")
        if component.id is None:
            raise ValidationError(f"Component '{component.name}' has not been saved")

        self.components = [
            c for c in self.components if c.component_item_id != component.id
        ]
        self.components.append(CompositeComponent(component.id, quantity))

    def remove_component(self, component_item_id: int) -> None:
        before = len(self.components)
        self.components = [
            c for c in self.components if c.component_item_id != component_item_id
        ]
        if len(self.components) == before:
            raise ValidationError(
                f"Item #{component_item_id} is not a component of '{self.name}'"
            )

    # --- Computed -------------------------------------------------------------

    @property
    def saved_id(self) -> int:
        if self.id is None:
            raise ValidationError(f"Item '{self.name}' has not been saved")
        return self.id

    def batch_yield(self) -> Decimal:
        """Batch output expressed in this item's serving unit."""
        quantity, unit = self._validate_batch()
        return convert(quantity, unit, self.serving_unit)

    def _validate_batch(self) -> tuple[Decimal, Unit]:
        if self.batch_quantity is None or self.batch_quantity <= 0:
            raise ValidationError(
                f"Composite item '{self.name}' needs a positive batch quantity"
            )
        if self.batch_unit is None:
            raise ValidationError(f"Composite item '{self.name}' needs a batch unit")
        validate_unit_pairing(self.batch_unit, self.serving_unit)
        return self.batch_quantity, self.batch_unit
