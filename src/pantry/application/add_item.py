"""Application service: Add Item use case.

Unit pairing and composite batch rules are enforced by ``Item.create``;
this handler adds the catalog-wide rules (unique names per owner, one
tenant clone per shared item).
"""

from __future__ import annotations

from pantry.domain.exceptions import EntityNotFoundError, ValidationError
from pantry.domain.model.item import Item, ItemScope, ItemType
from pantry.domain.model.units import Unit, default_storage_unit
from pantry.domain.model.value_objects import to_decimal
from pantry.domain.repository.catalog_repository import CatalogRepository


class AddItemHandler:

    def __init__(self, catalog_repo: CatalogRepository) -> None:
        self._catalog = catalog_repo

    def handle(
        self,
        name: str,
        serving_unit: str,
        storage_unit: str | None = None,
        cost_per_unit: str = "0",
        tenant_id: int | None = None,
        item_type: str = "food",
        is_composite: bool = False,
        batch_quantity: str | None = None,
        batch_unit: str | None = None,
        base_item_id: int | None = None,
    ) -> Item:
        """Add a new item to the catalog.

        ``base_item_id`` creates a tenant clone that shadows a shared
        item for that tenant only.
        """
        if not name or not name.strip():
            raise ValidationError("Item name is required")

        if self._catalog.find_item_by_name(tenant_id, name.strip()) is not None:
            raise ValidationError(f"Item '{name.strip()}' already exists")

        if base_item_id is not None:
            self._check_clone(tenant_id, base_item_id)

        serving = Unit.parse(serving_unit)
        try:
            kind = ItemType(item_type)
        except ValueError:
            raise ValidationError(f"Invalid item type {item_type!r}") from None

        item = Item.create(
            name=name,
            serving_unit=serving,
            storage_unit=Unit.parse(storage_unit) if storage_unit else default_storage_unit(serving),
            cost_per_unit=to_decimal(cost_per_unit, "cost"),
            scope=ItemScope.owned(tenant_id) if tenant_id is not None else ItemScope.shared(),
            item_type=kind,
            is_composite=is_composite,
            batch_quantity=to_decimal(batch_quantity) if batch_quantity is not None else None,
            batch_unit=Unit.parse(batch_unit) if batch_unit else None,
            base_item_id=base_item_id,
        )
        self._catalog.save_item(item)
        return item

    def _check_clone(self, tenant_id: int | None, base_item_id: int) -> None:
        if tenant_id is None:
            raise ValidationError("Only a tenant can clone a shared item")
        base = self._catalog.get_item(base_item_id)
        if base is None:
            raise EntityNotFoundError(f"Item #{base_item_id} not found")
        if not base.scope.is_shared:
            raise ValidationError(f"Item '{base.name}' is not a shared item")
        if self._catalog.find_override(tenant_id, base_item_id) is not None:
            raise ValidationError(
                f"Tenant {tenant_id} already has its own copy of '{base.name}'"
            )
