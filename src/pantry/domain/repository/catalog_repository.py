"""Abstract repository for the catalog: items, products and recipe edges.

Defined in the domain layer so the domain never depends on
infrastructure. Concrete implementations (JSON, SQL, in-memory)
live in the infrastructure layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pantry.domain.exceptions import EntityNotFoundError
from pantry.domain.model.item import Item
from pantry.domain.model.product import (
    Bundle,
    Product,
    ProductAccessory,
    ProductIngredient,
    ProductModifier,
)


class CatalogRepository(ABC):

    # --- Items ----------------------------------------------------------------

    @abstractmethod
    def get_item(self, item_id: int) -> Item | None:
        """Return an item by its ID, or None if not found."""

    @abstractmethod
    def list_items(self) -> list[Item]:
        """Return every item, shared and tenant-owned."""

    @abstractmethod
    def save_item(self, item: Item) -> None:
        """Persist a new or updated item, assigning an ID to new ones."""

    def find_override(self, tenant_id: int, base_item_id: int) -> Item | None:
        """Return the tenant's clone of a shared item, if it has one."""
        for item in self.list_items():
            if item.base_item_id == base_item_id and item.scope.tenant_id == tenant_id:
                return item
        return None

    def find_item_by_name(self, tenant_id: int | None, name: str) -> Item | None:
        for item in self.list_items():
            if item.scope.tenant_id == tenant_id and item.name.lower() == name.lower():
                return item
        return None

    def effective_item(self, tenant_id: int, item_id: int) -> Item:
        """Resolve which item a tenant actually uses for *item_id*.

        A tenant-owned clone shadows the shared default it was cloned
        from; another tenant's item is invisible.
        """
        item = self.get_item(item_id)
        if item is None or not item.scope.visible_to(tenant_id):
            raise EntityNotFoundError(f"Item #{item_id} not found")
        if item.scope.is_shared:
            override = self.find_override(tenant_id, item_id)
            if override is not None:
                return override
        return item

    def composites_using(self, item_id: int) -> list[Item]:
        return [
            item
            for item in self.list_items()
            if item.is_composite
            and any(c.component_item_id == item_id for c in item.components)
        ]

    # --- Products -------------------------------------------------------------

    @abstractmethod
    def get_product(self, product_id: int) -> Product | None:
        """Return a product by its ID, or None if not found."""

    @abstractmethod
    def list_products(self) -> list[Product]:
        """Return every product in the catalog."""

    @abstractmethod
    def save_product(self, product: Product) -> None:
        """Persist a new or updated product."""

    @abstractmethod
    def get_bundle(self, bundle_id: int) -> Bundle | None:
        """Return a bundle by its ID, or None if not found."""

    def products_for(self, tenant_id: int) -> list[Product]:
        return [
            p for p in self.list_products()
            if p.tenant_id is None or p.tenant_id == tenant_id
        ]

    # --- Recipe edges ---------------------------------------------------------

    @abstractmethod
    def list_ingredients(self) -> list[ProductIngredient]:
        """Return every product ingredient edge."""

    @abstractmethod
    def list_modifiers(self) -> list[ProductModifier]:
        """Return every product modifier."""

    @abstractmethod
    def list_accessories(self) -> list[ProductAccessory]:
        """Return every product accessory edge."""

    def ingredients_for(
        self, product_id: int, variant_id: int | None = None
    ) -> list[ProductIngredient]:
        """Ingredients scoped exactly to the product or to one variant."""
        return [
            i for i in self.list_ingredients()
            if i.product_id == product_id and i.variant_id == variant_id
        ]

    def modifiers_for(self, product_id: int) -> list[ProductModifier]:
        return [m for m in self.list_modifiers() if m.product_id == product_id]

    def accessories_for(self, product_id: int) -> list[ProductAccessory]:
        return [a for a in self.list_accessories() if a.product_id == product_id]

    def ingredients_using(self, item_ids: set[int]) -> list[ProductIngredient]:
        return [i for i in self.list_ingredients() if i.item_id in item_ids]
