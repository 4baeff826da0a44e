"""Application service: Link Component use case.

Adds (or re-weights) a component of a composite item.  Nesting is
refused here, at link time, which is what keeps BOM expansion and cost
propagation one level deep.
"""

from __future__ import annotations

from pantry.domain.exceptions import EntityNotFoundError
from pantry.domain.model.item import Item
from pantry.domain.model.value_objects import to_decimal
from pantry.domain.repository.catalog_repository import CatalogRepository
from pantry.domain.service.cost_cascade import CostCascade


class LinkComponentHandler:

    def __init__(
        self,
        catalog_repo: CatalogRepository,
        cascade: CostCascade | None = None,
    ) -> None:
        self._catalog = catalog_repo
        self._cascade = cascade

    def handle(self, composite_id: int, component_id: int, quantity: str) -> Item:
        composite = self._catalog.get_item(composite_id)
        if composite is None:
            raise EntityNotFoundError(f"Item #{composite_id} not found")
        component = self._catalog.get_item(component_id)
        if component is None:
            raise EntityNotFoundError(f"Item #{component_id} not found")

        composite.add_component(component, to_decimal(quantity))
        self._catalog.save_item(composite)

        # The composite's batch cost changed with its recipe
        if self._cascade is not None:
            tenant_id = composite.scope.tenant_id
            self._cascade.on_item_cost_changed(component_id, tenant_id)
        return composite
