"""Application service: Update Item Cost use case (pricing layer entry).

Sets a tenant-specific cost override, or the shared default cost, and
runs the cost cascade so composite and product costs follow.

This does NOT affect existing orders: they captured
``unit_cost_at_sale`` when they were placed.
"""

from __future__ import annotations

from decimal import Decimal

from pantry.application.dto import CascadeDTO
from pantry.domain.exceptions import EntityNotFoundError, ValidationError
from pantry.domain.model.value_objects import to_decimal
from pantry.domain.repository.catalog_repository import CatalogRepository
from pantry.domain.repository.cost_repository import CostRepository
from pantry.domain.service.cost_cascade import CascadeResult, CostCalculator, CostCascade


class UpdateItemCostHandler:

    def __init__(
        self,
        catalog_repo: CatalogRepository,
        cost_repo: CostRepository,
        calculator: CostCalculator,
        cascade: CostCascade,
    ) -> None:
        self._catalog = catalog_repo
        self._cost_repo = cost_repo
        self._calculator = calculator
        self._cascade = cascade

    def handle(self, item_id: int, cost: str, tenant_id: int | None = None) -> CascadeDTO:
        new_cost = to_decimal(cost, "cost")
        if new_cost < 0:
            raise ValidationError("Item cost cannot be negative")

        if tenant_id is None:
            item = self._catalog.get_item(item_id)
            if item is None:
                raise EntityNotFoundError(f"Item #{item_id} not found")
        else:
            item = self._catalog.effective_item(tenant_id, item_id)
        if item.is_composite:
            raise ValidationError(
                f"Cost of composite item '{item.name}' is derived from its components"
            )

        if tenant_id is None:
            item.update_cost(new_cost)
            self._catalog.save_item(item)
        else:
            self._cost_repo.set_override(tenant_id, item.saved_id, new_cost)

        result = self._cascade.on_item_cost_changed(item.saved_id, tenant_id)
        return to_cascade_dto(result, self._calculator.effective_cost(tenant_id, item.saved_id))


def to_cascade_dto(result: CascadeResult, effective_cost: Decimal) -> CascadeDTO:
    return CascadeDTO(
        item_id=result.item_id,
        effective_cost=str(effective_cost),
        composites={k: str(v) for k, v in result.composites.items()},
        products={
            f"{pid}" if vid is None else f"{pid}/{vid}": str(cost)
            for (pid, vid), cost in result.products.items()
        },
    )
