"""Abstract repository for tenant cost overrides and computed costs.

``tenant_id=None`` is the default scope: costs derived from the shared
items' own ``cost_per_unit``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal


class CostRepository(ABC):

    @abstractmethod
    def get_override(self, tenant_id: int, item_id: int) -> Decimal | None:
        """Return the tenant's cost per serving unit for an item, or None."""

    @abstractmethod
    def set_override(self, tenant_id: int, item_id: int, cost: Decimal) -> None:
        """Store a tenant-specific cost per serving unit."""

    @abstractmethod
    def get_composite_cost(self, tenant_id: int | None, item_id: int) -> Decimal | None:
        """Return the last computed unit cost of a composite item, or None."""

    @abstractmethod
    def save_composite_cost(self, tenant_id: int | None, item_id: int, cost: Decimal) -> None:
        """Store a recomputed composite unit cost."""

    @abstractmethod
    def get_product_cost(
        self, tenant_id: int | None, product_id: int, variant_id: int | None
    ) -> Decimal | None:
        """Return the last computed recipe cost of a product or variant, or None."""

    @abstractmethod
    def save_product_cost(
        self,
        tenant_id: int | None,
        product_id: int,
        variant_id: int | None,
        cost: Decimal,
    ) -> None:
        """Store a recomputed recipe cost."""

    @abstractmethod
    def tenants(self) -> set[int]:
        """Tenants that have any override or computed cost stored."""
