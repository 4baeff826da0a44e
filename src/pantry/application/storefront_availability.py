"""Application service: Storefront Availability use case (query).

How many of each product the branch can still sell, for display.
"""

from __future__ import annotations

from pantry.application.dto import ProductAvailabilityDTO
from pantry.domain.repository.catalog_repository import CatalogRepository
from pantry.domain.service.availability import AvailabilityCalculator


class StorefrontAvailabilityHandler:

    def __init__(
        self,
        catalog_repo: CatalogRepository,
        availability: AvailabilityCalculator,
        sentinel: int,
    ) -> None:
        self._catalog = catalog_repo
        self._availability = availability
        self._sentinel = sentinel

    def handle(self, tenant_id: int, branch_id: int | None) -> list[ProductAvailabilityDTO]:
        counts = self._availability.max_orderable(tenant_id, branch_id)
        result = []
        for product_id, count in sorted(counts.items()):
            product = self._catalog.get_product(product_id)
            result.append(
                ProductAvailabilityDTO(
                    product_id=product_id,
                    name=product.name if product else f"product #{product_id}",
                    max_orderable=count,
                    unlimited=count >= self._sentinel,
                )
            )
        return result
