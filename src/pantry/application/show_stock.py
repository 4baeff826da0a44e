"""Application service: Show Stock use case (query)."""

from __future__ import annotations

from pantry.application.adjust_stock import to_stock_dto
from pantry.application.dto import MovementDTO, StockDTO
from pantry.domain.model.stock import StockKey
from pantry.domain.repository.catalog_repository import CatalogRepository
from pantry.domain.repository.stock_repository import StockRepository


class ShowStockHandler:

    def __init__(
        self,
        catalog_repo: CatalogRepository,
        stock_repo: StockRepository,
    ) -> None:
        self._catalog = catalog_repo
        self._stock_repo = stock_repo

    def handle(self, tenant_id: int, branch_id: int | None) -> list[StockDTO]:
        result = []
        for record in self._stock_repo.list_for_branch(tenant_id, branch_id):
            item = self._catalog.get_item(record.item_id)
            if item is None:
                continue
            result.append(to_stock_dto(record, item))
        return sorted(result, key=lambda dto: dto.item_name.lower())

    def movements(
        self,
        tenant_id: int,
        branch_id: int | None,
        item_id: int | None = None,
        limit: int = 20,
    ) -> list[MovementDTO]:
        """Most recent audit rows first."""
        if item_id is not None:
            rows = self._stock_repo.movements(StockKey(tenant_id, branch_id, item_id))
        else:
            rows = [
                m for m in self._stock_repo.movements()
                if m.key.tenant_id == tenant_id and m.key.branch_id == branch_id
            ]
        # The audit trail is append-only, so reversed is newest first
        rows = rows[::-1][:limit]
        return [
            MovementDTO(
                item_id=m.key.item_id,
                kind=m.kind.value,
                quantity=str(m.quantity),
                quantity_before=str(m.quantity_before),
                quantity_after=str(m.quantity_after),
                reserved_before=str(m.reserved_before),
                reserved_after=str(m.reserved_after),
                order_ref=m.order_ref,
                reason=m.reason,
                created_at=m.created_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
            )
            for m in rows
        ]
