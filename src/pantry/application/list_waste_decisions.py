"""Application service: List Pending Waste Decisions use case (query)."""

from __future__ import annotations

from datetime import datetime, timezone

from pantry.application.dto import CancelledItemDTO
from pantry.domain.model.cancelled_item import CancelledOrderItem
from pantry.domain.model.units import format_quantity
from pantry.domain.service.waste_queue import WasteQueue


class ListPendingWasteDecisionsHandler:

    def __init__(self, waste_queue: WasteQueue) -> None:
        self._waste_queue = waste_queue

    def handle(self, tenant_id: int, branch_id: int | None = None) -> list[CancelledItemDTO]:
        now = datetime.now(timezone.utc)
        return [
            to_cancelled_item_dto(record, now)
            for record in self._waste_queue.list_pending(tenant_id, branch_id)
        ]


def to_cancelled_item_dto(record: CancelledOrderItem, now: datetime) -> CancelledItemDTO:
    hours = record.age(now).total_seconds() / 3600
    return CancelledItemDTO(
        id=record.saved_id,
        order_id=record.order_id,
        item_id=record.item_id,
        item_name=record.item_name or f"item #{record.item_id}",
        quantity=format_quantity(record.quantity, record.unit, decimals=3),
        unit=record.unit.value,
        source=record.source.value,
        decision=record.decision.value if record.decision else None,
        age_hours=f"{hours:.1f}",
    )
