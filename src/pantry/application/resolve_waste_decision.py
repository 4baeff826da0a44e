"""Application service: Resolve Waste Decision use case.

``waste`` deducts the frozen quantity from stock; ``return`` changes
nothing, because the cancellation already released the reservation.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pantry.application.dto import BatchResultDTO, CancelledItemDTO
from pantry.application.list_waste_decisions import to_cancelled_item_dto
from pantry.domain.exceptions import DomainException
from pantry.domain.model.cancelled_item import WasteDecision
from pantry.domain.service.waste_queue import WasteQueue


class ResolveWasteDecisionHandler:

    def __init__(self, waste_queue: WasteQueue) -> None:
        self._waste_queue = waste_queue

    def handle(
        self,
        cancelled_item_id: int,
        decision: str,
        decided_by: int | None = None,
    ) -> CancelledItemDTO:
        record = self._waste_queue.resolve(
            cancelled_item_id, WasteDecision.parse(decision), decided_by
        )
        return to_cancelled_item_dto(record, datetime.now(timezone.utc))

    def handle_batch(
        self,
        decisions: list[tuple[int, str]],
        decided_by: int | None = None,
    ) -> BatchResultDTO:
        """Resolve many rows; one bad row does not stop the others."""
        parsed: list[tuple[int, WasteDecision]] = []
        errors: list[str] = []
        for record_id, raw in decisions:
            try:
                parsed.append((record_id, WasteDecision.parse(raw)))
            except DomainException as exc:
                errors.append(f"#{record_id}: {exc}")

        result = self._waste_queue.resolve_batch(parsed, decided_by)
        return BatchResultDTO(result.processed, errors + result.errors)
