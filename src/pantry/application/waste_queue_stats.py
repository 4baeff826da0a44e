"""Application service: Waste Queue Stats use case (query)."""

from __future__ import annotations

from datetime import datetime

from pantry.application.dto import QueueStatsDTO
from pantry.domain.service.waste_queue import WasteQueue


class WasteQueueStatsHandler:

    def __init__(self, waste_queue: WasteQueue) -> None:
        self._waste_queue = waste_queue

    def handle(
        self,
        tenant_id: int,
        branch_id: int | None = None,
        now: datetime | None = None,
    ) -> QueueStatsDTO:
        stats = self._waste_queue.stats(tenant_id, branch_id, now)
        return QueueStatsDTO(
            pending_count=stats.pending_count,
            expiring_soon_count=stats.expiring_soon_count,
            oldest_pending_hours=(
                str(stats.oldest_pending_hours)
                if stats.oldest_pending_hours is not None
                else None
            ),
        )
