"""Application service: Auto-expire sweep.

Entry point for the external scheduler.  Every waste decision left
pending past the TTL is resolved as machine waste (``decided_by`` is
empty) so stock never sits in limbo indefinitely.
"""

from __future__ import annotations

from datetime import datetime

from pantry.application.dto import BatchResultDTO
from pantry.domain.service.waste_queue import WasteQueue


class AutoExpireHandler:

    def __init__(self, waste_queue: WasteQueue) -> None:
        self._waste_queue = waste_queue

    def handle(self, now: datetime | None = None) -> BatchResultDTO:
        result = self._waste_queue.auto_expire(now)
        return BatchResultDTO(processed=result.processed, errors=result.errors)
