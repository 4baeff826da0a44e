"""Abstract repository for the waste/return decision queue."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from datetime import datetime

from pantry.domain.exceptions import EntityNotFoundError
from pantry.domain.model.cancelled_item import CancelledOrderItem, WasteDecision


class CancelledItemRepository(ABC):

    def __init__(self) -> None:
        self._claim_lock = threading.Lock()

    @abstractmethod
    def get_by_id(self, record_id: int) -> CancelledOrderItem | None:
        """Return a queue row by its ID, or None if not found."""

    @abstractmethod
    def list_all(self) -> list[CancelledOrderItem]:
        """Return every queue row, resolved or not."""

    @abstractmethod
    def add_all(self, records: list[CancelledOrderItem]) -> None:
        """Insert new rows, assigning their IDs."""

    @abstractmethod
    def save(self, record: CancelledOrderItem) -> None:
        """Persist an updated row."""

    def list_pending(
        self, tenant_id: int | None = None, branch_id: int | None = None
    ) -> list[CancelledOrderItem]:
        """Pending rows, oldest first; ``tenant_id=None`` means every tenant."""
        rows = [
            r for r in self.list_all()
            if r.is_pending
            and (tenant_id is None or r.tenant_id == tenant_id)
            and (branch_id is None or r.branch_id == branch_id)
        ]
        return sorted(rows, key=lambda r: r.created_at)

    def list_pending_older_than(self, cutoff: datetime) -> list[CancelledOrderItem]:
        return [r for r in self.list_pending() if r.created_at < cutoff]

    # --- Conditional update ---------------------------------------------------

    def claim(
        self,
        record_id: int,
        decision: WasteDecision,
        decided_by: int | None,
        now: datetime | None = None,
    ) -> CancelledOrderItem | None:
        """Set the decision only if the row is still undecided.

        Returns the claimed row, or None if someone else resolved it
        first.  This is the single point that makes resolution
        exactly-once.
        """
        with self._claim_lock:
            record = self.get_by_id(record_id)
            if record is None:
                raise EntityNotFoundError(f"Cancelled item #{record_id} not found")
            if not record.is_pending:
                return None
            record.decide(decision, decided_by, now)
            self.save(record)
            return record

    def unclaim(self, record_id: int) -> None:
        """Undo a claim whose follow-up ledger call failed."""
        with self._claim_lock:
            record = self.get_by_id(record_id)
            if record is None:
                raise EntityNotFoundError(f"Cancelled item #{record_id} not found")
            record.decision = None
            record.decided_by = None
            record.decided_at = None
            self.save(record)
