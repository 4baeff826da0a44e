"""Abstract repository for StockRecord rows and their audit trail.

Only the reservation ledger writes through this interface.  The keyed
lock registry lives here so every implementation serializes mutations
of the same (tenant, branch, item) row the same way.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from pantry.domain.exceptions import LedgerTimeout
from pantry.domain.model.stock import (
    InventoryMovement,
    LedgerAnomaly,
    StockKey,
    StockRecord,
)


class StockRepository(ABC):

    def __init__(self) -> None:
        self._locks: dict[StockKey, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def lock(self, keys: Iterable[StockKey], timeout: float) -> Iterator[None]:
        """Hold the row locks for *keys* for the duration of the block.

        Keys are always taken in sorted order so two calls over
        overlapping sets cannot deadlock.  Raises ``LedgerTimeout`` if a
        lock is not acquired within *timeout* seconds; nothing is held
        when that happens.
        """
        ordered = sorted(set(keys), key=StockKey.sort_key)
        acquired: list[threading.Lock] = []
        try:
            for key in ordered:
                row_lock = self._row_lock(key)
                if not row_lock.acquire(timeout=timeout):
                    raise LedgerTimeout(
                        f"Timed out after {timeout}s waiting for stock row {key}"
                    )
                acquired.append(row_lock)
            yield
        finally:
            for row_lock in reversed(acquired):
                row_lock.release()

    def _row_lock(self, key: StockKey) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(key, threading.Lock())

    # --- Storage --------------------------------------------------------------

    @abstractmethod
    def get(self, key: StockKey) -> StockRecord | None:
        """Return a detached copy of the stock row, or None."""

    @abstractmethod
    def list_for_branch(self, tenant_id: int, branch_id: int | None) -> list[StockRecord]:
        """Return every stock row of one branch."""

    @abstractmethod
    def save_batch(
        self,
        records: list[StockRecord],
        movements: list[InventoryMovement],
        anomalies: list[LedgerAnomaly],
    ) -> None:
        """Persist the rows and append the audit entries in one write."""

    @abstractmethod
    def movements(self, key: StockKey | None = None) -> list[InventoryMovement]:
        """Return the audit trail, optionally for one stock row."""

    @abstractmethod
    def anomalies(self) -> list[LedgerAnomaly]:
        """Return every recorded ledger anomaly."""
