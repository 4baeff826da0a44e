"""Background reservation for newly created orders.

Order creation answers the caller as soon as the order is stored; the
reservation runs on a worker.  The fulfillability check passed moments
earlier, so a failure here is rare, but when it happens it is logged
with the order reference and counted rather than lost.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from functools import partial

from pantry.domain.service.reservation_ledger import (
    LedgerLine,
    LedgerReceipt,
    ReservationLedger,
)

logger = logging.getLogger(__name__)


class ReservationDispatcher:

    def __init__(
        self,
        ledger: ReservationLedger,
        executor: Executor | None = None,
        max_workers: int = 4,
    ) -> None:
        self._ledger = ledger
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="reserve"
        )
        self._anomaly_count = 0
        self._count_lock = threading.Lock()

    @property
    def anomaly_count(self) -> int:
        """Background reservations that failed since start-up."""
        with self._count_lock:
            return self._anomaly_count

    def dispatch(
        self,
        tenant_id: int,
        branch_id: int | None,
        lines: list[LedgerLine],
        order_ref: int,
    ) -> Future[LedgerReceipt]:
        future = self._executor.submit(
            self._ledger.reserve, tenant_id, branch_id, lines, order_ref
        )
        future.add_done_callback(partial(self._on_done, tenant_id, branch_id, order_ref))
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _on_done(
        self,
        tenant_id: int,
        branch_id: int | None,
        order_ref: int,
        future: Future[LedgerReceipt],
    ) -> None:
        exc = future.exception()
        if exc is None:
            return
        with self._count_lock:
            self._anomaly_count += 1
        logger.error(
            "Background reservation failed for order %s: %s",
            order_ref,
            exc,
            exc_info=exc,
            extra={
                "tenant_id": tenant_id,
                "branch_id": branch_id,
                "order_ref": order_ref,
                "retryable": getattr(exc, "retryable", False),
            },
        )
