"""Domain service: the cancellation waste/return decision queue.

When an order (or part of one) is cancelled after its ingredients were
reserved, the reservation is released right away and one pending row per
affected ingredient is queued.  The kitchen later says what physically
happened:

- ``waste``: the food was made or spoiled; stock is deducted once.
- ``return``: nothing was touched; the release already put it back.

Rows left undecided past the TTL are resolved as waste by the sweep.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from pantry.domain.exceptions import DomainException, LedgerTimeout, ValidationError
from pantry.domain.model.cancelled_item import (
    CancellationSource,
    CancelledOrderItem,
    WasteDecision,
)
from pantry.domain.model.cart import CartLine
from pantry.domain.model.order import Order, OrderItem
from pantry.domain.repository.cancelled_item_repository import CancelledItemRepository
from pantry.domain.service.bom_resolver import BomResolver
from pantry.domain.service.reservation_ledger import LedgerLine, ReservationLedger

logger = logging.getLogger(__name__)

DEFAULT_TTL_HOURS = 24
DEFAULT_EXPIRING_SOON_HOURS = 6


@dataclass(frozen=True)
class BatchResult:
    processed: int
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class QueueStats:
    pending_count: int
    expiring_soon_count: int
    oldest_pending_hours: Decimal | None


class WasteQueue:

    def __init__(
        self,
        cancelled_repo: CancelledItemRepository,
        ledger: ReservationLedger,
        resolver: BomResolver,
        ttl_hours: int = DEFAULT_TTL_HOURS,
        expiring_soon_hours: int = DEFAULT_EXPIRING_SOON_HOURS,
    ) -> None:
        self._cancelled_repo = cancelled_repo
        self._ledger = ledger
        self._resolver = resolver
        self._ttl = timedelta(hours=ttl_hours)
        self._expiring_soon = timedelta(hours=expiring_soon_hours)

    # --- Enqueue --------------------------------------------------------------

    def release_order_items(
        self,
        order: Order,
        affected: list[tuple[OrderItem, CartLine]],
        source: CancellationSource,
    ) -> list[CancelledOrderItem]:
        """Resolve each affected item's demand, then release and queue it."""
        resolved = [
            (item, self._resolver.ledger_lines_for(order.tenant_id, [line], order.order_type))
            for item, line in affected
        ]
        return self.create_cancelled_item_records(order, resolved, source)

    def create_cancelled_item_records(
        self,
        order: Order,
        affected: list[tuple[OrderItem, list[LedgerLine]]],
        source: CancellationSource,
    ) -> list[CancelledOrderItem]:
        """Release the reservations in one ledger call and queue the rows.

        One row is created per (order item, ingredient), each with
        ``decision = None``.
        """
        all_lines = [line for _, lines in affected for line in lines]
        if not all_lines:
            return []

        reason = (
            "Order cancelled"
            if source is CancellationSource.ORDER_CANCELLED
            else "Order edited"
        )
        self._ledger.release_reservation(
            order.tenant_id, order.branch_id, all_lines, order.id, reason
        )

        records = [
            CancelledOrderItem(
                id=None,
                tenant_id=order.tenant_id,
                branch_id=order.branch_id,
                order_id=order.saved_id,
                item_id=line.item_id,
                quantity=line.quantity,
                unit=line.storage_unit,
                source=source,
                order_item_id=order_item.id,
                product_id=order_item.product_id,
                item_name=line.item_name,
            )
            for order_item, lines in affected
            for line in lines
        ]
        self._cancelled_repo.add_all(records)
        logger.info(
            "Queued %d cancelled item(s) for order %s",
            len(records),
            order.id,
            extra={
                "tenant_id": order.tenant_id,
                "branch_id": order.branch_id,
                "order_ref": order.id,
                "source": source.value,
            },
        )
        return records

    # --- Resolve --------------------------------------------------------------

    def list_pending(
        self, tenant_id: int, branch_id: int | None = None
    ) -> list[CancelledOrderItem]:
        return self._cancelled_repo.list_pending(tenant_id, branch_id)

    def resolve(
        self,
        record_id: int,
        decision: WasteDecision,
        decided_by: int | None,
        now: datetime | None = None,
    ) -> CancelledOrderItem:
        """Apply a kitchen decision exactly once.

        The row is claimed with a conditional update before the ledger
        call; a second resolver finds it already decided and is refused.
        """
        record = self._resolve(record_id, decision, decided_by, now)
        if record is None:
            raise ValidationError(f"Cancelled item #{record_id} was already resolved")
        return record

    def resolve_batch(
        self,
        decisions: list[tuple[int, WasteDecision]],
        decided_by: int | None,
    ) -> BatchResult:
        processed = 0
        errors: list[str] = []
        for record_id, decision in decisions:
            try:
                self.resolve(record_id, decision, decided_by)
            except DomainException as exc:
                errors.append(f"#{record_id}: {exc}")
                continue
            processed += 1
        return BatchResult(processed, errors)

    def auto_expire(self, now: datetime | None = None) -> BatchResult:
        """Resolve every row pending longer than the TTL as machine waste."""
        now = now or datetime.now(timezone.utc)
        expired = 0
        errors: list[str] = []
        for record in self._cancelled_repo.list_pending_older_than(now - self._ttl):
            try:
                if self._resolve(record.saved_id, WasteDecision.WASTE, None, now) is not None:
                    expired += 1
            except DomainException as exc:
                errors.append(f"#{record.id}: {exc}")

        if expired or errors:
            logger.info(
                "Auto-expired %d cancelled item(s), %d error(s)",
                expired,
                len(errors),
                extra={"expired": expired, "errors": len(errors)},
            )
        return BatchResult(expired, errors)

    def stats(
        self,
        tenant_id: int,
        branch_id: int | None = None,
        now: datetime | None = None,
    ) -> QueueStats:
        now = now or datetime.now(timezone.utc)
        pending = self._cancelled_repo.list_pending(tenant_id, branch_id)
        soon = self._ttl - self._expiring_soon
        expiring = [r for r in pending if r.age(now) > soon]
        oldest = None
        if pending:
            seconds = Decimal(str(max(r.age(now) for r in pending).total_seconds()))
            oldest = (seconds / Decimal("3600")).quantize(Decimal("0.1"))
        return QueueStats(len(pending), len(expiring), oldest)

    # --- Internal helpers -----------------------------------------------------

    def _resolve(
        self,
        record_id: int,
        decision: WasteDecision,
        decided_by: int | None,
        now: datetime | None,
    ) -> CancelledOrderItem | None:
        record = self._cancelled_repo.claim(record_id, decision, decided_by, now)
        if record is None:
            return None
        if decision is WasteDecision.RETURN:
            return record

        line = LedgerLine(
            item_id=record.item_id,
            quantity=record.quantity,
            storage_unit=record.unit,
            serving_unit=record.unit,
            item_name=record.item_name or "",
        )
        try:
            self._ledger.deduct_waste_only(
                record.tenant_id,
                record.branch_id,
                [line],
                record.order_id,
                "Auto-expired waste" if decided_by is None else "Kitchen waste decision",
            )
        except LedgerTimeout:
            self._cancelled_repo.unclaim(record_id)
            raise
        return record
