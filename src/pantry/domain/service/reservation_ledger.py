"""Domain service: Reservation Ledger.

The only code allowed to change ``StockRecord.quantity`` or
``reserved_quantity``.  Every call follows the same shape:

    lock every row (sorted, bounded wait) -> load -> validate -> mutate
    -> one ``save_batch`` with the rows, movements and anomalies

so a call either lands completely or not at all, and two calls touching
the same (tenant, branch, item) row are serialized.

``reserve`` is all-or-nothing and refuses on shortage.  ``consume``,
``release_reservation`` and ``deduct_waste_only`` never refuse: when the
row holds less than expected they clamp at zero and record a
``LedgerAnomaly`` for reconciliation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from decimal import Decimal

from pantry.domain.exceptions import ReservationConflict, ValidationError
from pantry.domain.model.stock import (
    InventoryMovement,
    LedgerAnomaly,
    MovementKind,
    Shortage,
    StockKey,
    StockRecord,
)
from pantry.domain.model.units import Unit, convert, to_serving_units
from pantry.domain.repository.stock_repository import StockRepository

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 5.0


@dataclass(frozen=True)
class LedgerLine:
    """One item's share of a ledger call, in the item's storage unit."""

    item_id: int
    quantity: Decimal
    storage_unit: Unit
    serving_unit: Unit
    item_name: str = ""

    def in_serving_units(self, value: Decimal) -> Decimal:
        return to_serving_units(value, self.storage_unit, self.serving_unit)


@dataclass(frozen=True)
class LedgerReceipt:
    movements: list[InventoryMovement]
    anomalies: list[LedgerAnomaly]


class ReservationLedger:

    def __init__(
        self,
        stock_repo: StockRepository,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> None:
        self._stock_repo = stock_repo
        self._lock_timeout = lock_timeout

    # --- Operations -----------------------------------------------------------

    def reserve(
        self,
        tenant_id: int,
        branch_id: int | None,
        lines: Iterable[LedgerLine],
        order_ref: int | None,
    ) -> LedgerReceipt:
        """Promise stock to an order, all-or-nothing.

        Phase 1 checks every row against its available quantity and
        fails before any mutation; phase 2 reserves and persists.
        Raises ``ReservationConflict`` listing every shortfall.
        """
        with self._rows(tenant_id, branch_id, lines) as rows:
            # Phase 1: validate
            shortages = [
                Shortage(
                    item_id=line.item_id,
                    item_name=line.item_name or f"item #{line.item_id}",
                    required=line.in_serving_units(line.quantity),
                    available=line.in_serving_units(record.available_quantity),
                    unit=line.serving_unit,
                )
                for line, record in rows
                if line.quantity > record.available_quantity
            ]
            if shortages:
                raise ReservationConflict(shortages)

            # Phase 2: mutate and persist
            movements = []
            for line, record in rows:
                before = replace(record)
                record.reserve(line.quantity)
                movements.append(
                    _movement(before, record, MovementKind.RESERVE, line.quantity, order_ref)
                )
            self._commit([record for _, record in rows], movements, [])

        logger.info(
            "Reserved %d item(s) for order %s",
            len(movements),
            order_ref,
            extra={"tenant_id": tenant_id, "branch_id": branch_id, "order_ref": order_ref},
        )
        return LedgerReceipt(movements, [])

    def consume(
        self,
        tenant_id: int,
        branch_id: int | None,
        lines: Iterable[LedgerLine],
        order_ref: int | None,
    ) -> LedgerReceipt:
        """Spend an order's reservation: on-hand and reserved both drop."""
        return self._apply(
            tenant_id, branch_id, lines, order_ref, None, MovementKind.CONSUME, _consume
        )

    def release_reservation(
        self,
        tenant_id: int,
        branch_id: int | None,
        lines: Iterable[LedgerLine],
        order_ref: int | None,
        reason: str,
    ) -> LedgerReceipt:
        """Return reserved stock to the available pool; on-hand is untouched."""
        return self._apply(
            tenant_id, branch_id, lines, order_ref, reason, MovementKind.RELEASE, _release
        )

    def deduct_waste_only(
        self,
        tenant_id: int,
        branch_id: int | None,
        lines: Iterable[LedgerLine],
        order_ref: int | None,
        reason: str,
    ) -> LedgerReceipt:
        """Remove physically wasted stock whose reservation was already released.

        Only the unreserved part of a row can be deducted; stock promised
        to other open orders is left alone and the gap is recorded.
        """
        return self._apply(
            tenant_id, branch_id, lines, order_ref, reason, MovementKind.WASTE, _waste
        )

    def adjust(
        self,
        tenant_id: int,
        branch_id: int | None,
        item_id: int,
        delta: Decimal,
        reason: str,
    ) -> InventoryMovement:
        """Receive (positive *delta*) or write off stock outside any order.

        Refuses to push on-hand below zero or below what is reserved.
        """
        key = StockKey(tenant_id, branch_id, item_id)
        with self._stock_repo.lock([key], self._lock_timeout):
            record = self._stock_repo.get(key)
            if record is None:
                if delta < 0:
                    raise ValidationError(f"No stock of item #{item_id} to remove")
                record = StockRecord(key)
            before = replace(record)
            record.adjust(delta)
            movement = _movement(before, record, MovementKind.ADJUSTMENT, delta, None, reason)
            self._commit([record], [movement], [])

        logger.info(
            "Adjusted item #%s by %s: %s",
            item_id,
            delta,
            reason,
            extra={"tenant_id": tenant_id, "branch_id": branch_id, "item_id": item_id},
        )
        return movement

    # --- Internal helpers -----------------------------------------------------

    def _apply(
        self,
        tenant_id: int,
        branch_id: int | None,
        lines: Iterable[LedgerLine],
        order_ref: int | None,
        reason: str | None,
        kind: MovementKind,
        mutate: Callable[[StockRecord, LedgerLine, int | None], LedgerAnomaly | None],
    ) -> LedgerReceipt:
        movements: list[InventoryMovement] = []
        anomalies: list[LedgerAnomaly] = []
        with self._rows(tenant_id, branch_id, lines, create=False) as rows:
            touched: list[StockRecord] = []
            for line, record in rows:
                if record is None:
                    anomalies.append(
                        LedgerAnomaly(
                            key=StockKey(tenant_id, branch_id, line.item_id),
                            operation=kind,
                            expected=line.quantity,
                            actual=Decimal("0"),
                            order_ref=order_ref,
                            detail="no stock record",
                        )
                    )
                    continue
                before = replace(record)
                anomaly = mutate(record, line, order_ref)
                movements.append(
                    _movement(before, record, kind, line.quantity, order_ref, reason)
                )
                touched.append(record)
                if anomaly is not None:
                    anomalies.append(anomaly)
            self._commit(touched, movements, anomalies)

        for anomaly in anomalies:
            logger.warning(
                "Ledger anomaly during %s of item #%s for order %s: %s",
                kind.value,
                anomaly.key.item_id,
                order_ref,
                anomaly.detail,
                extra={
                    "tenant_id": tenant_id,
                    "branch_id": branch_id,
                    "item_id": anomaly.key.item_id,
                    "order_ref": order_ref,
                    "discrepancy": str(anomaly.discrepancy),
                },
            )
        return LedgerReceipt(movements, anomalies)

    @contextmanager
    def _rows(
        self,
        tenant_id: int,
        branch_id: int | None,
        lines: Iterable[LedgerLine],
        create: bool = True,
    ) -> Iterator[list[tuple[LedgerLine, StockRecord]]]:
        """Lock and load the rows for *lines*, merged by item.

        With ``create=False`` a missing row is yielded as None.
        """
        merged = _merge(lines)
        keys = [StockKey(tenant_id, branch_id, item_id) for item_id in merged]
        with self._stock_repo.lock(keys, self._lock_timeout):
            rows = []
            for key in keys:
                record = self._stock_repo.get(key)
                if record is None and create:
                    record = StockRecord(key)
                rows.append((merged[key.item_id], record))
            yield rows

    def _commit(
        self,
        records: list[StockRecord],
        movements: list[InventoryMovement],
        anomalies: list[LedgerAnomaly],
    ) -> None:
        if records or movements or anomalies:
            self._stock_repo.save_batch(records, movements, anomalies)


def _merge(lines: Iterable[LedgerLine]) -> dict[int, LedgerLine]:
    """Sum duplicate item lines so each row is locked and touched once."""
    merged: dict[int, LedgerLine] = {}
    for line in lines:
        if line.quantity < 0:
            raise ValidationError(f"Ledger quantity for item #{line.item_id} is negative")
        if line.quantity == 0:
            continue
        existing = merged.get(line.item_id)
        if existing is None:
            merged[line.item_id] = line
            continue
        quantity = convert(line.quantity, line.storage_unit, existing.storage_unit)
        merged[line.item_id] = replace(existing, quantity=existing.quantity + quantity)
    return merged


def _consume(record: StockRecord, line: LedgerLine, order_ref: int | None) -> LedgerAnomaly | None:
    reserved, on_hand = record.reserved_quantity, record.quantity
    missing_reservation, missing_stock = record.consume(line.quantity)
    if not missing_reservation and not missing_stock:
        return None
    return LedgerAnomaly(
        key=record.key,
        operation=MovementKind.CONSUME,
        expected=line.quantity,
        actual=min(reserved, on_hand, line.quantity),
        order_ref=order_ref,
        detail=f"expected {line.quantity} reserved, found {reserved} reserved "
        f"and {on_hand} on hand",
    )


def _release(record: StockRecord, line: LedgerLine, order_ref: int | None) -> LedgerAnomaly | None:
    missing = record.release(line.quantity)
    if not missing:
        return None
    return LedgerAnomaly(
        key=record.key,
        operation=MovementKind.RELEASE,
        expected=line.quantity,
        actual=line.quantity - missing,
        order_ref=order_ref,
        detail=f"released {line.quantity - missing} of {line.quantity} expected",
    )


def _waste(record: StockRecord, line: LedgerLine, order_ref: int | None) -> LedgerAnomaly | None:
    missing = record.deduct_unreserved(line.quantity)
    if not missing:
        return None
    return LedgerAnomaly(
        key=record.key,
        operation=MovementKind.WASTE,
        expected=line.quantity,
        actual=line.quantity - missing,
        order_ref=order_ref,
        detail=f"only {line.quantity - missing} of {line.quantity} was unreserved stock",
    )


def _movement(
    before: StockRecord,
    after: StockRecord,
    kind: MovementKind,
    quantity: Decimal,
    order_ref: int | None,
    reason: str | None = None,
) -> InventoryMovement:
    return InventoryMovement(
        key=after.key,
        kind=kind,
        quantity=quantity,
        quantity_before=before.quantity,
        quantity_after=after.quantity,
        reserved_before=before.reserved_quantity,
        reserved_after=after.reserved_quantity,
        order_ref=order_ref,
        reason=reason,
    )
