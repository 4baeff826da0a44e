"""StockRecord aggregate — on-hand and promised stock per (tenant, branch, item).

Quantities are in the item's storage unit.  ``reserved_quantity`` is the
part of ``quantity`` promised to open orders; the rest is available to
promise.  Only the reservation ledger mutates these rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from pantry.domain.exceptions import ValidationError
from pantry.domain.model.units import Unit

ZERO = Decimal("0")


@dataclass(frozen=True, order=True)
class StockKey:
    tenant_id: int
    branch_id: int | None
    item_id: int

    def sort_key(self) -> tuple[int, int, int]:
        return (self.tenant_id, -1 if self.branch_id is None else self.branch_id, self.item_id)

    def __str__(self) -> str:
        branch = "-" if self.branch_id is None else self.branch_id
        return f"{self.tenant_id}/{branch}/{self.item_id}"


@dataclass
class StockRecord:
    """Aggregate root for stock tracking.

    Invariants:
    - ``0 <= reserved_quantity <= quantity``
    - ``available_quantity`` is always >= 0
    """

    key: StockKey
    quantity: Decimal = ZERO
    reserved_quantity: Decimal = ZERO

    @property
    def item_id(self) -> int:
        return self.key.item_id

    @property
    def available_quantity(self) -> Decimal:
        return self.quantity - self.reserved_quantity

    def reserve(self, quantity: Decimal) -> None:
        """Promise stock to an open order.

        Raises ValidationError if insufficient stock is available.
        """
        _require_positive(quantity, "Reservation")
        if quantity > self.available_quantity:
            raise ValidationError(
                f"Insufficient stock for item #{self.item_id} "
                f"(need {quantity}, have {self.available_quantity} available)"
            )
        self.reserved_quantity += quantity

    def release(self, quantity: Decimal) -> Decimal:
        """Return reserved stock to the available pool.

        Never refuses: releasing more than is reserved clamps at zero.
        Returns the part of *quantity* that was not actually reserved.
        """
        _require_positive(quantity, "Release")
        released = min(quantity, self.reserved_quantity)
        self.reserved_quantity -= released
        return quantity - released

    def consume(self, quantity: Decimal) -> tuple[Decimal, Decimal]:
        """Spend a reservation: both on-hand and reserved stock drop.

        Clamps at zero instead of going negative.  Returns
        ``(missing_reservation, missing_stock)`` so the caller can record
        the discrepancy.
        """
        _require_positive(quantity, "Consume")
        from_reserved = min(quantity, self.reserved_quantity)
        from_stock = min(quantity, self.quantity)
        self.reserved_quantity -= from_reserved
        self.quantity -= from_stock
        return quantity - from_reserved, quantity - from_stock

    def deduct_unreserved(self, quantity: Decimal) -> Decimal:
        """Remove physically lost stock that is no longer reserved.

        Stock promised to other open orders is left untouched; returns
        the part of *quantity* that could not be deducted.
        """
        _require_positive(quantity, "Waste")
        deducted = min(quantity, self.available_quantity)
        self.quantity -= deducted
        return quantity - deducted

    def adjust(self, delta: Decimal) -> None:
        """Receive (positive) or write off (negative) stock outside any order."""
        if delta == 0:
            raise ValidationError("Adjustment must not be zero")
        new_quantity = self.quantity + delta
        if new_quantity < 0:
            raise ValidationError(
                f"Cannot remove {-delta} of item #{self.item_id} "
                f"- only {self.quantity} on hand"
            )
        if new_quantity < self.reserved_quantity:
            raise ValidationError(
                f"Cannot remove {-delta} of item #{self.item_id} "
                f"- {self.reserved_quantity} is reserved by open orders"
            )
        self.quantity = new_quantity


class MovementKind(Enum):
    RESERVE = "reserve"
    CONSUME = "consume"
    RELEASE = "release"
    WASTE = "waste"
    ADJUSTMENT = "adjustment"


@dataclass(frozen=True)
class InventoryMovement:
    """Append-only audit row for one ledger mutation of one stock record."""

    key: StockKey
    kind: MovementKind
    quantity: Decimal  # amount requested by the caller, storage units
    quantity_before: Decimal
    quantity_after: Decimal
    reserved_before: Decimal
    reserved_after: Decimal
    order_ref: int | None = None
    reason: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class LedgerAnomaly:
    """A ledger call found less stock or reservation than it expected.

    Recorded for reconciliation; never raised, since blocking the
    kitchen is worse than an accounting discrepancy.
    """

    key: StockKey
    operation: MovementKind
    expected: Decimal
    actual: Decimal
    order_ref: int | None = None
    detail: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def discrepancy(self) -> Decimal:
        return self.expected - self.actual


@dataclass(frozen=True)
class Shortage:
    """An item whose available stock cannot cover the requested demand.

    ``required`` and ``available`` are in the item's serving unit so they
    read the way the recipe is written.
    """

    item_id: int
    item_name: str
    required: Decimal
    available: Decimal
    unit: Unit
    product_name: str | None = None

    @property
    def shortfall(self) -> Decimal:
        return self.required - self.available

    def describe(self) -> str:
        prefix = f"{self.product_name}: " if self.product_name else ""
        return (
            f"{prefix}needs {_fmt(self.required)} {self.unit.value} of {self.item_name}, "
            f"only {_fmt(self.available)} available"
        )


def _require_positive(quantity: Decimal, what: str) -> None:
    if quantity <= 0:
        raise ValidationError(f"{what} quantity must be positive")


def _fmt(value: Decimal) -> str:
    normalized = value.normalize()
    if normalized == normalized.to_integral():
        return str(normalized.quantize(Decimal("1")))
    return f"{value:.2f}"
