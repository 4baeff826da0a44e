"""CancelledOrderItem — a pending waste/return decision.

Created whenever reserved ingredients are released by a cancellation or
an edit.  The row freezes what was released (item, quantity, unit) so a
later "waste" decision deducts exactly that amount, once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum

from pantry.domain.exceptions import ValidationError
from pantry.domain.model.units import Unit


class WasteDecision(Enum):
    WASTE = "waste"
    RETURN = "return"

    @staticmethod
    def parse(raw: str | WasteDecision) -> WasteDecision:
        if isinstance(raw, WasteDecision):
            return raw
        try:
            return WasteDecision(str(raw).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Invalid decision {raw!r}: must be 'waste' or 'return'"
            ) from None


class CancellationSource(Enum):
    ORDER_CANCELLED = "order_cancelled"
    ORDER_EDITED = "order_edited"


@dataclass
class CancelledOrderItem:
    id: int | None
    tenant_id: int
    branch_id: int | None
    order_id: int
    item_id: int
    quantity: Decimal  # storage units, as released
    unit: Unit
    source: CancellationSource
    order_item_id: int | None = None
    product_id: int | None = None
    item_name: str | None = None
    decision: WasteDecision | None = None
    decided_by: int | None = None
    decided_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def saved_id(self) -> int:
        if self.id is None:
            raise ValidationError("Cancelled item has not been saved")
        return self.id

    @property
    def is_pending(self) -> bool:
        return self.decision is None

    @property
    def stock_deducted(self) -> bool:
        return self.decision is WasteDecision.WASTE

    def age(self, now: datetime) -> timedelta:
        return now - self.created_at

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        return self.is_pending and self.age(now) > ttl

    def decide(
        self,
        decision: WasteDecision,
        decided_by: int | None,
        now: datetime | None = None,
    ) -> None:
        """Record the kitchen's decision.

        ``decided_by is None`` marks a machine-resolved (auto-expired) row.
        """
        if self.decision is not None:
            raise ValidationError(
                f"Cancelled item #{self.id} was already resolved as {self.decision.value}"
            )
        self.decision = decision
        self.decided_by = decided_by
        self.decided_at = now or datetime.now(timezone.utc)
