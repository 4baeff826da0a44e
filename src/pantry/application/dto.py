"""Data Transfer Objects — plain containers that cross layer boundaries.

DTOs carry data between the CLI and application layers without
exposing domain internals to the outside world.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ModifierSpec:
    """Input: a modifier chosen on an order line."""

    modifier_id: int
    modifier_type: str = "extra"  # "extra" | "removal"
    quantity: int = 1


@dataclass(frozen=True)
class OrderItemSpec:
    """Input: what the customer asked for on one line."""

    quantity: int
    product_id: int | None = None
    variant_id: int | None = None
    bundle_id: int | None = None
    modifiers: tuple[ModifierSpec, ...] = ()


@dataclass(frozen=True)
class OrderItemDTO:
    """Output: a single order item as displayed to the user."""

    id: int
    name: str
    quantity: int
    unit_price: str  # formatted, e.g. "$15.00"
    modifiers: list[str]
    line_total: str
    unit_cost: str


@dataclass(frozen=True)
class OrderDTO:
    """Output: a complete order as displayed to the user."""

    id: int
    tenant_id: int
    branch_id: int | None
    order_type: str
    source: str
    status: str
    payment_status: str
    items: list[OrderItemDTO]
    total: str
    paid_amount: str
    remaining_amount: str
    is_edited: bool
    created_at: str
    history: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class StockDTO:
    item_id: int
    item_name: str
    quantity: str
    reserved_quantity: str
    available_quantity: str
    unit: str


@dataclass(frozen=True)
class MovementDTO:
    item_id: int
    kind: str
    quantity: str
    quantity_before: str
    quantity_after: str
    reserved_before: str
    reserved_after: str
    order_ref: int | None
    reason: str | None
    created_at: str


@dataclass(frozen=True)
class CancelledItemDTO:
    id: int
    order_id: int
    item_id: int
    item_name: str
    quantity: str
    unit: str
    source: str
    decision: str | None
    age_hours: str


@dataclass(frozen=True)
class FulfillabilityDTO:
    can_fulfill: bool
    shortages: list[str]
    unverifiable: list[str]


@dataclass(frozen=True)
class BatchResultDTO:
    processed: int
    errors: list[str]


@dataclass(frozen=True)
class QueueStatsDTO:
    pending_count: int
    expiring_soon_count: int
    oldest_pending_hours: str | None


@dataclass(frozen=True)
class CascadeDTO:
    item_id: int
    effective_cost: str
    composites: dict[int, str]
    products: dict[str, str]


@dataclass(frozen=True)
class ProductAvailabilityDTO:
    product_id: int
    name: str
    max_orderable: int
    unlimited: bool
