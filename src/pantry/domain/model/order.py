"""Order aggregate — the core of the order lifecycle.

The Order is an aggregate root that owns its items.  Status transitions
and payment bookkeeping are enforced here; stock effects of each
transition are coordinated by the application handlers.

    pending -> in_progress -> completed -> picked_up (delivery only)
    pending | in_progress -> cancelled | rejected
    completed | picked_up -> refunded
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from pantry.domain.exceptions import ValidationError
from pantry.domain.model.cart import CartLine, CartModifier, ModifierType
from pantry.domain.model.value_objects import Money, Quantity


class OrderStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PICKED_UP = "picked_up"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    REFUNDED = "refunded"


class OrderType(Enum):
    DINE_IN = "dine_in"
    TAKEAWAY = "takeaway"
    DELIVERY = "delivery"


class OrderSource(Enum):
    POS = "pos"
    PHONE = "phone"
    WALK_IN = "walk_in"
    DELIVERY_PARTNER = "delivery_partner"


class PaymentStatus(Enum):
    PAID = "paid"
    PENDING = "pending"
    APP_PAYMENT = "app_payment"
    REFUNDED = "refunded"
    PARTIAL_REFUND = "partial_refund"


# Statuses whose orders still hold reservations
OPEN_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.IN_PROGRESS})

MAX_LINE_ITEMS = 50


@dataclass(frozen=True)
class OrderItemModifier:
    modifier_id: int
    name: str
    modifier_type: ModifierType
    quantity: int = 1
    unit_price: Money = field(default_factory=Money.zero)

    @property
    def total(self) -> Money:
        if self.modifier_type is ModifierType.REMOVAL:
            return Money.zero()
        return self.unit_price * self.quantity


@dataclass
class OrderItem:
    """A line of an order, with price and cost locked at sale time.

    ``unit_cost_at_sale`` is the ingredient cost when the item was sold,
    so profit reports are immune to later price changes.
    """

    id: int | None
    name: str
    quantity: Quantity
    unit_price: Money
    unit_cost_at_sale: Money = field(default_factory=Money.zero)
    product_id: int | None = None
    variant_id: int | None = None
    bundle_id: int | None = None
    modifiers: list[OrderItemModifier] = field(default_factory=list)

    @property
    def saved_id(self) -> int:
        if self.id is None:
            raise ValidationError(f"Order item '{self.name}' has not been saved")
        return self.id

    @property
    def modifiers_unit_total(self) -> Money:
        result = Money.zero()
        for mod in self.modifiers:
            result = result + mod.total
        return result

    @property
    def line_total(self) -> Money:
        return (self.unit_price + self.modifiers_unit_total) * self.quantity.value

    @property
    def total_cost(self) -> Money:
        return self.unit_cost_at_sale * self.quantity.value

    def cart_line(self, quantity: int | None = None, with_modifiers: bool = True) -> CartLine:
        """The stock demand of this item (or of *quantity* units of it)."""
        return CartLine(
            quantity=self.quantity.value if quantity is None else quantity,
            product_id=self.product_id,
            variant_id=self.variant_id,
            bundle_id=self.bundle_id,
            modifiers=tuple(
                CartModifier(m.modifier_id, m.modifier_type, m.quantity)
                for m in self.modifiers
            ) if with_modifiers else (),
            label=self.name,
        )


@dataclass(frozen=True)
class StatusChange:
    from_status: OrderStatus | None
    to_status: OrderStatus
    at: datetime
    reason: str | None = None


@dataclass
class Order:
    """Aggregate root for restaurant orders.

    Use the ``Order.create()`` factory for new orders — it enforces all
    business rules.  The ``__init__`` is intentionally simple so the
    repository can reconstitute persisted orders without re-validating.
    """

    id: int | None
    tenant_id: int
    branch_id: int | None
    order_type: OrderType
    source: OrderSource
    items: list[OrderItem]
    status: OrderStatus = OrderStatus.IN_PROGRESS
    payment_status: PaymentStatus = PaymentStatus.PAID
    paid_amount: Money = field(default_factory=Money.zero)
    refund_amount: Money = field(default_factory=Money.zero)
    is_edited: bool = False
    cancellation_reason: str | None = None
    scheduled_for: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    history: list[StatusChange] = field(default_factory=list)

    @property
    def saved_id(self) -> int:
        if self.id is None:
            raise ValidationError("Order has not been saved")
        return self.id

    # --- Factory (used for NEW orders only) -----------------------------------

    @staticmethod
    def create(
        tenant_id: int,
        branch_id: int | None,
        order_type: OrderType,
        source: OrderSource,
        items: list[OrderItem],
        payment_method: str | None = None,
        is_pay_later: bool = False,
        delivery_partner_id: int | None = None,
        scheduled_for: datetime | None = None,
    ) -> Order:
        """Create a new order, enforcing all invariants.

        POS orders start directly in ``in_progress``; only scheduled
        orders wait in ``pending``.
        """
        if not items:
            raise ValidationError("Order must contain at least one item")

        if len(items) > MAX_LINE_ITEMS:
            raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per order")

        for index, item in enumerate(items, start=1):
            item.id = index

        status = OrderStatus.PENDING if scheduled_for else OrderStatus.IN_PROGRESS
        order = Order(
            id=None,
            tenant_id=tenant_id,
            branch_id=branch_id,
            order_type=order_type,
            source=source,
            items=list(items),
            status=status,
            scheduled_for=scheduled_for,
        )
        order.payment_status = _initial_payment_status(
            source, order_type, payment_method, is_pay_later, delivery_partner_id
        )
        if order.payment_status in (PaymentStatus.PAID, PaymentStatus.APP_PAYMENT):
            order.paid_amount = order.total
        order.history.append(StatusChange(None, status, order.created_at, "Order created"))
        return order

    # --- State transitions ----------------------------------------------------

    def accept(self, reason: str | None = None) -> None:
        self._transition(OrderStatus.IN_PROGRESS, {OrderStatus.PENDING}, reason or "Order accepted")

    def complete(self) -> None:
        """Transition IN_PROGRESS -> COMPLETED.

        Stock consumption happens *before* calling this, coordinated by
        the application handler; a consumption fault never blocks it.
        """
        self._transition(OrderStatus.COMPLETED, {OrderStatus.IN_PROGRESS})

    def pick_up(self) -> None:
        if self.order_type is not OrderType.DELIVERY:
            raise ValidationError("Only delivery orders can be marked as picked up")
        self._transition(
            OrderStatus.PICKED_UP,
            {OrderStatus.COMPLETED},
            "Order picked up by driver",
        )

    def cancel(self, reason: str | None = None) -> None:
        self._transition(OrderStatus.CANCELLED, OPEN_STATUSES, reason or "Order cancelled")
        self.cancellation_reason = reason or "Order cancelled"

    def reject(self, reason: str | None = None) -> None:
        self._transition(OrderStatus.REJECTED, {OrderStatus.IN_PROGRESS}, reason or "Order rejected")
        self.cancellation_reason = reason or "Order rejected"

    def refund(self, amount: Money, reason: str) -> None:
        if amount.amount <= 0:
            raise ValidationError("Refund amount must be positive")
        if amount > self.total:
            raise ValidationError(f"Refund {amount} exceeds order total {self.total}")
        self._transition(
            OrderStatus.REFUNDED,
            {OrderStatus.COMPLETED, OrderStatus.PICKED_UP},
            f"Refund processed: {reason}",
        )
        self.refund_amount = amount
        self.payment_status = (
            PaymentStatus.PARTIAL_REFUND if amount < self.total else PaymentStatus.REFUNDED
        )

    # --- Edits (in_progress only) ---------------------------------------------

    def add_item(self, item: OrderItem) -> OrderItem:
        self._assert_editable()
        if len(self.items) >= MAX_LINE_ITEMS:
            raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per order")
        item.id = max((i.id or 0 for i in self.items), default=0) + 1
        self.items.append(item)
        self.is_edited = True
        return item

    def remove_item(self, order_item_id: int) -> OrderItem:
        self._assert_editable()
        item = self.find_item(order_item_id)
        if len(self.items) == 1:
            raise ValidationError("Cannot remove the last item; cancel the order instead")
        self.items.remove(item)
        self.is_edited = True
        return item

    def change_quantity(self, order_item_id: int, quantity: int) -> int:
        """Set a new quantity and return the signed difference."""
        self._assert_editable()
        item = self.find_item(order_item_id)
        new_quantity = Quantity(quantity)
        diff = new_quantity.value - item.quantity.value
        item.quantity = new_quantity
        if diff:
            self.is_edited = True
        return diff

    def replace_modifiers(
        self, order_item_id: int, modifiers: list[OrderItemModifier]
    ) -> list[OrderItemModifier]:
        """Swap the item's modifier set, returning the previous one."""
        self._assert_editable()
        item = self.find_item(order_item_id)
        previous = item.modifiers
        item.modifiers = list(modifiers)
        self.is_edited = True
        return previous

    # --- Payments -------------------------------------------------------------

    def settle_after_edit(self) -> None:
        """Re-evaluate payment after the total changed.

        A higher total than what was paid moves the order to pending
        payment instead of silently absorbing the difference.
        """
        if self.payment_status is PaymentStatus.APP_PAYMENT:
            return
        if self.total > self.paid_amount:
            self.payment_status = PaymentStatus.PENDING
        elif self.paid_amount.amount > 0:
            self.payment_status = PaymentStatus.PAID

    def record_payment(self, amount: Money) -> None:
        if amount.amount <= 0:
            raise ValidationError("Payment amount must be positive")
        self.paid_amount = self.paid_amount + amount
        if self.paid_amount >= self.total:
            self.payment_status = PaymentStatus.PAID

    # --- Computed properties --------------------------------------------------

    @property
    def total(self) -> Money:
        result = Money(Decimal("0.00"))
        for item in self.items:
            result = result + item.line_total
        return result

    @property
    def remaining_amount(self) -> Decimal:
        """Still to pay; negative means the customer is owed a credit."""
        return self.total.difference(self.paid_amount)

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def find_item(self, order_item_id: int) -> OrderItem:
        for item in self.items:
            if item.id == order_item_id:
                return item
        raise ValidationError(f"Item #{order_item_id} not found in order #{self.id}")

    # --- Internal helpers -----------------------------------------------------

    def _assert_editable(self) -> None:
        if self.status is not OrderStatus.IN_PROGRESS:
            raise ValidationError(
                f"Cannot edit order - current status is {self.status.value}, "
                f"expected in_progress"
            )

    def _transition(
        self,
        to_status: OrderStatus,
        allowed_from: set[OrderStatus] | frozenset[OrderStatus],
        reason: str | None = None,
    ) -> None:
        if self.status not in allowed_from:
            expected = " or ".join(sorted(s.value for s in allowed_from))
            raise ValidationError(
                f"Cannot move order to {to_status.value} - current status is "
                f"{self.status.value}, expected {expected}"
            )
        self.history.append(
            StatusChange(self.status, to_status, datetime.now(timezone.utc), reason)
        )
        self.status = to_status


def _initial_payment_status(
    source: OrderSource,
    order_type: OrderType,
    payment_method: str | None,
    is_pay_later: bool,
    delivery_partner_id: int | None,
) -> PaymentStatus:
    if source is OrderSource.DELIVERY_PARTNER:
        return PaymentStatus.APP_PAYMENT
    if order_type is OrderType.DELIVERY and delivery_partner_id is not None:
        return PaymentStatus.APP_PAYMENT
    if order_type is OrderType.DINE_IN and is_pay_later:
        return PaymentStatus.PENDING
    if order_type is OrderType.DELIVERY and payment_method == "cash":
        return PaymentStatus.PENDING
    return PaymentStatus.PAID
