"""JSON-file-backed implementation of OrderRepository."""

from __future__ import annotations

import threading
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from pantry.domain.model.cart import ModifierType
from pantry.domain.model.order import (
    Order,
    OrderItem,
    OrderItemModifier,
    OrderSource,
    OrderStatus,
    OrderType,
    PaymentStatus,
    StatusChange,
)
from pantry.domain.model.value_objects import Money, Quantity
from pantry.domain.repository.order_repository import OrderRepository
from pantry.infrastructure.persistence.json_files import read_json, write_json


class JsonOrderRepository(OrderRepository):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._file_lock = threading.RLock()
        self._ensure_file()

    # --- OrderRepository interface --------------------------------------------

    def next_id(self) -> int:
        orders = self._load_raw()
        if not orders:
            return 1
        return max(o["id"] for o in orders) + 1

    def get_by_id(self, order_id: int) -> Order | None:
        for raw in self._load_raw():
            if raw["id"] == order_id:
                return self._to_domain(raw)
        return None

    def list_by_status(self, *statuses: OrderStatus) -> list[Order]:
        wanted = {s.value for s in statuses}
        return [self._to_domain(raw) for raw in self._load_raw() if raw["status"] in wanted]

    def save(self, order: Order) -> None:
        with self._file_lock:
            orders = self._load_raw()

            if order.id is None:
                order.id = self.next_id()

            # Upsert: replace if exists, otherwise append
            replaced = False
            for i, raw in enumerate(orders):
                if raw["id"] == order.id:
                    orders[i] = self._to_raw(order)
                    replaced = True
                    break
            if not replaced:
                orders.append(self._to_raw(order))

            self._persist_raw(orders)

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(order: Order) -> dict:
        return {
            "id": order.id,
            "tenant_id": order.tenant_id,
            "branch_id": order.branch_id,
            "order_type": order.order_type.value,
            "source": order.source.value,
            "status": order.status.value,
            "payment_status": order.payment_status.value,
            "paid_amount": str(order.paid_amount.amount),
            "refund_amount": str(order.refund_amount.amount),
            "is_edited": order.is_edited,
            "cancellation_reason": order.cancellation_reason,
            "scheduled_for": order.scheduled_for.isoformat() if order.scheduled_for else None,
            "created_at": order.created_at.isoformat(),
            "items": [
                {
                    "id": item.id,
                    "name": item.name,
                    "quantity": item.quantity.value,
                    "unit_price": str(item.unit_price.amount),
                    "unit_cost_at_sale": str(item.unit_cost_at_sale.amount),
                    "currency": item.unit_price.currency,
                    "product_id": item.product_id,
                    "variant_id": item.variant_id,
                    "bundle_id": item.bundle_id,
                    "modifiers": [
                        {
                            "modifier_id": m.modifier_id,
                            "name": m.name,
                            "type": m.modifier_type.value,
                            "quantity": m.quantity,
                            "unit_price": str(m.unit_price.amount),
                        }
                        for m in item.modifiers
                    ],
                }
                for item in order.items
            ],
            "history": [
                {
                    "from": h.from_status.value if h.from_status else None,
                    "to": h.to_status.value,
                    "at": h.at.isoformat(),
                    "reason": h.reason,
                }
                for h in order.history
            ],
        }

    @staticmethod
    def _to_domain(raw: dict) -> Order:
        items = [
            OrderItem(
                id=i["id"],
                name=i["name"],
                quantity=Quantity(i["quantity"]),
                unit_price=Money(Decimal(i["unit_price"]), i.get("currency", "USD")),
                unit_cost_at_sale=Money(
                    Decimal(i.get("unit_cost_at_sale", "0")), i.get("currency", "USD")
                ),
                product_id=i.get("product_id"),
                variant_id=i.get("variant_id"),
                bundle_id=i.get("bundle_id"),
                modifiers=[
                    OrderItemModifier(
                        modifier_id=m["modifier_id"],
                        name=m["name"],
                        modifier_type=ModifierType(m["type"]),
                        quantity=m.get("quantity", 1),
                        unit_price=Money(Decimal(m.get("unit_price", "0"))),
                    )
                    for m in i.get("modifiers", [])
                ],
            )
            for i in raw["items"]
        ]
        history = [
            StatusChange(
                from_status=OrderStatus(h["from"]) if h.get("from") else None,
                to_status=OrderStatus(h["to"]),
                at=datetime.fromisoformat(h["at"]),
                reason=h.get("reason"),
            )
            for h in raw.get("history", [])
        ]
        scheduled_for = raw.get("scheduled_for")
        return Order(
            id=raw["id"],
            tenant_id=raw["tenant_id"],
            branch_id=raw.get("branch_id"),
            order_type=OrderType(raw["order_type"]),
            source=OrderSource(raw.get("source", "pos")),
            items=items,
            status=OrderStatus(raw["status"]),
            payment_status=PaymentStatus(raw.get("payment_status", "paid")),
            paid_amount=Money(Decimal(raw.get("paid_amount", "0"))),
            refund_amount=Money(Decimal(raw.get("refund_amount", "0"))),
            is_edited=raw.get("is_edited", False),
            cancellation_reason=raw.get("cancellation_reason"),
            scheduled_for=datetime.fromisoformat(scheduled_for) if scheduled_for else None,
            created_at=datetime.fromisoformat(raw["created_at"]),
            history=history,
        )

    # --- File helpers ---------------------------------------------------------

    def _load_raw(self) -> list[dict]:
        with self._file_lock:
            return read_json(self._file_path)

    def _persist_raw(self, orders: list[dict]) -> None:
        with self._file_lock:
            write_json(self._file_path, orders)

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._persist_raw([])
