"""Application service: Show Order use case (query)."""

from __future__ import annotations

from pantry.application.dto import OrderDTO, OrderItemDTO
from pantry.domain.exceptions import EntityNotFoundError
from pantry.domain.model.cart import ModifierType
from pantry.domain.model.order import Order
from pantry.domain.repository.order_repository import OrderRepository


class ShowOrderHandler:

    def __init__(self, order_repo: OrderRepository) -> None:
        self._order_repo = order_repo

    def handle(self, order_id: int) -> OrderDTO:
        order = self._order_repo.get_by_id(order_id)
        if order is None:
            raise EntityNotFoundError(f"Order #{order_id} not found")
        return self.to_dto(order)

    @staticmethod
    def to_dto(order: Order) -> OrderDTO:
        return OrderDTO(
            id=order.saved_id,
            tenant_id=order.tenant_id,
            branch_id=order.branch_id,
            order_type=order.order_type.value,
            source=order.source.value,
            status=order.status.value,
            payment_status=order.payment_status.value,
            items=[
                OrderItemDTO(
                    id=item.saved_id,
                    name=item.name,
                    quantity=item.quantity.value,
                    unit_price=str(item.unit_price),
                    modifiers=[
                        f"no {m.name}"
                        if m.modifier_type is ModifierType.REMOVAL
                        else f"+{m.quantity} {m.name}"
                        for m in item.modifiers
                    ],
                    line_total=str(item.line_total),
                    unit_cost=f"${item.unit_cost_at_sale.amount:.4f}",
                )
                for item in order.items
            ],
            total=str(order.total),
            paid_amount=str(order.paid_amount),
            remaining_amount=f"${order.remaining_amount:.2f}",
            is_edited=order.is_edited,
            created_at=order.created_at.strftime("%Y-%m-%d %H:%M UTC"),
            history=[
                f"{c.at:%Y-%m-%d %H:%M} {c.to_status.value}"
                + (f" ({c.reason})" if c.reason else "")
                for c in order.history
            ],
        )
