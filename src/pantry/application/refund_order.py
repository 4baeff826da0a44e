"""Application service: Refund Order use case.

Refunds touch money only; the food was already consumed on completion.
"""

from __future__ import annotations

from pantry.application.dto import OrderDTO
from pantry.application.show_order import ShowOrderHandler
from pantry.domain.exceptions import EntityNotFoundError
from pantry.domain.model.value_objects import Money
from pantry.domain.repository.order_repository import OrderRepository


class RefundOrderHandler:

    def __init__(self, order_repo: OrderRepository) -> None:
        self._order_repo = order_repo

    def handle(self, order_id: int, reason: str, amount: str | None = None) -> OrderDTO:
        """Refund *amount* (default: the full total)."""
        order = self._order_repo.get_by_id(order_id)
        if order is None:
            raise EntityNotFoundError(f"Order #{order_id} not found")

        refund = Money.of(amount) if amount is not None else order.total
        order.refund(refund, reason)
        self._order_repo.save(order)
        return ShowOrderHandler.to_dto(order)
