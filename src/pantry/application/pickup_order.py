"""Application service: Pickup Order use case (delivery orders only)."""

from __future__ import annotations

from pantry.application.dto import OrderDTO
from pantry.application.show_order import ShowOrderHandler
from pantry.domain.exceptions import EntityNotFoundError
from pantry.domain.repository.order_repository import OrderRepository


class PickupOrderHandler:

    def __init__(self, order_repo: OrderRepository) -> None:
        self._order_repo = order_repo

    def handle(self, order_id: int) -> OrderDTO:
        order = self._order_repo.get_by_id(order_id)
        if order is None:
            raise EntityNotFoundError(f"Order #{order_id} not found")

        order.pick_up()
        self._order_repo.save(order)
        return ShowOrderHandler.to_dto(order)
