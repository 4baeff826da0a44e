"""Application service: Cancel Order use case.

If the order was in the kitchen (IN_PROGRESS) its reservation is
released right away and every affected ingredient is queued for a
waste/return decision.  PENDING orders never reserved anything and are
cancelled without stock changes.

Cancellation never refuses because of stock: releasing clamps at zero.
"""

from __future__ import annotations

from pantry.application.dto import OrderDTO
from pantry.application.show_order import ShowOrderHandler
from pantry.domain.exceptions import EntityNotFoundError
from pantry.domain.model.cancelled_item import CancellationSource
from pantry.domain.model.order import OrderStatus
from pantry.domain.repository.order_repository import OrderRepository
from pantry.domain.service.waste_queue import WasteQueue


class CancelOrderHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        waste_queue: WasteQueue,
    ) -> None:
        self._order_repo = order_repo
        self._waste_queue = waste_queue

    def handle(self, order_id: int, reason: str | None = None) -> OrderDTO:
        order = self._order_repo.get_by_id(order_id)
        if order is None:
            raise EntityNotFoundError(f"Order #{order_id} not found")

        was_reserved = order.status is OrderStatus.IN_PROGRESS
        order.cancel(reason)

        if was_reserved:
            self._waste_queue.release_order_items(
                order,
                [(item, item.cart_line()) for item in order.items],
                CancellationSource.ORDER_CANCELLED,
            )

        self._order_repo.save(order)
        return ShowOrderHandler.to_dto(order)
