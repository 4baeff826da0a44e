"""Application service: Reject Order use case.

A rejected order was never started, so its reservation is simply
released.  No waste decisions are queued: nothing left the shelf.
"""

from __future__ import annotations

from pantry.application.dto import OrderDTO
from pantry.application.show_order import ShowOrderHandler
from pantry.domain.exceptions import EntityNotFoundError
from pantry.domain.repository.order_repository import OrderRepository
from pantry.domain.service.bom_resolver import BomResolver
from pantry.domain.service.reservation_ledger import ReservationLedger


class RejectOrderHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        resolver: BomResolver,
        ledger: ReservationLedger,
    ) -> None:
        self._order_repo = order_repo
        self._resolver = resolver
        self._ledger = ledger

    def handle(self, order_id: int, reason: str | None = None) -> OrderDTO:
        order = self._order_repo.get_by_id(order_id)
        if order is None:
            raise EntityNotFoundError(f"Order #{order_id} not found")

        order.reject(reason)
        lines = self._resolver.ledger_lines_for(
            order.tenant_id, [i.cart_line() for i in order.items], order.order_type
        )
        self._ledger.release_reservation(
            order.tenant_id, order.branch_id, lines, order.id, "Order rejected"
        )

        self._order_repo.save(order)
        return ShowOrderHandler.to_dto(order)
