"""Application service: Complete Order use case.

Consumes the order's reservation, then marks it completed.  A stock
accounting fault never blocks the kitchen: if consumption fails it is
logged and the order is completed anyway, to be corrected by hand.
"""

from __future__ import annotations

import logging

from pantry.application.dto import OrderDTO
from pantry.application.show_order import ShowOrderHandler
from pantry.domain.exceptions import DomainException, EntityNotFoundError, ValidationError
from pantry.domain.model.order import OrderStatus
from pantry.domain.repository.order_repository import OrderRepository
from pantry.domain.service.bom_resolver import BomResolver
from pantry.domain.service.reservation_ledger import ReservationLedger

logger = logging.getLogger(__name__)


class CompleteOrderHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        resolver: BomResolver,
        ledger: ReservationLedger,
    ) -> None:
        self._order_repo = order_repo
        self._resolver = resolver
        self._ledger = ledger

    def handle(self, order_id: int) -> OrderDTO:
        order = self._order_repo.get_by_id(order_id)
        if order is None:
            raise EntityNotFoundError(f"Order #{order_id} not found")
        if order.status is not OrderStatus.IN_PROGRESS:
            raise ValidationError(
                f"Cannot complete order - current status is {order.status.value}, "
                f"expected in_progress"
            )

        try:
            lines = self._resolver.ledger_lines_for(
                order.tenant_id, [i.cart_line() for i in order.items], order.order_type
            )
            self._ledger.consume(order.tenant_id, order.branch_id, lines, order.id)
        except DomainException as exc:
            logger.error(
                "Failed to consume inventory for order %s: %s",
                order.id,
                exc,
                extra={
                    "tenant_id": order.tenant_id,
                    "branch_id": order.branch_id,
                    "order_ref": order.id,
                },
            )

        order.complete()
        self._order_repo.save(order)
        return ShowOrderHandler.to_dto(order)
