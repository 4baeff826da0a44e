"""Application service: Accept Order use case.

Moves a scheduled (pending) order into the kitchen.  Unlike creation,
the reservation here is synchronous: if stock ran out while the order
waited, accepting it fails and the order stays pending.
"""

from __future__ import annotations

from pantry.application.dto import OrderDTO
from pantry.application.show_order import ShowOrderHandler
from pantry.domain.exceptions import EntityNotFoundError, ValidationError
from pantry.domain.model.order import OrderStatus
from pantry.domain.repository.order_repository import OrderRepository
from pantry.domain.service.bom_resolver import BomResolver
from pantry.domain.service.reservation_ledger import ReservationLedger


class AcceptOrderHandler:

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
        if order.status is not OrderStatus.PENDING:
            raise ValidationError(
                f"Cannot accept order - current status is {order.status.value}, "
                f"expected pending"
            )

        # Reserve first (the ledger validates availability)
        lines = self._resolver.ledger_lines_for(
            order.tenant_id, [i.cart_line() for i in order.items], order.order_type
        )
        self._ledger.reserve(order.tenant_id, order.branch_id, lines, order.id)

        # Then transition the order
        order.accept()
        self._order_repo.save(order)
        return ShowOrderHandler.to_dto(order)
