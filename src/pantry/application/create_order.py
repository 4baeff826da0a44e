"""Application service: Create Order use case.

Orchestrates the flow between repositories, the availability check and
the ledger.  The order is refused outright if the kitchen lacks any
ingredient; once stored, its reservation runs in the background.
"""

from __future__ import annotations

from datetime import datetime

from pantry.application.dto import OrderDTO, OrderItemSpec
from pantry.application.order_items import OrderItemBuilder, parse_choice
from pantry.application.reservation_dispatcher import ReservationDispatcher
from pantry.application.show_order import ShowOrderHandler
from pantry.domain.exceptions import ValidationError
from pantry.domain.model.order import Order, OrderSource, OrderStatus, OrderType
from pantry.domain.repository.order_repository import OrderRepository
from pantry.domain.service.availability import AvailabilityCalculator
from pantry.domain.service.bom_resolver import BomResolver


class CreateOrderHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        item_builder: OrderItemBuilder,
        availability: AvailabilityCalculator,
        resolver: BomResolver,
        dispatcher: ReservationDispatcher,
    ) -> None:
        self._order_repo = order_repo
        self._item_builder = item_builder
        self._availability = availability
        self._resolver = resolver
        self._dispatcher = dispatcher

    def handle(
        self,
        tenant_id: int,
        branch_id: int | None,
        order_type: str,
        item_specs: list[OrderItemSpec],
        source: str = "pos",
        payment_method: str | None = None,
        is_pay_later: bool = False,
        delivery_partner_id: int | None = None,
        scheduled_for: datetime | None = None,
    ) -> OrderDTO:
        """Create a new order.

        Steps:
        1. Check fulfillability over the whole cart (fail with itemized
           shortages; nothing is stored).
        2. Build OrderItems with *current* prices and costs (snapshot).
        3. Let the Order aggregate validate all business rules.
        4. Persist, then reserve in the background and return a DTO.
        """
        if not item_specs:
            raise ValidationError("Order must contain at least one item")
        kind = parse_choice(OrderType, order_type, "order type")
        origin = parse_choice(OrderSource, source, "order source")

        lines = [self._item_builder.cart_line(spec) for spec in item_specs]
        self._availability.check_fulfillability(
            tenant_id, branch_id, lines, kind
        ).raise_if_unfulfillable()

        items = [self._item_builder.build(tenant_id, spec) for spec in item_specs]
        order = Order.create(
            tenant_id=tenant_id,
            branch_id=branch_id,
            order_type=kind,
            source=origin,
            items=items,
            payment_method=payment_method,
            is_pay_later=is_pay_later,
            delivery_partner_id=delivery_partner_id,
            scheduled_for=scheduled_for,
        )
        order.id = self._order_repo.next_id()
        self._order_repo.save(order)

        # Scheduled orders reserve when they are accepted
        if order.status is OrderStatus.IN_PROGRESS:
            ledger_lines = self._resolver.ledger_lines_for(
                tenant_id, [i.cart_line() for i in order.items], kind
            )
            self._dispatcher.dispatch(tenant_id, branch_id, ledger_lines, order.id)

        return ShowOrderHandler.to_dto(order)

