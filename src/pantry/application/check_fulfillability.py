"""Application service: Check Fulfillability use case (query).

Answers "could this cart be made right now?" without creating anything.
"""

from __future__ import annotations

from pantry.application.dto import FulfillabilityDTO, OrderItemSpec
from pantry.application.order_items import OrderItemBuilder, parse_choice
from pantry.domain.model.order import OrderType
from pantry.domain.service.availability import AvailabilityCalculator


class CheckFulfillabilityHandler:

    def __init__(
        self,
        item_builder: OrderItemBuilder,
        availability: AvailabilityCalculator,
    ) -> None:
        self._item_builder = item_builder
        self._availability = availability

    def handle(
        self,
        tenant_id: int,
        branch_id: int | None,
        item_specs: list[OrderItemSpec],
        order_type: str | None = None,
    ) -> FulfillabilityDTO:
        lines = [self._item_builder.cart_line(spec) for spec in item_specs]
        kind = parse_choice(OrderType, order_type, "order type") if order_type else None
        result = self._availability.check_fulfillability(tenant_id, branch_id, lines, kind)
        return FulfillabilityDTO(
            can_fulfill=result.can_fulfill,
            shortages=[s.describe() for s in result.shortages],
            unverifiable=[u.describe() for u in result.unverifiable],
        )
