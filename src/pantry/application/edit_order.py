"""Application service: Edit Order use case (IN_PROGRESS orders only).

Every edit keeps the reservation equal to what the order's current
items need:

- added demand (new item, higher quantity, extra modifier) is reserved
  synchronously and the edit fails if stock is short;
- removed demand is released and queued for a waste/return decision,
  exactly as a cancellation would.

After the edit the total is recomputed; if it now exceeds what was
paid, the order goes back to pending payment.
"""

from __future__ import annotations

from dataclasses import replace

from pantry.application.dto import ModifierSpec, OrderDTO, OrderItemSpec
from pantry.application.order_items import OrderItemBuilder
from pantry.application.show_order import ShowOrderHandler
from pantry.domain.exceptions import EntityNotFoundError, ValidationError
from pantry.domain.model.cancelled_item import CancellationSource
from pantry.domain.model.cart import CartLine
from pantry.domain.model.order import Order
from pantry.domain.repository.order_repository import OrderRepository
from pantry.domain.service.bom_resolver import BomResolver
from pantry.domain.service.reservation_ledger import LedgerLine, ReservationLedger
from pantry.domain.service.waste_queue import WasteQueue


class EditOrderHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        item_builder: OrderItemBuilder,
        resolver: BomResolver,
        ledger: ReservationLedger,
        waste_queue: WasteQueue,
    ) -> None:
        self._order_repo = order_repo
        self._item_builder = item_builder
        self._resolver = resolver
        self._ledger = ledger
        self._waste_queue = waste_queue

    def add_item(self, order_id: int, spec: OrderItemSpec) -> OrderDTO:
        order = self._load(order_id)
        item = order.add_item(self._item_builder.build(order.tenant_id, spec))
        self._reserve(order, self._lines(order, [item.cart_line()]))
        return self._save(order)

    def remove_item(self, order_id: int, order_item_id: int) -> OrderDTO:
        order = self._load(order_id)
        item = order.remove_item(order_item_id)
        self._waste_queue.release_order_items(
            order, [(item, item.cart_line())], CancellationSource.ORDER_EDITED
        )
        return self._save(order)

    def change_quantity(self, order_id: int, order_item_id: int, quantity: int) -> OrderDTO:
        order = self._load(order_id)
        diff = order.change_quantity(order_item_id, quantity)
        item = order.find_item(order_item_id)
        if diff > 0:
            self._reserve(order, self._lines(order, [item.cart_line(quantity=diff)]))
        elif diff < 0:
            self._waste_queue.release_order_items(
                order,
                [(item, item.cart_line(quantity=-diff))],
                CancellationSource.ORDER_EDITED,
            )
        return self._save(order)

    def replace_modifiers(
        self,
        order_id: int,
        order_item_id: int,
        modifiers: list[ModifierSpec],
    ) -> OrderDTO:
        """Swap an item's modifiers, reserving or releasing only the difference."""
        order = self._load(order_id)
        item = order.find_item(order_item_id)
        if item.product_id is None:
            raise ValidationError(f"Item #{order_item_id} is a bundle and takes no modifiers")

        product = self._item_builder.product(order.tenant_id, item.product_id)
        before = {l.item_id: l for l in self._lines(order, [item.cart_line()])}
        order.replace_modifiers(order_item_id, self._item_builder.modifiers(product, modifiers))
        after = {l.item_id: l for l in self._lines(order, [item.cart_line()])}

        added: list[LedgerLine] = []
        removed: list[LedgerLine] = []
        for item_id in before.keys() | after.keys():
            old, new = before.get(item_id), after.get(item_id)
            delta = (new.quantity if new else 0) - (old.quantity if old else 0)
            if delta > 0 and new is not None:
                added.append(replace(new, quantity=delta))
            elif delta < 0 and old is not None:
                removed.append(replace(old, quantity=-delta))

        self._reserve(order, added)
        if removed:
            self._waste_queue.create_cancelled_item_records(
                order, [(item, removed)], CancellationSource.ORDER_EDITED
            )
        return self._save(order)

    # --- Internal helpers -----------------------------------------------------

    def _load(self, order_id: int) -> Order:
        order = self._order_repo.get_by_id(order_id)
        if order is None:
            raise EntityNotFoundError(f"Order #{order_id} not found")
        return order

    def _lines(self, order: Order, cart_lines: list[CartLine]) -> list[LedgerLine]:
        return self._resolver.ledger_lines_for(order.tenant_id, cart_lines, order.order_type)

    def _reserve(self, order: Order, lines: list[LedgerLine]) -> None:
        if lines:
            self._ledger.reserve(order.tenant_id, order.branch_id, lines, order.id)

    def _save(self, order: Order) -> OrderDTO:
        order.settle_after_edit()
        self._order_repo.save(order)
        return ShowOrderHandler.to_dto(order)
