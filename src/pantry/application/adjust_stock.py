"""Application services: Receive Stock and Adjust Stock use cases.

Both go through the reservation ledger's ``adjust`` so on-hand stock can
never drop below what open orders have reserved.  Receiving a delivery
with a price also re-blends the tenant's weighted-average cost and runs
the cost cascade.
"""

from __future__ import annotations

from decimal import Decimal

from pantry.application.dto import StockDTO
from pantry.domain.exceptions import ValidationError
from pantry.domain.model.item import Item
from pantry.domain.model.stock import StockKey, StockRecord
from pantry.domain.model.units import Unit, convert, format_quantity, to_serving_units
from pantry.domain.model.value_objects import to_decimal
from pantry.domain.repository.catalog_repository import CatalogRepository
from pantry.domain.repository.cost_repository import CostRepository
from pantry.domain.repository.stock_repository import StockRepository
from pantry.domain.service.cost_cascade import (
    CostCalculator,
    CostCascade,
    weighted_average_cost,
)
from pantry.domain.service.reservation_ledger import ReservationLedger


class AdjustStockHandler:

    def __init__(
        self,
        catalog_repo: CatalogRepository,
        stock_repo: StockRepository,
        ledger: ReservationLedger,
    ) -> None:
        self._catalog = catalog_repo
        self._stock_repo = stock_repo
        self._ledger = ledger

    def handle(
        self,
        tenant_id: int,
        branch_id: int | None,
        item_id: int,
        delta: str,
        reason: str,
        unit: str | None = None,
    ) -> StockDTO:
        """Correct on-hand stock by a signed *delta* (default: storage unit)."""
        item = self._catalog.effective_item(tenant_id, item_id)
        amount = _in_storage_units(to_decimal(delta), unit, item)
        if amount == 0:
            raise ValidationError("Adjustment must not be zero")

        self._ledger.adjust(tenant_id, branch_id, item.saved_id, amount, reason)
        return _stock_dto(self._stock_repo, item, tenant_id, branch_id)


class ReceiveStockHandler:

    def __init__(
        self,
        catalog_repo: CatalogRepository,
        stock_repo: StockRepository,
        cost_repo: CostRepository,
        ledger: ReservationLedger,
        calculator: CostCalculator,
        cascade: CostCascade,
    ) -> None:
        self._catalog = catalog_repo
        self._stock_repo = stock_repo
        self._cost_repo = cost_repo
        self._ledger = ledger
        self._calculator = calculator
        self._cascade = cascade

    def handle(
        self,
        tenant_id: int,
        branch_id: int | None,
        item_id: int,
        quantity: str,
        unit: str | None = None,
        unit_cost: str | None = None,
    ) -> StockDTO:
        """Book a delivery.

        ``unit_cost`` is the invoice price per storage unit (e.g. $/Kg).
        """
        item = self._catalog.effective_item(tenant_id, item_id)
        received = _in_storage_units(to_decimal(quantity), unit, item)
        if received <= 0:
            raise ValidationError("Received quantity must be positive")

        key = StockKey(tenant_id, branch_id, item.saved_id)
        on_hand = (self._stock_repo.get(key) or StockRecord(key)).quantity

        self._ledger.adjust(tenant_id, branch_id, item.saved_id, received, "Stock received")

        if unit_cost is not None:
            per_storage_unit = to_decimal(unit_cost, "cost")
            serving_per_storage = convert(Decimal("1"), item.storage_unit, item.serving_unit)
            new_cost = weighted_average_cost(
                to_serving_units(on_hand, item.storage_unit, item.serving_unit),
                self._calculator.effective_cost(tenant_id, item.saved_id),
                to_serving_units(received, item.storage_unit, item.serving_unit),
                per_storage_unit / serving_per_storage,
            )
            self._cost_repo.set_override(tenant_id, item.saved_id, new_cost)
            self._cascade.on_item_cost_changed(item.saved_id, tenant_id)

        return _stock_dto(self._stock_repo, item, tenant_id, branch_id)


def _in_storage_units(value: Decimal, unit: str | None, item: Item) -> Decimal:
    if unit is None:
        return value
    return convert(value, Unit.parse(unit), item.storage_unit)


def _stock_dto(
    stock_repo: StockRepository,
    item: Item,
    tenant_id: int,
    branch_id: int | None,
) -> StockDTO:
    key = StockKey(tenant_id, branch_id, item.saved_id)
    record = stock_repo.get(key) or StockRecord(key)
    return to_stock_dto(record, item)


def to_stock_dto(record: StockRecord, item: Item) -> StockDTO:
    return StockDTO(
        item_id=record.item_id,
        item_name=item.name,
        quantity=format_quantity(record.quantity, item.storage_unit, decimals=3),
        reserved_quantity=format_quantity(record.reserved_quantity, item.storage_unit, decimals=3),
        available_quantity=format_quantity(record.available_quantity, item.storage_unit, decimals=3),
        unit=item.storage_unit.value,
    )
