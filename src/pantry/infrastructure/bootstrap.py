"""Composition root — wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.

Repositories and services are cached per process so every handler in
one command shares the same stock row locks.
"""

from __future__ import annotations

from functools import lru_cache

from pantry.application.order_items import OrderItemBuilder
from pantry.application.reservation_dispatcher import ReservationDispatcher
from pantry.domain.service.availability import AvailabilityCalculator
from pantry.domain.service.bom_resolver import BomResolver
from pantry.domain.service.cost_cascade import CostCalculator, CostCascade
from pantry.domain.service.reservation_ledger import ReservationLedger
from pantry.domain.service.waste_queue import WasteQueue
from pantry.infrastructure.config import Settings, get_settings
from pantry.infrastructure.persistence.json_cancelled_item_repository import (
    JsonCancelledItemRepository,
)
from pantry.infrastructure.persistence.json_catalog_repository import (
    JsonCatalogRepository,
)
from pantry.infrastructure.persistence.json_cost_repository import JsonCostRepository
from pantry.infrastructure.persistence.json_order_repository import (
    JsonOrderRepository,
)
from pantry.infrastructure.persistence.json_stock_repository import (
    JsonStockRepository,
)


@lru_cache(maxsize=None)
def settings() -> Settings:
    return get_settings()


# --- Repositories -------------------------------------------------------------


@lru_cache(maxsize=None)
def catalog_repository() -> JsonCatalogRepository:
    return JsonCatalogRepository(settings().data_dir / "catalog.json")


@lru_cache(maxsize=None)
def stock_repository() -> JsonStockRepository:
    return JsonStockRepository(settings().data_dir / "stock.json")


@lru_cache(maxsize=None)
def order_repository() -> JsonOrderRepository:
    return JsonOrderRepository(settings().data_dir / "orders.json")


@lru_cache(maxsize=None)
def cancelled_item_repository() -> JsonCancelledItemRepository:
    return JsonCancelledItemRepository(settings().data_dir / "cancelled_items.json")


@lru_cache(maxsize=None)
def cost_repository() -> JsonCostRepository:
    return JsonCostRepository(settings().data_dir / "costs.json")


# --- Domain services ----------------------------------------------------------


@lru_cache(maxsize=None)
def bom_resolver() -> BomResolver:
    return BomResolver(catalog_repository())


@lru_cache(maxsize=None)
def reservation_ledger() -> ReservationLedger:
    return ReservationLedger(
        stock_repository(), lock_timeout=settings().ledger_lock_timeout_seconds
    )


@lru_cache(maxsize=None)
def availability_calculator() -> AvailabilityCalculator:
    return AvailabilityCalculator(
        catalog_repository(),
        stock_repository(),
        bom_resolver(),
        strict_recipe_check=settings().strict_recipe_check,
        sentinel=settings().max_orderable_sentinel,
    )


@lru_cache(maxsize=None)
def waste_queue() -> WasteQueue:
    return WasteQueue(
        cancelled_item_repository(),
        reservation_ledger(),
        bom_resolver(),
        ttl_hours=settings().waste_decision_ttl_hours,
        expiring_soon_hours=settings().expiring_soon_hours,
    )


@lru_cache(maxsize=None)
def cost_calculator() -> CostCalculator:
    return CostCalculator(catalog_repository(), cost_repository(), bom_resolver())


@lru_cache(maxsize=None)
def cost_cascade() -> CostCascade:
    return CostCascade(catalog_repository(), cost_repository(), cost_calculator())


@lru_cache(maxsize=None)
def order_item_builder() -> OrderItemBuilder:
    return OrderItemBuilder(catalog_repository(), cost_calculator())


@lru_cache(maxsize=None)
def reservation_dispatcher() -> ReservationDispatcher:
    return ReservationDispatcher(
        reservation_ledger(), max_workers=settings().reservation_workers
    )


def reset() -> None:
    """Drop every cached instance, e.g. after the data directory changed."""
    if reservation_dispatcher.cache_info().currsize:
        reservation_dispatcher().shutdown(wait=True)
    for factory in (
        settings,
        catalog_repository,
        stock_repository,
        order_repository,
        cancelled_item_repository,
        cost_repository,
        bom_resolver,
        reservation_ledger,
        availability_calculator,
        waste_queue,
        cost_calculator,
        cost_cascade,
        order_item_builder,
        reservation_dispatcher,
    ):
        factory.cache_clear()
