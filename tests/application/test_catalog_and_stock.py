"""Integration tests for catalog, cost and stock use cases."""

from decimal import Decimal

import pytest

from pantry.application.add_item import AddItemHandler
from pantry.application.adjust_stock import AdjustStockHandler, ReceiveStockHandler
from pantry.application.check_fulfillability import CheckFulfillabilityHandler
from pantry.application.dto import OrderItemSpec
from pantry.application.link_component import LinkComponentHandler
from pantry.application.show_stock import ShowStockHandler
from pantry.application.storefront_availability import StorefrontAvailabilityHandler
from pantry.application.update_item_cost import UpdateItemCostHandler
from pantry.domain.exceptions import (
    CircularCompositeReference,
    IncompatibleUnits,
    ValidationError,
)
from pantry.domain.model.units import Unit
from tests.kitchen import (
    BRANCH,
    BURGER,
    CHEESE,
    FRIES,
    HOUSE_SAUCE,
    MAYO,
    SODA,
    TENANT,
    TOMATO,
    build_kitchen,
    plenty,
)


class TestAddItem:

    def test_storage_unit_defaults_from_serving(self):
        kitchen = build_kitchen()
        item = AddItemHandler(kitchen.catalog).handle("Parmesan", "grams", cost_per_unit="0.05")

        assert item.id == HOUSE_SAUCE + 1
        assert item.storage_unit is Unit.KG
        assert item.cost_per_unit == Decimal("0.05")

    def test_mismatched_units_rejected(self):
        kitchen = build_kitchen()
        with pytest.raises(IncompatibleUnits, match="Storage is weight .* but serving is volume"):
            AddItemHandler(kitchen.catalog).handle("Milk", "mL", "Kg")

    def test_duplicate_name(self):
        kitchen = build_kitchen()
        with pytest.raises(ValidationError, match="already exists"):
            AddItemHandler(kitchen.catalog).handle("cheese", "grams")

    def test_tenant_clone_shadows_shared_item(self):
        kitchen = build_kitchen()
        handler = AddItemHandler(kitchen.catalog)
        clone = handler.handle("Cheese", "grams", tenant_id=TENANT, base_item_id=CHEESE)

        assert kitchen.catalog.effective_item(TENANT, CHEESE).id == clone.id
        with pytest.raises(ValidationError, match="already has its own copy"):
            handler.handle("Cheddar", "grams", tenant_id=TENANT, base_item_id=CHEESE)

    def test_clone_needs_tenant(self):
        kitchen = build_kitchen()
        with pytest.raises(ValidationError, match="Only a tenant"):
            AddItemHandler(kitchen.catalog).handle("Cheddar", "grams", base_item_id=CHEESE)

    def test_composite_needs_batch(self):
        kitchen = build_kitchen()
        with pytest.raises(ValidationError, match="positive batch quantity"):
            AddItemHandler(kitchen.catalog).handle("Aioli", "grams", is_composite=True)


class TestLinkComponent:

    def test_link_and_cascade(self):
        kitchen = build_kitchen()
        aioli = AddItemHandler(kitchen.catalog).handle(
            "Aioli", "grams", is_composite=True, batch_quantity="100", batch_unit="grams"
        )

        LinkComponentHandler(kitchen.catalog, kitchen.cascade).handle(aioli.id, MAYO, "80")

        assert kitchen.catalog.get_item(aioli.id).components[0].quantity == Decimal("80")
        # 80 g x $0.004 / 100 g
        assert kitchen.costs.get_composite_cost(None, aioli.id) == Decimal("0.0032")

    def test_composites_do_not_nest(self):
        kitchen = build_kitchen()
        aioli = AddItemHandler(kitchen.catalog).handle(
            "Aioli", "grams", is_composite=True, batch_quantity="100", batch_unit="grams"
        )
        with pytest.raises(CircularCompositeReference):
            LinkComponentHandler(kitchen.catalog).handle(aioli.id, HOUSE_SAUCE, "10")


class TestUpdateItemCost:

    def test_default_cost_cascades(self):
        kitchen = build_kitchen()
        dto = UpdateItemCostHandler(
            kitchen.catalog, kitchen.costs, kitchen.calculator, kitchen.cascade
        ).handle(TOMATO, "0.002")

        assert dto.effective_cost == "0.002"
        assert dto.composites == {HOUSE_SAUCE: "0.0028"}
        assert dto.products == {str(FRIES): "0.1400"}

    def test_tenant_override(self):
        kitchen = build_kitchen()
        UpdateItemCostHandler(
            kitchen.catalog, kitchen.costs, kitchen.calculator, kitchen.cascade
        ).handle(CHEESE, "0.03", tenant_id=TENANT)

        assert kitchen.costs.get_override(TENANT, CHEESE) == Decimal("0.03")
        assert kitchen.catalog.get_item(CHEESE).cost_per_unit == Decimal("0.02")

    def test_composite_cost_is_derived(self):
        kitchen = build_kitchen()
        with pytest.raises(ValidationError, match="derived from its components"):
            UpdateItemCostHandler(
                kitchen.catalog, kitchen.costs, kitchen.calculator, kitchen.cascade
            ).handle(HOUSE_SAUCE, "1")


class TestAvailabilityQueries:

    def test_check_lists_shortages(self):
        kitchen = build_kitchen({**plenty(), CHEESE: "2"})
        dto = CheckFulfillabilityHandler(kitchen.item_builder, kitchen.availability).handle(
            TENANT, BRANCH, [OrderItemSpec(20, product_id=BURGER)]
        )
        assert not dto.can_fulfill
        assert dto.shortages == ["Burger: needs 3000 grams of Cheese, only 2000 available"]

    def test_check_rejects_bad_order_type(self):
        kitchen = build_kitchen()
        with pytest.raises(ValidationError, match="Invalid order type"):
            CheckFulfillabilityHandler(kitchen.item_builder, kitchen.availability).handle(
                TENANT, BRANCH, [OrderItemSpec(1, product_id=BURGER)], "drive_thru"
            )

    def test_storefront_flags_untracked_products(self):
        kitchen = build_kitchen({**plenty(), CHEESE: "2"})
        rows = {
            r.name: r
            for r in StorefrontAvailabilityHandler(
                kitchen.catalog, kitchen.availability, sentinel=999
            ).handle(TENANT, BRANCH)
        }
        assert rows["Burger"].max_orderable == 13
        assert not rows["Burger"].unlimited
        assert rows["Soda"].unlimited
        assert rows["Soda"].product_id == SODA


class TestStock:

    def test_adjust_in_serving_units(self):
        kitchen = build_kitchen()
        dto = AdjustStockHandler(kitchen.catalog, kitchen.stock, kitchen.ledger).handle(
            TENANT, BRANCH, CHEESE, "-500", "Spoiled", unit="grams"
        )
        assert dto.quantity == "9.500 Kg"
        assert dto.available_quantity == "9.500 Kg"

    def test_zero_adjustment(self):
        kitchen = build_kitchen()
        with pytest.raises(ValidationError, match="must not be zero"):
            AdjustStockHandler(kitchen.catalog, kitchen.stock, kitchen.ledger).handle(
                TENANT, BRANCH, CHEESE, "0", "Nothing"
            )

    def test_receive_blends_cost(self):
        kitchen = build_kitchen()
        handler = ReceiveStockHandler(
            kitchen.catalog, kitchen.stock, kitchen.costs,
            kitchen.ledger, kitchen.calculator, kitchen.cascade,
        )

        dto = handler.handle(TENANT, BRANCH, CHEESE, "10", unit_cost="30")

        assert dto.quantity == "20.000 Kg"
        # 10 Kg at $0.02/g blended with 10 Kg at $0.03/g
        assert kitchen.costs.get_override(TENANT, CHEESE) == Decimal("0.025")
        assert kitchen.costs.get_product_cost(TENANT, BURGER, None) is not None

    def test_receive_without_price_keeps_cost(self):
        kitchen = build_kitchen()
        handler = ReceiveStockHandler(
            kitchen.catalog, kitchen.stock, kitchen.costs,
            kitchen.ledger, kitchen.calculator, kitchen.cascade,
        )
        handler.handle(TENANT, BRANCH, CHEESE, "500", unit="grams")

        assert kitchen.record(CHEESE).quantity == Decimal("10.5")
        assert kitchen.costs.get_override(TENANT, CHEESE) is None

    def test_show_sorted_by_name(self):
        kitchen = build_kitchen()
        rows = ShowStockHandler(kitchen.catalog, kitchen.stock).handle(TENANT, BRANCH)
        assert [r.item_name for r in rows][:3] == ["Beef", "Box", "Bun"]

    def test_movements_newest_first(self):
        kitchen = build_kitchen()
        kitchen.ledger.adjust(TENANT, BRANCH, CHEESE, Decimal("1"), "first")
        kitchen.ledger.adjust(TENANT, BRANCH, CHEESE, Decimal("2"), "second")

        rows = ShowStockHandler(kitchen.catalog, kitchen.stock).movements(TENANT, BRANCH, CHEESE)

        assert [r.reason for r in rows] == ["second", "first"]
