"""Builds priced, costed OrderItems from customer input.

Shared by order creation and order edits so both snapshot prices and
ingredient cost the same way.
"""

from __future__ import annotations

from pantry.application.dto import ModifierSpec, OrderItemSpec
from pantry.domain.exceptions import EntityNotFoundError, ValidationError
from pantry.domain.model.cart import CartLine, CartModifier, ModifierType
from pantry.domain.model.order import OrderItem, OrderItemModifier
from pantry.domain.model.product import Product
from pantry.domain.model.value_objects import Quantity
from pantry.domain.repository.catalog_repository import CatalogRepository
from pantry.domain.service.cost_cascade import CostCalculator


class OrderItemBuilder:

    def __init__(
        self,
        catalog_repo: CatalogRepository,
        cost_calculator: CostCalculator,
    ) -> None:
        self._catalog = catalog_repo
        self._costs = cost_calculator

    def cart_line(self, spec: OrderItemSpec) -> CartLine:
        return CartLine(
            quantity=spec.quantity,
            product_id=spec.product_id,
            variant_id=spec.variant_id,
            bundle_id=spec.bundle_id,
            modifiers=tuple(
                CartModifier(m.modifier_id, _modifier_type(m.modifier_type), m.quantity)
                for m in spec.modifiers
            ),
        )

    def build(self, tenant_id: int, spec: OrderItemSpec) -> OrderItem:
        """Resolve names and prices now, so later catalog edits never touch the order."""
        line = self.cart_line(spec)

        if spec.bundle_id is not None:
            bundle = self._catalog.get_bundle(spec.bundle_id)
            if bundle is None or bundle.tenant_id not in (None, tenant_id):
                raise EntityNotFoundError(f"Bundle #{spec.bundle_id} not found")
            if not bundle.is_active:
                raise ValidationError(f"Bundle '{bundle.name}' is not available")
            name, unit_price, modifiers = bundle.name, bundle.price, []
        elif spec.product_id is not None:
            product = self.product(tenant_id, spec.product_id)
            if not product.is_active:
                raise ValidationError(f"Product '{product.name}' is not available")
            name = product.name
            if spec.variant_id is not None:
                name = f"{product.name} ({product.variant(spec.variant_id).name})"
            unit_price = product.price_for(spec.variant_id)
            modifiers = self.modifiers(product, spec.modifiers)
        else:
            raise ValidationError("Order item needs a product or a bundle")

        return OrderItem(
            id=None,
            name=name,
            quantity=Quantity(spec.quantity),
            unit_price=unit_price,  # <-- price snapshot
            unit_cost_at_sale=self._costs.line_unit_cost(tenant_id, line),
            product_id=spec.product_id,
            variant_id=spec.variant_id,
            bundle_id=spec.bundle_id,
            modifiers=modifiers,
        )

    def modifiers(
        self, product: Product, specs: tuple[ModifierSpec, ...] | list[ModifierSpec]
    ) -> list[OrderItemModifier]:
        offered = {m.id: m for m in self._catalog.modifiers_for(product.id)}
        result: list[OrderItemModifier] = []
        for spec in specs:
            modifier = offered.get(spec.modifier_id)
            if modifier is None:
                raise EntityNotFoundError(
                    f"Modifier #{spec.modifier_id} does not belong to '{product.name}'"
                )
            result.append(
                OrderItemModifier(
                    modifier_id=modifier.id,
                    name=modifier.name,
                    modifier_type=_modifier_type(spec.modifier_type),
                    quantity=spec.quantity,
                    unit_price=modifier.extra_price,
                )
            )
        return result

    def product(self, tenant_id: int, product_id: int) -> Product:
        product = self._catalog.get_product(product_id)
        if product is None or product.tenant_id not in (None, tenant_id):
            raise EntityNotFoundError(f"Product #{product_id} not found")
        return product


def _modifier_type(raw: str) -> ModifierType:
    try:
        return ModifierType(raw)
    except ValueError:
        raise ValidationError(
            f"Invalid modifier type {raw!r}: must be 'extra' or 'removal'"
        ) from None


def parse_choice(enum_type, raw: str, what: str):
    try:
        return enum_type(raw)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_type)
        raise ValidationError(f"Invalid {what} {raw!r}: expected one of {allowed}") from None
