"""Product aggregate and its recipe edges.

Products live independently of orders. They have their own lifecycle:
prices change, recipes are edited, products are switched off.  The
recipe edges (ingredients, modifiers, accessories) are catalog data the
engine only ever reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from pantry.domain.exceptions import EntityNotFoundError, ValidationError
from pantry.domain.model.order import OrderType
from pantry.domain.model.value_objects import Money

ALWAYS = "always"


@dataclass(frozen=True)
class Variant:
    id: int
    name: str
    price: Money | None = None  # None = inherit the product price


@dataclass
class Product:
    """A sellable product in the catalog.

    ``has_variants`` products are only ever sold through one of their
    variants; their recipe lives on the variants, not on the product.
    """

    id: int
    name: str
    price: Money
    tenant_id: int | None = None
    has_variants: bool = False
    is_active: bool = True
    variants: list[Variant] = field(default_factory=list)

    def update_price(self, new_price: Money) -> None:
        """Change the product price.

        This does NOT affect any existing orders because orders
        capture a price snapshot at creation time.
        """
        if new_price.amount <= 0:
            raise ValidationError("Product price must be greater than zero")
        self.price = new_price

    def variant(self, variant_id: int) -> Variant:
        for v in self.variants:
            if v.id == variant_id:
                return v
        raise EntityNotFoundError(
            f"Variant #{variant_id} does not belong to product '{self.name}'"
        )

    def price_for(self, variant_id: int | None) -> Money:
        if variant_id is None:
            return self.price
        return self.variant(variant_id).price or self.price


@dataclass(frozen=True)
class ProductIngredient:
    """Recipe line: one unit of the product (or variant) uses *quantity* of an item."""

    product_id: int
    item_id: int
    quantity: Decimal  # in the item's serving unit
    variant_id: int | None = None
    removable: bool = False


@dataclass(frozen=True)
class ProductModifier:
    """An add-on ("extra cheese") or removal ("no onion") offered on a product."""

    id: int
    product_id: int
    name: str
    item_id: int | None = None
    quantity: Decimal = Decimal("0")
    extra_price: Money = field(default_factory=Money.zero)
    removable: bool = False
    addable: bool = True


@dataclass(frozen=True)
class ProductAccessory:
    """Non-food item (container, napkin) consumed alongside a product."""

    product_id: int
    item_id: int
    quantity: Decimal
    applicable_order_types: frozenset[str] = frozenset({ALWAYS})
    variant_id: int | None = None

    def applies_to(self, order_type: OrderType | None) -> bool:
        """``always`` accessories always apply; the rest need a known, matching type."""
        if ALWAYS in self.applicable_order_types:
            return True
        if order_type is None:
            return False
        return order_type.value in self.applicable_order_types

    def applies_to_variant(self, variant_id: int | None) -> bool:
        return self.variant_id is None or self.variant_id == variant_id


@dataclass(frozen=True)
class BundleItem:
    product_id: int
    quantity: int = 1
    variant_id: int | None = None


@dataclass
class Bundle:
    """A combo sold as one line, made of several products."""

    id: int
    name: str
    price: Money
    items: list[BundleItem] = field(default_factory=list)
    tenant_id: int | None = None
    is_active: bool = True
