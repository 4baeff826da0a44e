"""Cart lines — what a customer asked for, before it becomes stock demand."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pantry.domain.exceptions import ValidationError


class ModifierType(Enum):
    EXTRA = "extra"
    REMOVAL = "removal"


@dataclass(frozen=True)
class CartModifier:
    modifier_id: int
    modifier_type: ModifierType
    quantity: int = 1

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValidationError("Modifier quantity must be positive")


@dataclass(frozen=True)
class CartLine:
    """One line of a cart: a product (optionally a variant) or a bundle."""

    quantity: int
    product_id: int | None = None
    variant_id: int | None = None
    bundle_id: int | None = None
    modifiers: tuple[CartModifier, ...] = field(default_factory=tuple)
    label: str | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValidationError("Cart line quantity must be positive")
        if self.product_id is None and self.bundle_id is None:
            raise ValidationError("Cart line needs a product or a bundle")

    @property
    def is_bundle(self) -> bool:
        return self.bundle_id is not None
