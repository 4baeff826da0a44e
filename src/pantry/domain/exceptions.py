"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so the CLI layer can catch them uniformly and display user-friendly messages.

Configuration errors (bad units, broken recipes, nested composites) are
raised at the point the catalog is mutated.  Fulfillment errors carry
enough structure for the caller to show exactly what is missing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pantry.domain.model.stock import Shortage


class DomainException(Exception):
    """Base class for all domain errors."""

    retryable = False


class ValidationError(DomainException):
    """A business rule or invariant was violated."""


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""


class ConfigurationError(DomainException):
    """The catalog is configured in a way the engine cannot work with."""


class IncompatibleUnits(ConfigurationError):
    """Two units belong to different families (mass, volume, count)."""

    def __init__(
        self, from_unit: object, to_unit: object, message: str | None = None
    ) -> None:
        self.from_unit = from_unit
        self.to_unit = to_unit
        super().__init__(
            message
            or f"Cannot convert between {_label(from_unit)} and {_label(to_unit)} "
            f"- incompatible unit types"
        )


class UnresolvableRecipe(ConfigurationError):
    """A cart line cannot be turned into ingredient demand."""

    def __init__(
        self,
        message: str,
        product_id: int | None = None,
        variant_id: int | None = None,
    ) -> None:
        self.product_id = product_id
        self.variant_id = variant_id
        super().__init__(message)


class CircularCompositeReference(ConfigurationError):
    """A composite item was linked to itself or to another composite."""

    def __init__(self, composite_id: int | None, component_id: int | None) -> None:
        self.composite_id = composite_id
        self.component_id = component_id
        super().__init__(
            f"Item #{component_id} cannot be a component of composite "
            f"item #{composite_id}: composites may only contain plain items"
        )


class InsufficientInventory(DomainException):
    """Stock cannot cover the requested demand.

    ``shortages`` lists every item that fell short, so the caller can
    show exactly what is missing instead of a generic failure.
    """

    def __init__(self, shortages: list[Shortage], message: str | None = None) -> None:
        self.shortages = list(shortages)
        if message is None:
            details = "; ".join(s.describe() for s in self.shortages)
            message = f"Insufficient inventory: {details}"
        super().__init__(message)


class ReservationConflict(InsufficientInventory):
    """Available stock changed between the check and the reservation."""

    retryable = True


class LedgerTimeout(DomainException):
    """A stock row lock could not be acquired in time."""

    retryable = True


def _label(unit: object) -> str:
    return str(getattr(unit, "value", unit))
