"""Storage and serving units.

Inventory is counted in storage units (Kg, L, piece) while recipes are
written in serving units (grams, mL, piece).  Conversion only happens
inside one family; anything else raises ``IncompatibleUnits`` so a
misconfigured item can never look "in stock".
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pantry.domain.exceptions import IncompatibleUnits, ValidationError


class Unit(Enum):
    KG = "Kg"
    GRAMS = "grams"
    L = "L"
    ML = "mL"
    PIECE = "piece"

    @staticmethod
    def parse(raw: str | Unit) -> Unit:
        if isinstance(raw, Unit):
            return raw
        for unit in Unit:
            if unit.value.lower() == str(raw).strip().lower():
                return unit
        raise ValidationError(f"Unknown unit: {raw!r}")


class UnitFamily(Enum):
    WEIGHT = "weight"
    VOLUME = "volume"
    COUNT = "count"


_FAMILIES: dict[Unit, UnitFamily] = {
    Unit.KG: UnitFamily.WEIGHT,
    Unit.GRAMS: UnitFamily.WEIGHT,
    Unit.L: UnitFamily.VOLUME,
    Unit.ML: UnitFamily.VOLUME,
    Unit.PIECE: UnitFamily.COUNT,
}

# Factor to the family's base unit (grams, mL, piece)
_TO_BASE: dict[Unit, Decimal] = {
    Unit.KG: Decimal("1000"),
    Unit.GRAMS: Decimal("1"),
    Unit.L: Decimal("1000"),
    Unit.ML: Decimal("1"),
    Unit.PIECE: Decimal("1"),
}

_FAMILY_LABELS = {
    UnitFamily.WEIGHT: "weight (Kg/grams)",
    UnitFamily.VOLUME: "volume (L/mL)",
    UnitFamily.COUNT: "count (piece)",
}


def unit_family(unit: Unit) -> UnitFamily:
    return _FAMILIES[unit]


def are_compatible(a: Unit, b: Unit) -> bool:
    return _FAMILIES[a] is _FAMILIES[b]


def convert(value: Decimal, from_unit: Unit, to_unit: Unit) -> Decimal:
    """Convert *value* between two units of the same family."""
    if not are_compatible(from_unit, to_unit):
        raise IncompatibleUnits(from_unit, to_unit)
    if from_unit is to_unit:
        return value
    return value * _TO_BASE[from_unit] / _TO_BASE[to_unit]


def to_serving_units(value: Decimal, storage_unit: Unit, serving_unit: Unit) -> Decimal:
    """Example: 5 Kg -> 5000 grams."""
    return convert(value, storage_unit, serving_unit)


def to_storage_units(value: Decimal, serving_unit: Unit, storage_unit: Unit) -> Decimal:
    """Example: 500 grams -> 0.5 Kg."""
    return convert(value, serving_unit, storage_unit)


def validate_unit_pairing(storage_unit: Unit, serving_unit: Unit) -> None:
    """Reject an item whose storage and serving units are in different families."""
    if not are_compatible(storage_unit, serving_unit):
        storage_family = _FAMILY_LABELS[_FAMILIES[storage_unit]]
        serving_family = _FAMILY_LABELS[_FAMILIES[serving_unit]]
        raise IncompatibleUnits(
            storage_unit,
            serving_unit,
            f"Storage unit ({storage_unit.value}) and serving unit "
            f"({serving_unit.value}) must be in the same category. Storage is "
            f"{storage_family}, but serving is {serving_family}.",
        )


def calculate_servings(
    storage_quantity: Decimal,
    storage_unit: Unit,
    serving_quantity: Decimal,
    serving_unit: Unit,
) -> int:
    """How many whole servings fit in a stored quantity (5 Kg / 200 g -> 25)."""
    if serving_quantity <= 0:
        raise ValidationError("Serving quantity must be positive")
    available = to_serving_units(storage_quantity, storage_unit, serving_unit)
    if available <= 0:
        return 0
    return int(available // serving_quantity)


def default_storage_unit(serving_unit: Unit) -> Unit:
    return {
        Unit.GRAMS: Unit.KG,
        Unit.ML: Unit.L,
        Unit.PIECE: Unit.PIECE,
    }.get(serving_unit, serving_unit)


def format_quantity(quantity: Decimal, unit: Unit, decimals: int = 2) -> str:
    return f"{quantity:.{decimals}f} {unit.value}"
