"""Value Objects shared across the domain.

Immutable, compared by value, and validated on construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from pantry.domain.exceptions import ValidationError


def to_decimal(value: str | float | int | Decimal, what: str = "quantity") -> Decimal:
    """Coerce user input to Decimal via ``str`` so floats don't leak binary noise."""
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid {what}: {value!r}") from exc


@dataclass(frozen=True)
class Money:
    """A non-negative amount in one currency.

    Ingredient costs are fractions of a cent per gram, so amounts keep
    full Decimal precision and are only rounded by ``__str__``.
    """

    amount: Decimal
    currency: str = "USD"

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise ValidationError(
                f"Money amount must be a Decimal, got {type(self.amount).__name__}"
            )
        if self.amount < 0:
            raise ValidationError(f"Money amount cannot be negative, got {self.amount}")

    @staticmethod
    def of(amount: str | float | int | Decimal) -> Money:
        return Money(to_decimal(amount, "money amount"))

    @staticmethod
    def zero() -> Money:
        return Money(Decimal("0"))

    # --- Arithmetic -----------------------------------------------------------

    def __add__(self, other: Money) -> Money:
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, factor: int | Decimal) -> Money:
        # bool is an int subclass; a True/False factor is always a bug
        if isinstance(factor, bool) or not isinstance(factor, (int, Decimal)):
            raise TypeError(
                f"Can only multiply Money by int or Decimal, got {type(factor).__name__}"
            )
        return Money(self.amount * factor, self.currency)

    def difference(self, other: Money) -> Decimal:
        """Signed ``self - other``; negative means a credit."""
        self._check_currency(other)
        return self.amount - other.amount

    def __lt__(self, other: Money) -> bool:
        return self.difference(other) < 0

    def __gt__(self, other: Money) -> bool:
        return self.difference(other) > 0

    def __ge__(self, other: Money) -> bool:
        return self.difference(other) >= 0

    def __str__(self) -> str:
        return f"${self.amount:.2f}"

    def _check_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise ValidationError(f"Cannot combine {self.currency} with {other.currency}")


@dataclass(frozen=True)
class Quantity:
    """How many sellable units an order line asks for; always a positive int."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValidationError(
                f"Quantity must be an integer, got {type(self.value).__name__}"
            )
        if self.value <= 0:
            raise ValidationError("Quantity must be positive")

    def __str__(self) -> str:
        return str(self.value)
