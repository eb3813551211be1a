"""
Money helpers.

All amounts are persisted as integer cents. Conversion from major units
(the values people type) happens only at the API boundary, at a fixed
100 cents per unit. Amounts with more than two decimal places are
truncated toward zero so the same input always lands on the same cent.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_DOWN

from moneyplan.config import CENTS_PER_UNIT, DEFAULT_CURRENCY
from moneyplan.exceptions import ValidationError

_CENT = Decimal(1) / Decimal(CENTS_PER_UNIT)


def to_cents(value, field: str = "amount") -> int:
    """
    Convert a major-unit amount to integer cents.

    Args:
        value: int, float, str or Decimal amount in major units (12.50)
        field: Field name reported in the validation error

    Returns:
        Whole cents (1250)

    Raises:
        ValidationError: If the value is not a finite, non-negative number
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(field, f"{field} is required")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(field, f"{field} must be a number, got {value!r}")
    if not amount.is_finite():
        raise ValidationError(field, f"{field} must be a finite number")
    if amount < 0:
        raise ValidationError(field, f"{field} cannot be negative")
    truncated = amount.quantize(_CENT, rounding=ROUND_DOWN)
    return int(truncated * CENTS_PER_UNIT)


def from_cents(cents: int) -> float:
    """Convert integer cents back to major units (1250 -> 12.5)."""
    return cents / CENTS_PER_UNIT


def validate_cents(cents, field: str = "amount_cents") -> int:
    """Check that an already-converted amount is a non-negative int."""
    if isinstance(cents, bool) or not isinstance(cents, int):
        raise ValidationError(field, f"{field} must be a whole number of cents")
    if cents < 0:
        raise ValidationError(field, f"{field} cannot be negative")
    return cents


@dataclass(frozen=True)
class Money:
    """An amount of integer cents in a single currency."""

    cents: int
    currency: str = DEFAULT_CURRENCY

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(0, currency)

    @classmethod
    def from_major(cls, value, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(to_cents(value), currency)

    @property
    def amount(self) -> float:
        return from_cents(self.cents)

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Cannot combine Money with {type(other).__name__}")
        if other.currency != self.currency:
            raise ValidationError(
                "currency",
                f"Currency mismatch: {self.currency} vs {other.currency}",
            )

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.cents + other.cents, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.cents - other.cents, self.currency)

    def format(self) -> str:
        sign = "-" if self.cents < 0 else ""
        whole, frac = divmod(abs(self.cents), CENTS_PER_UNIT)
        return f"{sign}{whole}.{frac:02d} {self.currency}"
