"""Fixed-point money type.

Amounts are held as integer minor units (paise, cents) together with an ISO
currency code. Conversions to and from ``Decimal`` major units are explicit;
arithmetic between different currencies is refused.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

DEFAULT_CURRENCY = "INR"

# Minor-unit scale (digits after the decimal point) per currency
CURRENCY_SCALES = {
    "INR": 2,
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "BRL": 2,
    "JPY": 0,
}


def currency_scale(currency: str) -> int:
    """Return the minor-unit scale for ``currency``."""
    try:
        return CURRENCY_SCALES[currency]
    except KeyError:
        raise ValueError(f"Unsupported currency: {currency}") from None


@dataclass(frozen=True)
class Money:
    """An amount of money in integer minor units."""

    minor_units: int
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        if not isinstance(self.minor_units, int) or isinstance(self.minor_units, bool):
            raise TypeError(f"minor_units must be int, got {type(self.minor_units).__name__}")
        currency_scale(self.currency)

    # Construction

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> Money:
        return cls(0, currency)

    @classmethod
    def of(cls, amount: Decimal | int | str, currency: str = DEFAULT_CURRENCY) -> Money:
        """Build from major units, rounding half-up to the currency scale."""
        scale = currency_scale(currency)
        value = Decimal(str(amount)) if not isinstance(amount, Decimal) else amount
        minor = (value * (Decimal(10) ** scale)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
        return cls(int(minor), currency)

    # Conversion

    @property
    def scale(self) -> int:
        return currency_scale(self.currency)

    def to_decimal(self) -> Decimal:
        """Return the amount in major units."""
        return Decimal(self.minor_units).scaleb(-self.scale)

    def __str__(self) -> str:
        return f"{self.currency} {self.to_decimal():,.{self.scale}f}"

    # Arithmetic

    def _check(self, other: Money) -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Cannot combine Money with {type(other).__name__}")
        if other.currency != self.currency:
            raise ValueError(f"Currency mismatch: {self.currency} vs {other.currency}")

    def __add__(self, other: Money) -> Money:
        self._check(other)
        return Money(self.minor_units + other.minor_units, self.currency)

    def __sub__(self, other: Money) -> Money:
        self._check(other)
        return Money(self.minor_units - other.minor_units, self.currency)

    def __neg__(self) -> Money:
        return Money(-self.minor_units, self.currency)

    def __mul__(self, factor: int) -> Money:
        if not isinstance(factor, int) or isinstance(factor, bool):
            raise TypeError("Money can only be multiplied by int; use scaled() for rates")
        return Money(self.minor_units * factor, self.currency)

    __rmul__ = __mul__

    def scaled(self, factor: Decimal) -> Money:
        """Multiply by a ``Decimal`` factor, rounding half-up to a minor unit."""
        minor = (Decimal(self.minor_units) * factor).quantize(Decimal(1), rounding=ROUND_HALF_UP)
        return Money(int(minor), self.currency)

    def ratio(self, other: Money) -> Decimal:
        """Return ``self / other`` as a ``Decimal``."""
        self._check(other)
        if other.minor_units == 0:
            raise ZeroDivisionError("ratio against zero money")
        return Decimal(self.minor_units) / Decimal(other.minor_units)

    # Comparison

    def __lt__(self, other: Money) -> bool:
        self._check(other)
        return self.minor_units < other.minor_units

    def __le__(self, other: Money) -> bool:
        self._check(other)
        return self.minor_units <= other.minor_units

    def __gt__(self, other: Money) -> bool:
        self._check(other)
        return self.minor_units > other.minor_units

    def __ge__(self, other: Money) -> bool:
        self._check(other)
        return self.minor_units >= other.minor_units

    def is_zero(self) -> bool:
        return self.minor_units == 0

    def is_positive(self) -> bool:
        return self.minor_units > 0


def money_sum(amounts: Iterable[Money], currency: str = DEFAULT_CURRENCY) -> Money:
    """Sum ``Money`` values; an empty iterable yields zero in ``currency``."""
    amounts = list(amounts)
    total = Money.zero(amounts[0].currency if amounts else currency)
    for amount in amounts:
        total = total + amount
    return total
