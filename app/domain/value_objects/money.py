"""
Money value object for handling monetary amounts with currency.

This value object ensures type safety and provides clear semantics
for monetary operations in the domain. Amounts are fixed-point with
two decimal places; floats are never used for arithmetic.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


@dataclass(frozen=True)
class Money:
    """
    Immutable value object representing a monetary amount with currency.

    Attributes:
        amount: The monetary amount as Decimal, quantized to cents
        currency: ISO 4217 currency code (e.g., "USD")

    Example:
        >>> price = Money(amount=Decimal("450.00"), currency="USD")
        >>> (price * 3).amount
        Decimal('1350.00')
    """

    amount: Decimal
    currency: str = "USD"

    def __post_init__(self) -> None:
        """Validate money object after initialization."""
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", Decimal(str(self.amount)))

        object.__setattr__(self, "amount", self.amount.quantize(CENT, rounding=ROUND_HALF_UP))
        object.__setattr__(self, "currency", (self.currency or "").upper())

        if self.amount < 0:
            raise ValueError(f"Money amount cannot be negative: {self.amount}")

        if len(self.currency) != 3:
            raise ValueError(f"Invalid currency code: {self.currency}")

    def __add__(self, other: "Money") -> "Money":
        """Add two Money objects with the same currency."""
        if not isinstance(other, Money):
            raise TypeError(f"Cannot add Money with {type(other)}")

        if self.currency != other.currency:
            raise ValueError(f"Cannot add different currencies: {self.currency} and {other.currency}")

        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __mul__(self, multiplier: int | Decimal) -> "Money":
        """Multiply money by an integer or Decimal quantity."""
        if isinstance(multiplier, bool) or not isinstance(multiplier, (int, Decimal)):
            raise TypeError(f"Cannot multiply Money by {type(multiplier)}")

        return Money(amount=self.amount * Decimal(multiplier), currency=self.currency)

    def __str__(self) -> str:
        return f"{self.currency} {self.amount:.2f}"

    def __repr__(self) -> str:
        return f"Money(amount=Decimal('{self.amount}'), currency='{self.currency}')"

    @property
    def is_zero(self) -> bool:
        """Check if amount is zero."""
        return self.amount == Decimal("0")

    @property
    def cents(self) -> int:
        """Amount in minor units (used by card gateways)."""
        return int(self.amount * 100)

    def differs_from(self, other: "Money", tolerance: Decimal = CENT) -> bool:
        """
        Check whether two amounts disagree beyond ``tolerance``.

        A different currency always counts as a mismatch.
        """
        if self.currency != other.currency:
            return True
        return abs(self.amount - other.amount) > tolerance

    @classmethod
    def zero(cls, currency: str = "USD") -> "Money":
        """Create a zero Money object."""
        return cls(amount=Decimal("0"), currency=currency)

    @classmethod
    def from_string(cls, amount: str, currency: str = "USD") -> "Money":
        """Create Money from string representation (gateway payloads)."""
        return cls(amount=Decimal(amount), currency=currency)

    @classmethod
    def from_cents(cls, cents: int, currency: str = "USD") -> "Money":
        """Create Money from an amount in minor units."""
        return cls(amount=Decimal(cents) / 100, currency=currency)
