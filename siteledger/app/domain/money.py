"""
Money value type.

Amounts are held as integer minor units (paise) so ledger arithmetic never
touches floating point. Major-unit input (rupees) is accepted as Decimal,
str or int and must not carry more precision than one paisa.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Union

from siteledger.app.core.config import settings
from siteledger.app.core.exceptions import ValidationError

MINOR_UNITS_PER_MAJOR = 100

# Largest amount a single entry or a running total may hold (10 trillion rupees).
MAX_MINOR = 10 ** 15
MAX_MAJOR = Decimal(MAX_MINOR) / MINOR_UNITS_PER_MAJOR

MajorAmount = Union[Decimal, str, int]


@dataclass(frozen=True, order=True)
class Money:
    """Immutable currency amount in minor units."""

    minor: int

    def __post_init__(self):
        if isinstance(self.minor, bool) or not isinstance(self.minor, int):
            raise TypeError(f"Money minor units must be int, got {type(self.minor).__name__}")

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @classmethod
    def from_major(cls, amount: MajorAmount) -> "Money":
        """
        Build Money from a major-unit amount.

        Raises:
            ValidationError: If the amount is not a number, has sub-paisa
                precision, or is beyond MAX_MAJOR in either direction.
        """
        if isinstance(amount, float):
            # Floats are rejected; their binary representation is not exact.
            raise ValidationError("Amounts must be given as Decimal, str or int, not float")
        try:
            value = Decimal(str(amount))
        except InvalidOperation:
            raise ValidationError(f"Invalid amount: {amount!r}")
        if not value.is_finite():
            raise ValidationError(f"Invalid amount: {amount!r}")

        minor = value * MINOR_UNITS_PER_MAJOR
        if minor != minor.to_integral_value():
            raise ValidationError(
                f"Amount {amount} has more precision than the smallest currency unit"
            )
        if abs(minor) > MAX_MINOR:
            raise ValidationError(
                f"Amount {amount} exceeds the largest supported amount",
                details={"max_minor": MAX_MINOR}
            )
        return cls(int(minor))

    @property
    def major(self) -> Decimal:
        return (Decimal(self.minor) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))

    @property
    def is_positive(self) -> bool:
        return self.minor > 0

    @property
    def is_negative(self) -> bool:
        return self.minor < 0

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor + other.minor)

    def __radd__(self, other):
        # Lets sum() start from the int 0.
        if other == 0:
            return self
        return NotImplemented

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor - other.minor)

    def __mul__(self, factor: int) -> "Money":
        if isinstance(factor, bool) or not isinstance(factor, int):
            return NotImplemented
        return Money(self.minor * factor)

    __rmul__ = __mul__

    def __neg__(self) -> "Money":
        return Money(-self.minor)

    def __abs__(self) -> "Money":
        return Money(abs(self.minor))

    def format(self) -> str:
        """Display form, e.g. ``₹1,000.00`` or ``-₹3,000.00``."""
        sign = "-" if self.minor < 0 else ""
        return f"{sign}{settings.currency_symbol}{abs(self.major):,.2f}"

    def __str__(self) -> str:
        return self.format()
