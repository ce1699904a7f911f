"""
Money schemas.

Requests carry amounts in major units (rupees) as decimals; responses carry
both the exact minor units and a display string.
"""

from decimal import Decimal
from pydantic import BaseModel

from siteledger.app.domain.money import Money


class MoneyResponse(BaseModel):
    """Amount in a response."""
    minor: int
    major: Decimal
    display: str

    @classmethod
    def of(cls, money: Money) -> "MoneyResponse":
        return cls(minor=money.minor, major=money.major, display=money.format())

    @classmethod
    def of_minor(cls, minor: int) -> "MoneyResponse":
        return cls.of(Money(minor))
