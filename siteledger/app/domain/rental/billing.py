"""
Rental Billing Calculator (Domain Logic).

Turns a billable duration into a charge. Partial units round up: one second
into a new day (or hour) bills the whole day (or hour).
"""

import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from siteledger.app.core.exceptions import ValidationError
from siteledger.app.domain.money import Money
from siteledger.app.models.enums import RateUnit

logger = logging.getLogger("siteledger.rental")

Seconds = Union[int, float, Decimal]


@dataclass(frozen=True)
class RentalCharge:
    """Outcome of billing one assignment."""
    total_charge: Money
    billable_seconds: int
    units: int
    rate: Money
    rate_unit: RateUnit
    warning: Optional[str] = None


def whole_seconds(seconds: Seconds) -> int:
    """Round a duration up to whole seconds."""
    if isinstance(seconds, int):
        return seconds
    return math.ceil(seconds)


def billable_units(billable_seconds: int, rate_unit: RateUnit) -> int:
    if billable_seconds <= 0:
        return 0
    return -(-billable_seconds // rate_unit.seconds)


def compute_charge(billable_seconds: Seconds, rate: Money, rate_unit: RateUnit) -> RentalCharge:
    """
    Calculate the charge for a billable duration.

    A zero or negative duration (clock skew, instant return) is billed as
    zero and reported through ``warning``, never as an error.

    Raises:
        ValidationError: If the rate is negative.
    """
    if rate.is_negative:
        raise ValidationError("Rate cannot be negative", details={"rate_minor": rate.minor})

    seconds = whole_seconds(billable_seconds)
    warning = None
    if seconds <= 0:
        warning = f"Billable duration was {seconds}s; charged as zero"
        logger.warning(
            "Non-positive billable duration",
            extra={"billable_seconds": seconds, "rate_unit": rate_unit.value}
        )
        seconds = 0

    units = billable_units(seconds, rate_unit)
    return RentalCharge(
        total_charge=rate * units,
        billable_seconds=seconds,
        units=units,
        rate=rate,
        rate_unit=rate_unit,
        warning=warning,
    )
