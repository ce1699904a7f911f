"""
Rental billing calculator and timeline tests.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from siteledger.app.core.exceptions import ValidationError
from siteledger.app.domain.money import Money
from siteledger.app.domain.rental.billing import compute_charge, billable_units
from siteledger.app.domain.rental.timeline import (
    billable_duration, paused_duration, working_periods, to_seconds
)
from siteledger.app.models.enums import RateUnit

START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

DAY = 86400
HOUR = 3600


@pytest.mark.parametrize("seconds,units", [
    (1, 1),
    (DAY, 1),
    (DAY + 1, 2),
    (3 * DAY, 3),
])
def test_per_day_rounds_partial_days_up(seconds, units):
    charge = compute_charge(seconds, Money(100000), RateUnit.PER_DAY)
    assert charge.units == units
    assert charge.total_charge == Money(100000) * units
    assert charge.warning is None


def test_per_hour_rounds_partial_hours_up():
    charge = compute_charge(2 * HOUR + 1, Money(50000), RateUnit.PER_HOUR)
    assert charge.units == 3
    assert charge.total_charge == Money(150000)


def test_fractional_seconds_round_up():
    charge = compute_charge(DAY + 0.25, Money(100), RateUnit.PER_DAY)
    assert charge.billable_seconds == DAY + 1
    assert charge.units == 2


@pytest.mark.parametrize("seconds", [0, -5])
def test_non_positive_duration_bills_zero_with_warning(seconds):
    charge = compute_charge(seconds, Money(100000), RateUnit.PER_DAY)
    assert charge.total_charge == Money.zero()
    assert charge.units == 0
    assert charge.billable_seconds == 0
    assert charge.warning is not None


def test_negative_rate_rejected():
    with pytest.raises(ValidationError):
        compute_charge(HOUR, Money(-1), RateUnit.PER_HOUR)


def test_charge_is_monotonic_in_duration():
    rate = Money(12345)
    previous = Money.zero()
    for seconds in range(0, 3 * DAY, 1777):
        charge = compute_charge(seconds, rate, RateUnit.PER_HOUR).total_charge
        assert charge >= previous
        previous = charge


def test_billable_units_helper():
    assert billable_units(0, RateUnit.PER_HOUR) == 0
    assert billable_units(HOUR, RateUnit.PER_HOUR) == 1
    assert billable_units(HOUR + 1, RateUnit.PER_HOUR) == 2


def _pause(start_offset, end_offset=None):
    return SimpleNamespace(
        paused_at=START + start_offset,
        resumed_at=START + end_offset if end_offset is not None else None,
    )


def test_billable_duration_subtracts_pauses():
    pauses = [_pause(timedelta(days=1), timedelta(days=3))]
    end = START + timedelta(days=5)
    assert billable_duration(START, pauses, end) == timedelta(days=3)


def test_open_pause_counts_until_now():
    pauses = [_pause(timedelta(hours=2))]
    now = START + timedelta(hours=5)
    assert paused_duration(pauses, now) == timedelta(hours=3)
    assert billable_duration(START, pauses, now) == timedelta(hours=2)


def test_working_periods_follow_pauses():
    pauses = [_pause(timedelta(days=1), timedelta(days=3))]
    periods = working_periods(START, pauses, START + timedelta(days=5))

    assert [(p.start, p.end, p.state) for p in periods] == [
        (START, START + timedelta(days=1), "completed"),
        (START + timedelta(days=3), START + timedelta(days=5), "ongoing"),
    ]
    assert periods[0].seconds == DAY


def test_working_periods_while_paused_have_no_ongoing_period():
    pauses = [_pause(timedelta(hours=1))]
    periods = working_periods(START, pauses, START + timedelta(hours=4))
    assert len(periods) == 1
    assert periods[0].state == "completed"


def test_to_seconds_rounds_up():
    assert to_seconds(timedelta(seconds=1, microseconds=1)) == 2
    assert to_seconds(timedelta(seconds=-1)) == -1
