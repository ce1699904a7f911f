"""
Assignment timeline.

Billable time and working periods are derived from the ordered pause
intervals of an assignment.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence, List, Protocol

_ONE_SECOND = timedelta(seconds=1)


class Pause(Protocol):
    paused_at: datetime
    resumed_at: Optional[datetime]


@dataclass(frozen=True)
class WorkingPeriod:
    start: datetime
    end: datetime
    ongoing: bool

    @property
    def seconds(self) -> int:
        return to_seconds(self.end - self.start)

    @property
    def state(self) -> str:
        return "ongoing" if self.ongoing else "completed"


def to_seconds(delta: timedelta) -> int:
    """Whole seconds in ``delta``, rounded up."""
    return -(-delta // _ONE_SECOND)


def paused_duration(pauses: Sequence[Pause], until: datetime) -> timedelta:
    """Total paused time; an open pause counts up to ``until``."""
    total = timedelta(0)
    for pause in pauses:
        end = pause.resumed_at if pause.resumed_at is not None else until
        if end > pause.paused_at:
            total += end - pause.paused_at
    return total


def billable_duration(started_at: datetime, pauses: Sequence[Pause], until: datetime) -> timedelta:
    return (until - started_at) - paused_duration(pauses, until)


def working_periods(
    started_at: datetime,
    pauses: Sequence[Pause],
    until: datetime
) -> List[WorkingPeriod]:
    """
    Stretches of billable time between pauses.

    The last period is ``ongoing`` while the assignment is open and not paused.
    """
    periods = []
    cursor = started_at
    for pause in pauses:
        if pause.paused_at > cursor:
            periods.append(WorkingPeriod(start=cursor, end=pause.paused_at, ongoing=False))
        if pause.resumed_at is None:
            return periods
        cursor = pause.resumed_at

    periods.append(WorkingPeriod(start=cursor, end=until, ongoing=True))
    return periods
