"""Clock collaborator used for "is this in the past" decisions."""

from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    """Source of the current wall-clock time."""

    def now(self) -> datetime: ...


class SystemClock:
    """
    Clock backed by the host's local time.

    Slot timestamps are naive wall-clock values (the availability timezone is
    stored as an opaque label), so this returns a naive datetime as well.
    """

    def now(self) -> datetime:
        return datetime.now()


class FixedClock:
    """Clock pinned to a given instant, movable by assignment."""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant
