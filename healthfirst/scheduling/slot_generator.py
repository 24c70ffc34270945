"""
Slot generation.

Expands one availability window into fixed-length slots separated by an
optional break::

    [start, start+d) [start+d+b, start+2d+b) ...

A slot is emitted while ``cursor + d <= end``, which gives
``floor((L - d) / (d + b)) + 1`` slots for a window of length ``L >= d`` and
none otherwise.
"""

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any

from healthfirst.core.references import BookingReferenceFactory
from healthfirst.schemas.availability import AppointmentType, SlotStatus


@dataclass(frozen=True)
class WindowDefinition:
    """The fields of a window that determine its slots."""

    date: date
    start_time: time
    end_time: time
    slot_duration: int
    break_duration: int = 0
    appointment_type: AppointmentType = AppointmentType.CONSULTATION

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "WindowDefinition":
        return cls(
            date=row["date"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            slot_duration=row["slot_duration"],
            break_duration=row.get("break_duration") or 0,
            appointment_type=AppointmentType(row.get("appointment_type") or "consultation"),
        )

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    @property
    def ends_at(self) -> datetime:
        return datetime.combine(self.date, self.end_time)


@dataclass(frozen=True)
class GeneratedSlot:
    """A slot ready to be persisted."""

    start: datetime
    end: datetime
    appointment_type: AppointmentType
    booking_reference: str
    status: SlotStatus = SlotStatus.AVAILABLE


def iter_slot_intervals(
    day: date,
    start: time,
    end: time,
    duration_minutes: int,
    break_minutes: int = 0,
) -> Iterator[tuple[datetime, datetime]]:
    """Yield ``(slot_start, slot_end)`` pairs for one window, in order."""
    if duration_minutes <= 0:
        raise ValueError("Slot duration must be positive")
    if break_minutes < 0:
        raise ValueError("Break duration cannot be negative")

    duration = timedelta(minutes=duration_minutes)
    step = duration + timedelta(minutes=break_minutes)
    window_end = datetime.combine(day, end)
    cursor = datetime.combine(day, start)

    while cursor + duration <= window_end:
        yield cursor, cursor + duration
        cursor += step


def expected_slot_count(window_minutes: int, duration_minutes: int, break_minutes: int = 0) -> int:
    """Closed form of the number of slots ``iter_slot_intervals`` yields."""
    if window_minutes < duration_minutes:
        return 0
    return (window_minutes - duration_minutes) // (duration_minutes + break_minutes) + 1


def generate_slots(
    window: WindowDefinition,
    reference_factory: Callable[[], str] | None = None,
) -> list[GeneratedSlot]:
    """
    Carve a window into AVAILABLE slots.

    The intervals depend only on the window fields. Each slot gets a booking
    reference from ``reference_factory`` (a fresh batch-unique factory when
    omitted).
    """
    next_reference = reference_factory or BookingReferenceFactory()
    return [
        GeneratedSlot(
            start=slot_start,
            end=slot_end,
            appointment_type=window.appointment_type,
            booking_reference=next_reference(),
        )
        for slot_start, slot_end in iter_slot_intervals(
            window.date,
            window.start_time,
            window.end_time,
            window.slot_duration,
            window.break_duration,
        )
    ]
