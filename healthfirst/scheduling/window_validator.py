"""
Time-window validation.

A window is the half-open interval [start, end) on one calendar date. Windows
never cross midnight: an end time at or before the start time is rejected as
an invalid range rather than read as "next day".
"""

from collections.abc import Iterable, Mapping
from datetime import date, datetime, time
from typing import Any
from uuid import UUID

from healthfirst.core.exceptions import InvalidRangeException, OverlapException, TooShortException

MIN_WINDOW_MINUTES = 15


def _minutes(value: time) -> float:
    return value.hour * 60 + value.minute + value.second / 60


def window_minutes(start: time, end: time) -> float:
    """Length of [start, end) in minutes."""
    return _minutes(end) - _minutes(start)


def intervals_overlap(a_start: Any, a_end: Any, b_start: Any, b_end: Any) -> bool:
    """
    Half-open interval intersection.

    Adjacent intervals ([9:00, 12:00) and [12:00, 13:00)) do not overlap.
    """
    return a_start < b_end and b_start < a_end


def validate_window(
    provider_id: UUID,
    day: date,
    start: time,
    end: time,
    existing_windows: Iterable[Mapping[str, Any]] = (),
) -> None:
    """
    Check a proposed window before it is written.

    Args:
        provider_id: Provider the window belongs to
        day: Calendar date of the window
        start: Local start time (inclusive)
        end: Local end time (exclusive)
        existing_windows: Rows with ``start_time``/``end_time`` (and optionally
            ``provider_id``/``date``); rows for another provider or date are ignored

    Raises:
        InvalidRangeException: If start is not before end
        TooShortException: If the window is shorter than 15 minutes
        OverlapException: If an existing window intersects the candidate
    """
    if start >= end:
        raise InvalidRangeException()

    if window_minutes(start, end) < MIN_WINDOW_MINUTES:
        raise TooShortException(
            f"Time slot must be at least {MIN_WINDOW_MINUTES} minutes",
        )

    for window in existing_windows:
        if window.get("provider_id", provider_id) != provider_id:
            continue
        if window.get("date", day) != day:
            continue
        if intervals_overlap(window["start_time"], window["end_time"], start, end):
            raise OverlapException(
                f"Time slot overlaps with existing availability on {day.isoformat()} "
                f"({window['start_time']:%H:%M}-{window['end_time']:%H:%M})"
            )


def validate_datetime_range(start: datetime, end: datetime) -> None:
    """Range check for absolute slot timestamps."""
    if start >= end:
        raise InvalidRangeException()
