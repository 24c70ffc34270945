"""Recurrence expansion for availability windows."""

import calendar
from datetime import date, timedelta

from healthfirst.core.exceptions import ValidationException
from healthfirst.schemas.availability import RecurrencePattern


def _add_months(day: date, months: int) -> date | None:
    """Same day-of-month ``months`` later, or None when that month is too short."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    if day.day > calendar.monthrange(year, month)[1]:
        return None
    return date(year, month, day.day)


def expand_occurrences(
    start_date: date,
    pattern: RecurrencePattern | None,
    end_date: date | None,
    limit: int = 366,
) -> list[date]:
    """
    List the dates a window definition repeats on.

    DAILY repeats every day, WEEKLY on the same weekday and MONTHLY on the same
    day of the month (months without that day are skipped). The original date
    is always the first occurrence and ``end_date`` is inclusive.

    Raises:
        ValidationException: If the pattern needs an end date that is missing or
            earlier than the start date, or the series exceeds ``limit`` dates
    """
    if pattern is None or pattern == RecurrencePattern.NONE:
        return [start_date]

    if end_date is None:
        raise ValidationException("Recurrence end date is required for recurring availability")
    if end_date < start_date:
        raise ValidationException("Recurrence end date must not be before the start date")

    occurrences: list[date] = []

    if pattern == RecurrencePattern.MONTHLY:
        months = 0
        while True:
            candidate = _add_months(start_date, months)
            months += 1
            if candidate is None:
                continue
            if candidate > end_date:
                break
            occurrences.append(candidate)
            if len(occurrences) > limit:
                break
    else:
        step = timedelta(days=1 if pattern == RecurrencePattern.DAILY else 7)
        current = start_date
        while current <= end_date and len(occurrences) <= limit:
            occurrences.append(current)
            current += step

    if len(occurrences) > limit:
        raise ValidationException(f"Recurrence produces more than {limit} occurrences")

    return occurrences
