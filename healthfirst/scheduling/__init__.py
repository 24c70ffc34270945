"""
Pure scheduling rules.

Nothing in this package touches the database: windows are validated, expanded
across recurrence dates and carved into slots here, and the services persist
the results.
"""

from healthfirst.scheduling.pricing import COST_MULTIPLIERS, estimate_cost
from healthfirst.scheduling.recurrence import expand_occurrences
from healthfirst.scheduling.slot_generator import (
    GeneratedSlot,
    WindowDefinition,
    expected_slot_count,
    generate_slots,
    iter_slot_intervals,
)
from healthfirst.scheduling.window_validator import (
    MIN_WINDOW_MINUTES,
    intervals_overlap,
    validate_window,
)

__all__ = [
    "COST_MULTIPLIERS",
    "GeneratedSlot",
    "MIN_WINDOW_MINUTES",
    "WindowDefinition",
    "estimate_cost",
    "expand_occurrences",
    "expected_slot_count",
    "generate_slots",
    "intervals_overlap",
    "iter_slot_intervals",
    "validate_window",
]
