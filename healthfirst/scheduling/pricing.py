"""Estimated appointment cost."""

from decimal import ROUND_HALF_UP, Decimal

from healthfirst.schemas.availability import AppointmentType

COST_MULTIPLIERS: dict[AppointmentType, Decimal] = {
    AppointmentType.CONSULTATION: Decimal("1.0"),
    AppointmentType.FOLLOW_UP: Decimal("0.9"),
    AppointmentType.EMERGENCY: Decimal("1.5"),
    AppointmentType.TELEMEDICINE: Decimal("0.8"),
}

CENTS = Decimal("0.01")


def estimate_cost(base_fee: Decimal, appointment_type: AppointmentType | str) -> Decimal:
    """Base fee scaled by the appointment type, rounded to cents."""
    multiplier = COST_MULTIPLIERS.get(AppointmentType(appointment_type), Decimal("1.0"))
    return (Decimal(base_fee) * multiplier).quantize(CENTS, rounding=ROUND_HALF_UP)
