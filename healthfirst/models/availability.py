"""Provider availability windows using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Time,
    Uuid,
    false,
    func,
    text,
)

from healthfirst.models.base import metadata

provider_availability = Table(
    "provider_availability",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "provider_id",
        Uuid,
        ForeignKey("providers.id", ondelete="CASCADE"),
        nullable=False,
    ),
    # Occurrences created from one recurring request share a series id
    Column("series_id", Uuid, nullable=False, index=True),
    # Window (same calendar date, half-open [start_time, end_time))
    Column("date", Date, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("timezone", String(64), nullable=False),
    # Recurrence
    Column("is_recurring", Boolean, nullable=False, server_default=false()),
    Column("recurrence_pattern", String(20), nullable=True),
    Column("recurrence_end_date", Date, nullable=True),
    # Slot rules
    Column("slot_duration", Integer, nullable=False, server_default=text("30")),
    Column("break_duration", Integer, nullable=False, server_default=text("0")),
    Column("status", String(20), nullable=False, server_default="available"),
    Column("max_appointments_per_slot", Integer, nullable=False, server_default=text("1")),
    Column("current_appointments", Integer, nullable=False, server_default=text("0")),
    Column("appointment_type", String(20), nullable=False, server_default="consultation"),
    # Location
    Column("location_type", String(20), nullable=False),
    Column("address", String(500), nullable=True),
    Column("room_number", String(50), nullable=True),
    # Pricing
    Column("base_fee", Numeric(10, 2), nullable=False),
    Column("insurance_accepted", Boolean, nullable=False, server_default=false()),
    Column("currency", String(3), nullable=False, server_default="USD"),
    # Free text
    Column("notes", Text, nullable=True),
    Column("special_requirements", JSON, nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    # Constraints
    CheckConstraint("start_time < end_time", name="provider_availability_range_check"),
    CheckConstraint(
        "slot_duration BETWEEN 15 AND 480",
        name="provider_availability_slot_duration_check",
    ),
    CheckConstraint(
        "break_duration BETWEEN 0 AND 120",
        name="provider_availability_break_duration_check",
    ),
    CheckConstraint(
        "max_appointments_per_slot BETWEEN 1 AND 10",
        name="provider_availability_max_appointments_check",
    ),
    CheckConstraint(
        "current_appointments >= 0",
        name="provider_availability_current_appointments_check",
    ),
    CheckConstraint(
        "status IN ('available', 'booked', 'cancelled', 'blocked', 'maintenance')",
        name="provider_availability_status_check",
    ),
    Index("idx_provider_availability_provider_date", "provider_id", "date"),
)
