"""Appointment slots using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Uuid,
    func,
)

from healthfirst.models.base import metadata

appointment_slots = Table(
    "appointment_slots",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references
    Column(
        "availability_id",
        Uuid,
        ForeignKey("provider_availability.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column(
        "provider_id",
        Uuid,
        ForeignKey("providers.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "patient_id",
        Uuid,
        ForeignKey("patients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    ),
    # Naive wall-clock timestamps (window date + local time)
    Column("slot_start_time", DateTime, nullable=False),
    Column("slot_end_time", DateTime, nullable=False),
    # Status management
    Column("status", String(20), nullable=False, server_default="available"),
    Column("appointment_type", String(20), nullable=True),
    Column("booking_reference", String(20), nullable=False, unique=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    # Constraints
    CheckConstraint("slot_start_time < slot_end_time", name="appointment_slots_range_check"),
    CheckConstraint(
        "status IN ('available', 'booked', 'cancelled', 'blocked')",
        name="appointment_slots_status_check",
    ),
    CheckConstraint(
        "status <> 'booked' OR patient_id IS NOT NULL",
        name="appointment_slots_booked_patient_check",
    ),
    Index("idx_appointment_slots_provider_start", "provider_id", "slot_start_time"),
)
