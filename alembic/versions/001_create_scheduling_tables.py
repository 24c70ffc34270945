"""Create scheduling tables

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create identity lookup, availability and slot tables."""
    op.create_table(
        "providers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=True),
        sa.Column("specialization", sa.String(length=200), nullable=True),
        sa.Column("years_of_experience", sa.Integer(), nullable=True),
        sa.Column("clinic_street", sa.Text(), nullable=True),
        sa.Column("clinic_city", sa.String(length=100), nullable=True),
        sa.Column("clinic_state", sa.String(length=100), nullable=True),
        sa.Column("clinic_zip", sa.String(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_providers_specialization", "providers", ["specialization"])

    op.create_table(
        "patients",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=True),
        sa.Column("gender", sa.String(length=20), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("street", sa.Text(), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("state", sa.String(length=100), nullable=True),
        sa.Column("zip", sa.String(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "provider_availability",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("provider_id", sa.Uuid(), nullable=False),
        sa.Column("series_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("is_recurring", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("recurrence_pattern", sa.String(length=20), nullable=True),
        sa.Column("recurrence_end_date", sa.Date(), nullable=True),
        sa.Column("slot_duration", sa.Integer(), server_default=sa.text("30"), nullable=False),
        sa.Column("break_duration", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "status",
            sa.String(length=20),
            server_default=sa.text("'available'"),
            nullable=False,
        ),
        sa.Column(
            "max_appointments_per_slot",
            sa.Integer(),
            server_default=sa.text("1"),
            nullable=False,
        ),
        sa.Column(
            "current_appointments",
            sa.Integer(),
            server_default=sa.text("0"),
            nullable=False,
        ),
        sa.Column(
            "appointment_type",
            sa.String(length=20),
            server_default=sa.text("'consultation'"),
            nullable=False,
        ),
        sa.Column("location_type", sa.String(length=20), nullable=False),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("room_number", sa.String(length=50), nullable=True),
        sa.Column("base_fee", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column(
            "insurance_accepted",
            sa.Boolean(),
            server_default=sa.false(),
            nullable=False,
        ),
        sa.Column(
            "currency",
            sa.String(length=3),
            server_default=sa.text("'USD'"),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("special_requirements", sa.JSON(), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["provider_id"], ["providers.id"], ondelete="CASCADE"),
        sa.CheckConstraint("start_time < end_time", name="provider_availability_range_check"),
        sa.CheckConstraint(
            "slot_duration BETWEEN 15 AND 480",
            name="provider_availability_slot_duration_check",
        ),
        sa.CheckConstraint(
            "break_duration BETWEEN 0 AND 120",
            name="provider_availability_break_duration_check",
        ),
        sa.CheckConstraint(
            "max_appointments_per_slot BETWEEN 1 AND 10",
            name="provider_availability_max_appointments_check",
        ),
        sa.CheckConstraint(
            "current_appointments >= 0",
            name="provider_availability_current_appointments_check",
        ),
        sa.CheckConstraint(
            "status IN ('available', 'booked', 'cancelled', 'blocked', 'maintenance')",
            name="provider_availability_status_check",
        ),
    )
    op.create_index(
        "ix_provider_availability_series_id",
        "provider_availability",
        ["series_id"],
    )
    op.create_index(
        "idx_provider_availability_provider_date",
        "provider_availability",
        ["provider_id", "date"],
    )

    op.create_table(
        "appointment_slots",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("availability_id", sa.Uuid(), nullable=False),
        sa.Column("provider_id", sa.Uuid(), nullable=False),
        sa.Column("patient_id", sa.Uuid(), nullable=True),
        sa.Column("slot_start_time", sa.DateTime(), nullable=False),
        sa.Column("slot_end_time", sa.DateTime(), nullable=False),
        sa.Column(
            "status",
            sa.String(length=20),
            server_default=sa.text("'available'"),
            nullable=False,
        ),
        sa.Column("appointment_type", sa.String(length=20), nullable=True),
        sa.Column("booking_reference", sa.String(length=20), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("booking_reference"),
        sa.ForeignKeyConstraint(
            ["availability_id"],
            ["provider_availability.id"],
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(["provider_id"], ["providers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="SET NULL"),
        sa.CheckConstraint("slot_start_time < slot_end_time", name="appointment_slots_range_check"),
        sa.CheckConstraint(
            "status IN ('available', 'booked', 'cancelled', 'blocked')",
            name="appointment_slots_status_check",
        ),
        sa.CheckConstraint(
            "status <> 'booked' OR patient_id IS NOT NULL",
            name="appointment_slots_booked_patient_check",
        ),
    )
    op.create_index(
        "ix_appointment_slots_availability_id",
        "appointment_slots",
        ["availability_id"],
    )
    op.create_index("ix_appointment_slots_patient_id", "appointment_slots", ["patient_id"])
    op.create_index(
        "idx_appointment_slots_provider_start",
        "appointment_slots",
        ["provider_id", "slot_start_time"],
    )


def downgrade() -> None:
    """Drop scheduling tables."""
    op.drop_table("appointment_slots")
    op.drop_table("provider_availability")
    op.drop_table("patients")
    op.drop_table("providers")
