"""Provider lookup table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Table, Text, Uuid, func, true

from healthfirst.models.base import metadata

providers = Table(
    "providers",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Display / contact
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("email", Text, nullable=False, unique=True),
    Column("phone_number", String(20)),
    # Professional details
    Column("specialization", String(200), index=True),
    Column("years_of_experience", Integer),
    # Clinic address
    Column("clinic_street", Text),
    Column("clinic_city", String(100)),
    Column("clinic_state", String(100)),
    Column("clinic_zip", String(20)),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
