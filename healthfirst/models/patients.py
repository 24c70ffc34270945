"""Patient lookup table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import Boolean, Column, Date, DateTime, String, Table, Text, Uuid, func, true

from healthfirst.models.base import metadata

patients = Table(
    "patients",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("email", Text, nullable=False, unique=True),
    Column("phone_number", String(20)),
    Column("gender", String(20)),
    Column("date_of_birth", Date),
    # Address information
    Column("street", Text),
    Column("city", String(100)),
    Column("state", String(100)),
    Column("zip", String(20)),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
