"""Slot schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from healthfirst.schemas.availability import SlotStatus, require_wall_clock


class SlotUpdate(BaseModel):
    """Schema for the administrative slot patch."""

    start_time: datetime | None = None
    end_time: datetime | None = None
    status: SlotStatus | None = None
    notes: str | None = Field(None, max_length=500)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_wall_clock(cls, v: datetime | None) -> datetime | None:
        """Slot times are local wall-clock values without an offset."""
        return require_wall_clock(v)


class SlotResponse(BaseModel):
    """Schema for slot response."""

    id: UUID
    availability_id: UUID
    provider_id: UUID
    patient_id: UUID | None = None
    slot_start_time: datetime
    slot_end_time: datetime
    status: SlotStatus
    appointment_type: str | None = None
    booking_reference: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
