"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from healthfirst.schemas.availability import AppointmentType, SlotStatus, require_wall_clock


class AppointmentMode(str, Enum):
    """How the patient attends."""

    IN_PERSON = "in_person"
    TELEMEDICINE = "telemedicine"
    HOME_VISIT = "home_visit"


class BookAppointmentRequest(BaseModel):
    """Schema for booking an appointment."""

    patient_id: UUID
    provider_id: UUID
    appointment_date: date
    appointment_time: time
    appointment_type: AppointmentType = AppointmentType.CONSULTATION
    appointment_mode: AppointmentMode | None = None
    reason_for_visit: str | None = Field(None, min_length=10, max_length=500)
    additional_notes: str | None = Field(None, max_length=1000)
    insurance_provider: str | None = Field(
        None,
        max_length=100,
        pattern=r"^[A-Za-z0-9\s\-]+$",
    )
    insurance_policy_number: str | None = Field(
        None,
        max_length=50,
        pattern=r"^[A-Za-z0-9\-]+$",
    )

    @field_validator("appointment_time")
    @classmethod
    def validate_wall_clock(cls, v: time) -> time:
        """The requested time is matched against naive slot times."""
        return require_wall_clock(v)

    @property
    def appointment_datetime(self) -> datetime:
        """Requested wall-clock start."""
        return datetime.combine(self.appointment_date, self.appointment_time)


class AppointmentResponse(BaseModel):
    """Schema for a booking confirmation or appointment lookup."""

    appointment_id: UUID
    availability_id: UUID
    booking_reference: str
    appointment_datetime: datetime
    appointment_end_datetime: datetime
    appointment_date: date
    appointment_time: time
    appointment_type: str | None = None
    status: SlotStatus

    # Patient
    patient_id: UUID | None = None
    patient_name: str | None = None
    patient_email: str | None = None
    patient_phone: str | None = None

    # Provider
    provider_id: UUID
    provider_name: str | None = None
    provider_specialization: str | None = None
    provider_email: str | None = None
    provider_phone: str | None = None
    clinic_address: str | None = None

    # Cost
    estimated_cost: Decimal | None = None
    currency: str | None = None

    # Request echo
    appointment_mode: AppointmentMode | None = None
    reason_for_visit: str | None = None
    additional_notes: str | None = None
    insurance_provider: str | None = None
    insurance_policy_number: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    start_date: date | None = None
    end_date: date | None = None
    appointment_type: AppointmentType | None = None
    provider_id: UUID | None = None
    patient_id: UUID | None = None
    status: SlotStatus | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    items: list[AppointmentResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool
