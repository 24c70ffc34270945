"""Availability schemas for request/response validation."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from healthfirst.config import settings


def require_wall_clock(value: datetime | time | None) -> datetime | time | None:
    """Reject values carrying a UTC offset; schedules use local wall-clock times."""
    if value is not None and value.tzinfo is not None:
        raise ValueError("Times must be local wall-clock times without a UTC offset")
    return value


class AvailabilityStatus(str, Enum):
    """Availability window status enumeration."""

    AVAILABLE = "available"
    BOOKED = "booked"
    CANCELLED = "cancelled"
    BLOCKED = "blocked"
    MAINTENANCE = "maintenance"


class SlotStatus(str, Enum):
    """Slot status enumeration."""

    AVAILABLE = "available"
    BOOKED = "booked"
    CANCELLED = "cancelled"
    BLOCKED = "blocked"


class AppointmentType(str, Enum):
    """Appointment type enumeration."""

    CONSULTATION = "consultation"
    FOLLOW_UP = "follow_up"
    EMERGENCY = "emergency"
    TELEMEDICINE = "telemedicine"


class RecurrencePattern(str, Enum):
    """Recurrence cadence enumeration."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class LocationType(str, Enum):
    """Where the appointment takes place."""

    CLINIC = "clinic"
    HOSPITAL = "hospital"
    TELEMEDICINE = "telemedicine"
    HOME_VISIT = "home_visit"


class LocationRequest(BaseModel):
    """Location of an availability window."""

    type: LocationType = LocationType.CLINIC
    address: str | None = Field(None, max_length=500)
    room_number: str | None = Field(None, max_length=50)

    @model_validator(mode="after")
    def require_address_for_physical_locations(self) -> "LocationRequest":
        """Physical locations need an address."""
        if self.type != LocationType.TELEMEDICINE and not (self.address and self.address.strip()):
            raise ValueError("Address is required for physical locations")
        return self


class PricingRequest(BaseModel):
    """Pricing of an availability window."""

    base_fee: Decimal | None = Field(None, gt=0, max_digits=10, decimal_places=2)
    insurance_accepted: bool = False
    currency: str = Field(default="USD", min_length=3, max_length=3)


class AvailabilityCreate(BaseModel):
    """
    Schema for creating availability.

    Ordering of ``start_time``/``end_time`` and the recurrence rules are
    checked by the availability service so they surface as typed errors.
    """

    date: date
    start_time: time
    end_time: time
    timezone: str = Field(..., min_length=1, max_length=64)
    slot_duration: int = Field(
        default_factory=lambda: settings.default_slot_duration, ge=15, le=480
    )
    break_duration: int = Field(default=0, ge=0, le=120)
    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern = RecurrencePattern.NONE
    recurrence_end_date: date | None = None
    max_appointments_per_slot: int = Field(default=1, ge=1, le=10)
    appointment_type: AppointmentType = AppointmentType.CONSULTATION
    location: LocationRequest
    pricing: PricingRequest | None = None
    special_requirements: list[str] = Field(default_factory=list)
    notes: str | None = Field(None, max_length=500)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_wall_clock(cls, v: time) -> time:
        """Window bounds are compared with stored naive times."""
        return require_wall_clock(v)


class AvailabilityWindowUpdate(BaseModel):
    """Schema for updating the mutable fields of a window."""

    notes: str | None = Field(None, max_length=500)
    status: AvailabilityStatus | None = None


class DateRange(BaseModel):
    """Inclusive date range."""

    start: date
    end: date


class AvailabilityCreateResponse(BaseModel):
    """Result of creating availability."""

    availability_id: UUID
    availability_ids: list[UUID]
    series_id: UUID
    slots_created: int
    date_range: DateRange
    total_appointments_available: int


class LocationInfo(BaseModel):
    """Location details in responses."""

    type: LocationType
    address: str | None = None
    room_number: str | None = None


class PricingInfo(BaseModel):
    """Pricing details in responses."""

    base_fee: Decimal
    insurance_accepted: bool
    currency: str


class AvailabilityWindowResponse(BaseModel):
    """Schema for an availability window."""

    id: UUID
    provider_id: UUID
    series_id: UUID
    date: date
    start_time: time
    end_time: time
    timezone: str
    is_recurring: bool
    recurrence_pattern: RecurrencePattern | None = None
    recurrence_end_date: date | None = None
    slot_duration: int
    break_duration: int
    status: AvailabilityStatus
    max_appointments_per_slot: int
    current_appointments: int
    appointment_type: AppointmentType
    location: LocationInfo
    pricing: PricingInfo
    notes: str | None = None
    special_requirements: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict) -> "AvailabilityWindowResponse":
        """Build from a ``provider_availability`` row mapping."""
        fields = {
            key: value
            for key, value in row.items()
            if key in cls.model_fields and key != "special_requirements"
        }
        return cls(
            **fields,
            location=location_from_row(row),
            pricing=pricing_from_row(row),
            special_requirements=row.get("special_requirements") or [],
        )


class SlotInfo(BaseModel):
    """A slot as shown in a provider's availability view."""

    slot_id: UUID
    availability_id: UUID
    start_time: datetime
    end_time: datetime
    status: str
    appointment_type: str | None = None
    booking_reference: str
    location: LocationInfo
    pricing: PricingInfo


class DailyAvailability(BaseModel):
    """Slots grouped under one date."""

    date: date
    slots: list[SlotInfo]


class AvailabilitySummary(BaseModel):
    """Slot counts per status."""

    total_slots: int = 0
    available_slots: int = 0
    booked_slots: int = 0
    cancelled_slots: int = 0
    blocked_slots: int = 0


class ProviderAvailabilityResponse(BaseModel):
    """A provider's availability over a date range."""

    provider_id: UUID
    availability_summary: AvailabilitySummary
    availability: list[DailyAvailability]


def location_from_row(row: dict) -> LocationInfo:
    """Extract the embedded location from a window row."""
    return LocationInfo(
        type=row["location_type"],
        address=row.get("address"),
        room_number=row.get("room_number"),
    )


def pricing_from_row(row: dict) -> PricingInfo:
    """Extract the embedded pricing from a window row."""
    return PricingInfo(
        base_fee=row["base_fee"],
        insurance_accepted=bool(row["insurance_accepted"]),
        currency=row["currency"],
    )
