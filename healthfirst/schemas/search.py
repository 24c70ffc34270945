"""Search schemas for availability discovery."""

import datetime
from datetime import date, time
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from healthfirst.schemas.availability import AppointmentType, LocationInfo, PricingInfo


class AvailabilitySearchParams(BaseModel):
    """Search criteria for available slots."""

    date: datetime.date | None = None
    start_date: datetime.date | None = None
    end_date: datetime.date | None = None
    specialization: str | None = Field(None, max_length=200)
    appointment_type: AppointmentType | None = None
    insurance_accepted: bool | None = None
    max_price: Decimal | None = Field(None, gt=0)


class SearchCriteria(BaseModel):
    """Effective criteria echoed back to the caller."""

    start_date: date
    end_date: date
    specialization: str | None = None
    appointment_type: AppointmentType | None = None
    insurance_accepted: bool | None = None
    max_price: Decimal | None = None


class SearchProviderInfo(BaseModel):
    """Provider card in search results."""

    id: UUID
    name: str
    specialization: str | None = None
    years_of_experience: int | None = None
    clinic_address: str | None = None


class SearchSlot(BaseModel):
    """An open slot in search results."""

    slot_id: UUID
    date: date
    start_time: time
    end_time: time
    appointment_type: str | None = None
    location: LocationInfo
    pricing: PricingInfo
    special_requirements: list[str] = Field(default_factory=list)


class SearchResult(BaseModel):
    """Open slots of one provider."""

    provider: SearchProviderInfo
    available_slots: list[SearchSlot]


class AvailabilitySearchResponse(BaseModel):
    """Search response."""

    search_criteria: SearchCriteria
    total_results: int
    results: list[SearchResult]
