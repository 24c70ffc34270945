"""Appointment booking endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from healthfirst.core.exceptions import ForbiddenException
from healthfirst.dependencies import Cache, ClockDep, CurrentPrincipal, DatabaseSession, Principal
from healthfirst.schemas.appointments import (
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    BookAppointmentRequest,
)
from healthfirst.schemas.availability import AppointmentType, SlotStatus
from healthfirst.services.booking_service import BookingService

router = APIRouter()


def _check_access(principal: Principal, appointment: AppointmentResponse) -> None:
    """Patients see their own appointments, providers the ones on their schedule."""
    if principal.is_provider and appointment.provider_id == principal.id:
        return
    if principal.is_patient and appointment.patient_id == principal.id:
        return
    raise ForbiddenException("Access denied to this appointment")


@router.post(
    "/book",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book appointment",
)
async def book_appointment(
    data: BookAppointmentRequest,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    clock: ClockDep,
    cache: Cache,
) -> AppointmentResponse:
    """
    Book the available slot that contains the requested date and time.

    Patients may only book for themselves and providers only on their own
    schedule.
    """
    if principal.is_patient and data.patient_id != principal.id:
        raise ForbiddenException("Patients can only book appointments for themselves")
    if principal.is_provider and data.provider_id != principal.id:
        raise ForbiddenException("Providers can only book on their own schedule")

    service = BookingService(db, clock, cache)
    return await service.book(data)


@router.get(
    "",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    principal: CurrentPrincipal,
    db: DatabaseSession,
    clock: ClockDep,
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    appointment_type: AppointmentType | None = Query(None),
    provider_id: UUID | None = Query(None),
    patient_id: UUID | None = Query(None),
    status_filter: SlotStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List appointments visible to the caller.

    The caller's own id always replaces the matching filter, so patients only
    ever list their appointments and providers only their schedule.
    """
    if principal.is_patient:
        patient_id = principal.id
    else:
        provider_id = principal.id

    filters = AppointmentFilters(
        start_date=start_date,
        end_date=end_date,
        appointment_type=appointment_type,
        provider_id=provider_id,
        patient_id=patient_id,
        status=status_filter,
        page=page,
        page_size=page_size,
    )

    service = BookingService(db, clock)
    return await service.list_appointments(filters)


@router.get(
    "/{booking_reference}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by booking reference",
)
async def get_appointment(
    booking_reference: str,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    clock: ClockDep,
) -> AppointmentResponse:
    """Look up an appointment by its booking reference."""
    service = BookingService(db, clock)
    appointment = await service.get_by_booking_reference(booking_reference)
    _check_access(principal, appointment)
    return appointment


@router.put(
    "/{booking_reference}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    booking_reference: str,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    clock: ClockDep,
    cache: Cache,
) -> AppointmentResponse:
    """
    Cancel a booked appointment.

    The slot is not returned to the pool; it stays cancelled.
    """
    service = BookingService(db, clock, cache)
    appointment = await service.get_by_booking_reference(booking_reference)
    _check_access(principal, appointment)
    return await service.cancel(booking_reference)
