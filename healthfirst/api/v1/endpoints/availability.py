"""Provider availability endpoints."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from healthfirst.dependencies import Cache, ClockDep, CurrentProvider, DatabaseSession
from healthfirst.schemas.availability import (
    AppointmentType,
    AvailabilityCreate,
    AvailabilityCreateResponse,
    AvailabilityStatus,
    AvailabilityWindowResponse,
    AvailabilityWindowUpdate,
    ProviderAvailabilityResponse,
)
from healthfirst.schemas.search import AvailabilitySearchParams, AvailabilitySearchResponse
from healthfirst.schemas.slots import SlotResponse, SlotUpdate
from healthfirst.services.availability_service import AvailabilityService
from healthfirst.services.search_service import SearchService

router = APIRouter()


@router.post(
    "/availability",
    response_model=AvailabilityCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create availability",
)
async def create_availability(
    data: AvailabilityCreate,
    provider: CurrentProvider,
    db: DatabaseSession,
    cache: Cache,
) -> AvailabilityCreateResponse:
    """
    Publish an availability window (optionally recurring) for the calling provider.

    The window is split into bookable slots immediately.
    """
    service = AvailabilityService(db, cache)
    return await service.create_availability(provider.id, data)


@router.get(
    "/availability/search",
    response_model=AvailabilitySearchResponse,
    status_code=status.HTTP_200_OK,
    summary="Search available slots",
)
async def search_availability(
    db: DatabaseSession,
    clock: ClockDep,
    cache: Cache,
    on_date: date | None = Query(None, alias="date"),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    specialization: str | None = Query(None, max_length=200),
    appointment_type: AppointmentType | None = Query(None),
    insurance_accepted: bool | None = Query(None),
    max_price: Decimal | None = Query(None, gt=0),
) -> AvailabilitySearchResponse:
    """
    Search open future slots across providers.

    Args:
        on_date: Single date (takes precedence over the range)
        start_date: Range start, defaults to today
        end_date: Range end, defaults to a configurable horizon
        specialization: Case-insensitive substring of the provider specialization
        appointment_type: Window appointment type
        insurance_accepted: Filter on insurance acceptance
        max_price: Maximum base fee

    Returns:
        Open slots grouped by provider
    """
    params = AvailabilitySearchParams(
        date=on_date,
        start_date=start_date,
        end_date=end_date,
        specialization=specialization,
        appointment_type=appointment_type,
        insurance_accepted=insurance_accepted,
        max_price=max_price,
    )
    service = SearchService(db, clock, cache)
    return await service.search_available_slots(params)


@router.get(
    "/availability/windows",
    response_model=list[AvailabilityWindowResponse],
    status_code=status.HTTP_200_OK,
    summary="List own availability windows",
)
async def list_windows(
    provider: CurrentProvider,
    db: DatabaseSession,
    start_date: date = Query(...),
    end_date: date = Query(...),
    status_filter: AvailabilityStatus | None = Query(None, alias="status"),
    appointment_type: AppointmentType | None = Query(None),
) -> list[AvailabilityWindowResponse]:
    """List the calling provider's windows ordered by date and start time."""
    service = AvailabilityService(db)
    return await service.find_windows(
        provider.id,
        start_date,
        end_date,
        status=status_filter,
        appointment_type=appointment_type,
    )


@router.patch(
    "/availability/windows/{window_id}",
    response_model=AvailabilityWindowResponse,
    status_code=status.HTTP_200_OK,
    summary="Update availability window",
)
async def update_window(
    window_id: UUID,
    data: AvailabilityWindowUpdate,
    provider: CurrentProvider,
    db: DatabaseSession,
    cache: Cache,
) -> AvailabilityWindowResponse:
    """Update the notes or status of one of the caller's windows."""
    service = AvailabilityService(db, cache)
    return await service.update_window(window_id, provider.id, data)


@router.delete(
    "/availability/windows/{window_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete availability window",
)
async def delete_window(
    window_id: UUID,
    provider: CurrentProvider,
    db: DatabaseSession,
    cache: Cache,
    cascade: bool = Query(False),
    include_series: bool = Query(False),
) -> Response:
    """
    Delete a window with its slots.

    Args:
        window_id: Window to delete
        cascade: Confirm deletion of the window's slots
        include_series: Also delete every window of the same recurring series
    """
    service = AvailabilityService(db, cache)
    await service.delete_window(
        window_id,
        provider.id,
        cascade=cascade,
        include_series=include_series,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/availability/{slot_id}",
    response_model=SlotResponse,
    status_code=status.HTTP_200_OK,
    summary="Update slot",
)
async def update_slot(
    slot_id: UUID,
    data: SlotUpdate,
    provider: CurrentProvider,
    db: DatabaseSession,
    cache: Cache,
) -> SlotResponse:
    """Move, block or annotate one of the caller's slots."""
    service = AvailabilityService(db, cache)
    return await service.update_slot(slot_id, provider.id, data)


@router.delete(
    "/availability/{slot_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete slot",
)
async def delete_slot(
    slot_id: UUID,
    provider: CurrentProvider,
    db: DatabaseSession,
    cache: Cache,
    delete_recurring: bool = Query(False),
    reason: str | None = Query(None, max_length=500),
) -> Response:
    """Delete a slot, or its whole recurring window with ``delete_recurring``."""
    service = AvailabilityService(db, cache)
    await service.delete_slot(
        slot_id,
        provider.id,
        delete_recurring=delete_recurring,
        reason=reason,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{provider_id}/availability",
    response_model=ProviderAvailabilityResponse,
    status_code=status.HTTP_200_OK,
    summary="Get provider availability",
)
async def get_provider_availability(
    provider_id: UUID,
    db: DatabaseSession,
    start_date: date = Query(...),
    end_date: date = Query(...),
    status_filter: AvailabilityStatus | None = Query(None, alias="status"),
    appointment_type: AppointmentType | None = Query(None),
) -> ProviderAvailabilityResponse:
    """
    A provider's slots between two dates, grouped by day.

    Args:
        provider_id: Provider ID
        start_date: First date (inclusive)
        end_date: Last date (inclusive)
        status_filter: Window status
        appointment_type: Window appointment type

    Returns:
        Slots per day and a per-status summary
    """
    service = AvailabilityService(db)
    return await service.get_provider_availability(
        provider_id,
        start_date,
        end_date,
        status=status_filter,
        appointment_type=appointment_type,
    )
