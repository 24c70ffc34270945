"""Tests for the availability store."""

from datetime import date, datetime, time
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from healthfirst.config import settings
from healthfirst.core.exceptions import (
    CannotDeleteBookedException,
    ForbiddenException,
    HasBookedSlotsException,
    InternalException,
    InvalidRangeException,
    InvalidStatusTransitionException,
    NotFoundException,
    OutOfBoundsException,
    OverlapException,
    ProviderNotFoundException,
    TooShortException,
    ValidationException,
)
from healthfirst.models import appointment_slots, provider_availability
from healthfirst.schemas.appointments import BookAppointmentRequest
from healthfirst.schemas.availability import (
    AppointmentType,
    AvailabilityCreate,
    AvailabilityStatus,
    AvailabilityWindowUpdate,
    SlotStatus,
)
from healthfirst.schemas.slots import SlotUpdate
from healthfirst.services.availability_service import AvailabilityService
from healthfirst.services.booking_service import BookingService

DAY = date(2024, 2, 15)


def window_request(**overrides) -> AvailabilityCreate:
    data = {
        "date": DAY,
        "start_time": time(9, 0),
        "end_time": time(10, 0),
        "timezone": "America/New_York",
        "slot_duration": 30,
        "location": {"type": "clinic", "address": "1 Main St"},
        "pricing": {"base_fee": Decimal("150.00"), "insurance_accepted": True},
    }
    data.update(overrides)
    return AvailabilityCreate.model_validate(data)


async def count_rows(db_session, table) -> int:
    result = await db_session.execute(select(func.count()).select_from(table))
    count = result.scalar()
    await db_session.commit()
    return count


async def slots_of(db_session, window_id) -> list[dict]:
    result = await db_session.execute(
        select(appointment_slots)
        .where(appointment_slots.c.availability_id == window_id)
        .order_by(appointment_slots.c.slot_start_time)
    )
    rows = [dict(row._mapping) for row in result.fetchall()]
    await db_session.commit()
    return rows


@pytest.mark.asyncio
async def test_create_window_generates_slots(db_session, provider):
    """A one-hour window with 30-minute slots stores two available slots."""
    service = AvailabilityService(db_session)

    created = await service.create_availability(provider["id"], window_request())

    assert created.slots_created == 2
    assert created.total_appointments_available == 2
    assert created.availability_ids == [created.availability_id]
    assert created.date_range.start == created.date_range.end == DAY

    slots = await slots_of(db_session, created.availability_id)
    assert [(slot["slot_start_time"], slot["slot_end_time"]) for slot in slots] == [
        (datetime(2024, 2, 15, 9, 0), datetime(2024, 2, 15, 9, 30)),
        (datetime(2024, 2, 15, 9, 30), datetime(2024, 2, 15, 10, 0)),
    ]
    assert {slot["status"] for slot in slots} == {"available"}
    assert all(slot["patient_id"] is None for slot in slots)


@pytest.mark.asyncio
async def test_create_applies_defaults(db_session, provider):
    """Missing pricing falls back to the configured base fee and currency."""
    service = AvailabilityService(db_session)

    created = await service.create_availability(
        provider["id"], window_request(pricing=None, max_appointments_per_slot=3)
    )
    window = await service.get_window(created.availability_id)

    assert window.pricing.base_fee == Decimal("100.00")
    assert window.pricing.currency == "USD"
    assert window.pricing.insurance_accepted is False
    assert window.slot_duration == 30
    assert window.break_duration == 0
    assert window.appointment_type == AppointmentType.CONSULTATION
    assert window.status == AvailabilityStatus.AVAILABLE
    assert created.total_appointments_available == 6


@pytest.mark.asyncio
async def test_overlapping_window_is_rejected(db_session, provider):
    """[11:00, 13:00) conflicts with [09:00, 12:00); [12:00, 13:00) does not."""
    service = AvailabilityService(db_session)
    await service.create_availability(
        provider["id"], window_request(start_time=time(9, 0), end_time=time(12, 0))
    )

    with pytest.raises(OverlapException):
        await service.create_availability(
            provider["id"], window_request(start_time=time(11, 0), end_time=time(13, 0))
        )

    adjacent = await service.create_availability(
        provider["id"], window_request(start_time=time(12, 0), end_time=time(13, 0))
    )
    assert adjacent.slots_created == 2


@pytest.mark.asyncio
async def test_other_providers_do_not_conflict(db_session, provider, make_provider):
    """Overlap is only checked within one provider's schedule."""
    other = await make_provider()
    service = AvailabilityService(db_session)

    await service.create_availability(provider["id"], window_request())
    created = await service.create_availability(other["id"], window_request())

    assert created.slots_created == 2


@pytest.mark.asyncio
async def test_invalid_windows_are_rejected(db_session, provider):
    """Range, length and zero-slot windows are refused before anything is written."""
    service = AvailabilityService(db_session)

    with pytest.raises(InvalidRangeException):
        await service.create_availability(
            provider["id"], window_request(start_time=time(10, 0), end_time=time(9, 0))
        )
    with pytest.raises(TooShortException):
        await service.create_availability(
            provider["id"], window_request(start_time=time(9, 0), end_time=time(9, 10))
        )
    with pytest.raises(TooShortException):
        await service.create_availability(
            provider["id"],
            window_request(start_time=time(9, 0), end_time=time(9, 20), slot_duration=30),
        )

    assert await count_rows(db_session, provider_availability) == 0


@pytest.mark.asyncio
async def test_unknown_provider(db_session):
    """Windows can only be created for known providers."""
    service = AvailabilityService(db_session)

    with pytest.raises(ProviderNotFoundException):
        await service.create_availability(uuid4(), window_request())


@pytest.mark.asyncio
async def test_weekly_recurrence_creates_a_series(db_session, provider):
    """Each weekly occurrence gets its own window and slots, sharing a series id."""
    service = AvailabilityService(db_session)

    created = await service.create_availability(
        provider["id"],
        window_request(
            is_recurring=True,
            recurrence_pattern="weekly",
            recurrence_end_date=date(2024, 3, 7),
        ),
    )

    assert len(created.availability_ids) == 4
    assert created.slots_created == 8
    assert created.date_range.end == date(2024, 3, 7)

    windows = await service.find_windows(provider["id"], DAY, date(2024, 3, 31))
    assert [window.date for window in windows] == [
        date(2024, 2, 15),
        date(2024, 2, 22),
        date(2024, 2, 29),
        date(2024, 3, 7),
    ]
    assert {window.series_id for window in windows} == {created.series_id}
    assert all(window.is_recurring for window in windows)


@pytest.mark.asyncio
async def test_recurring_overlap_rejects_the_whole_series(db_session, provider):
    """One conflicting occurrence means no occurrence is written."""
    service = AvailabilityService(db_session)
    await service.create_availability(provider["id"], window_request(date=date(2024, 2, 22)))

    with pytest.raises(OverlapException):
        await service.create_availability(
            provider["id"],
            window_request(
                is_recurring=True,
                recurrence_pattern="weekly",
                recurrence_end_date=date(2024, 3, 7),
            ),
        )

    assert await count_rows(db_session, provider_availability) == 1
    assert await count_rows(db_session, appointment_slots) == 2


@pytest.mark.asyncio
async def test_recurring_without_pattern_is_rejected(db_session, provider):
    """A recurring request must name its cadence."""
    service = AvailabilityService(db_session)

    with pytest.raises(ValidationException):
        await service.create_availability(
            provider["id"],
            window_request(is_recurring=True, recurrence_end_date=date(2024, 3, 7)),
        )


@pytest.mark.asyncio
async def test_find_windows_orders_and_filters(db_session, provider):
    """Windows come back by (date, start time) and honour the filters."""
    service = AvailabilityService(db_session)
    await service.create_availability(
        provider["id"], window_request(start_time=time(14, 0), end_time=time(15, 0))
    )
    await service.create_availability(
        provider["id"],
        window_request(date=date(2024, 2, 14), appointment_type="telemedicine"),
    )
    await service.create_availability(provider["id"], window_request())

    windows = await service.find_windows(provider["id"], date(2024, 2, 1), date(2024, 2, 29))
    assert [(window.date, window.start_time) for window in windows] == [
        (date(2024, 2, 14), time(9, 0)),
        (date(2024, 2, 15), time(9, 0)),
        (date(2024, 2, 15), time(14, 0)),
    ]

    telemedicine = await service.find_windows(
        provider["id"],
        date(2024, 2, 1),
        date(2024, 2, 29),
        appointment_type=AppointmentType.TELEMEDICINE,
    )
    assert [window.date for window in telemedicine] == [date(2024, 2, 14)]

    overlapping = await service.find_overlapping(provider["id"], DAY, time(9, 45), time(14, 15))
    assert len(overlapping) == 2


@pytest.mark.asyncio
async def test_provider_availability_view(db_session, provider, patient, clock):
    """Slots are grouped by date with a per-status summary."""
    service = AvailabilityService(db_session)
    await service.create_availability(provider["id"], window_request())
    await service.create_availability(provider["id"], window_request(date=date(2024, 2, 16)))

    await BookingService(db_session, clock).book(
        BookAppointmentRequest(
            patient_id=patient["id"],
            provider_id=provider["id"],
            appointment_date=DAY,
            appointment_time=time(9, 0),
        )
    )

    view = await service.get_provider_availability(provider["id"], DAY, date(2024, 2, 16))

    assert [day.date for day in view.availability] == [DAY, date(2024, 2, 16)]
    assert [len(day.slots) for day in view.availability] == [2, 2]
    assert view.availability_summary.total_slots == 4
    assert view.availability_summary.booked_slots == 1
    assert view.availability_summary.available_slots == 3
    assert view.availability[0].slots[0].pricing.base_fee == Decimal("150.00")

    with pytest.raises(InvalidRangeException):
        await service.get_provider_availability(provider["id"], date(2024, 2, 16), DAY)


@pytest.mark.asyncio
async def test_update_window(db_session, provider, make_provider):
    """Only the owner can change notes and status."""
    service = AvailabilityService(db_session)
    created = await service.create_availability(provider["id"], window_request())

    updated = await service.update_window(
        created.availability_id,
        provider["id"],
        AvailabilityWindowUpdate(notes="Bring referral letter", status="maintenance"),
    )
    assert updated.notes == "Bring referral letter"
    assert updated.status == AvailabilityStatus.MAINTENANCE

    other = await make_provider()
    with pytest.raises(ForbiddenException):
        await service.update_window(
            created.availability_id, other["id"], AvailabilityWindowUpdate(notes="x")
        )
    with pytest.raises(NotFoundException):
        await service.update_window(uuid4(), provider["id"], AvailabilityWindowUpdate(notes="x"))


@pytest.mark.asyncio
async def test_delete_window_requires_cascade(db_session, provider):
    """Slots are only removed with the window when cascading is confirmed."""
    service = AvailabilityService(db_session)
    created = await service.create_availability(provider["id"], window_request())

    with pytest.raises(HasBookedSlotsException):
        await service.delete_window(created.availability_id, provider["id"])

    deleted = await service.delete_window(created.availability_id, provider["id"], cascade=True)

    assert deleted == 1
    assert await count_rows(db_session, provider_availability) == 0
    assert await count_rows(db_session, appointment_slots) == 0


@pytest.mark.asyncio
async def test_delete_window_with_booked_slot_fails(db_session, provider, patient, clock):
    """Booked slots are never deleted, cascade or not."""
    service = AvailabilityService(db_session)
    created = await service.create_availability(provider["id"], window_request())
    await BookingService(db_session, clock).book(
        BookAppointmentRequest(
            patient_id=patient["id"],
            provider_id=provider["id"],
            appointment_date=DAY,
            appointment_time=time(9, 30),
        )
    )

    with pytest.raises(HasBookedSlotsException):
        await service.delete_window(created.availability_id, provider["id"], cascade=True)

    assert await count_rows(db_session, appointment_slots) == 2


@pytest.mark.asyncio
async def test_delete_window_series(db_session, provider):
    """include_series removes every window of the recurring request."""
    service = AvailabilityService(db_session)
    created = await service.create_availability(
        provider["id"],
        window_request(
            is_recurring=True,
            recurrence_pattern="daily",
            recurrence_end_date=date(2024, 2, 17),
        ),
    )

    deleted = await service.delete_window(
        created.availability_ids[1], provider["id"], cascade=True, include_series=True
    )

    assert deleted == 3
    assert await count_rows(db_session, provider_availability) == 0


@pytest.mark.asyncio
async def test_update_slot_moves_within_window(db_session, provider):
    """A slot may move inside its window but not outside it or onto a sibling."""
    service = AvailabilityService(db_session)
    created = await service.create_availability(
        provider["id"],
        window_request(
            start_time=time(9, 0),
            end_time=time(11, 0),
            slot_duration=30,
            break_duration=30,
        ),
    )
    first, second = await slots_of(db_session, created.availability_id)

    moved = await service.update_slot(
        first["id"],
        provider["id"],
        SlotUpdate(
            start_time=datetime(2024, 2, 15, 9, 15),
            end_time=datetime(2024, 2, 15, 9, 45),
        ),
    )
    assert moved.slot_start_time == datetime(2024, 2, 15, 9, 15)
    assert moved.slot_end_time == datetime(2024, 2, 15, 9, 45)

    with pytest.raises(InvalidRangeException):
        await service.update_slot(
            first["id"],
            provider["id"],
            SlotUpdate(start_time=datetime(2024, 2, 15, 9, 45)),
        )
    with pytest.raises(OutOfBoundsException):
        await service.update_slot(
            first["id"],
            provider["id"],
            SlotUpdate(
                start_time=datetime(2024, 2, 15, 8, 45),
                end_time=datetime(2024, 2, 15, 9, 15),
            ),
        )
    with pytest.raises(OverlapException):
        await service.update_slot(
            first["id"],
            provider["id"],
            SlotUpdate(
                start_time=datetime(2024, 2, 15, 9, 50),
                end_time=datetime(2024, 2, 15, 10, 20),
            ),
        )
    assert second["slot_start_time"] == datetime(2024, 2, 15, 10, 0)


@pytest.mark.asyncio
async def test_update_slot_status_and_notes(db_session, provider, make_provider):
    """AVAILABLE may become BLOCKED; notes land on the window."""
    service = AvailabilityService(db_session)
    created = await service.create_availability(provider["id"], window_request())
    first, _ = await slots_of(db_session, created.availability_id)

    blocked = await service.update_slot(
        first["id"],
        provider["id"],
        SlotUpdate(status=SlotStatus.BLOCKED, notes="Staff meeting"),
    )
    assert blocked.status == SlotStatus.BLOCKED

    window = await service.get_window(created.availability_id)
    assert window.notes == "Staff meeting"

    with pytest.raises(InvalidStatusTransitionException):
        await service.update_slot(
            first["id"], provider["id"], SlotUpdate(status=SlotStatus.AVAILABLE)
        )
    with pytest.raises(InvalidStatusTransitionException):
        await service.update_slot(first["id"], provider["id"], SlotUpdate(status=SlotStatus.BOOKED))

    other = await make_provider()
    with pytest.raises(ForbiddenException):
        await service.update_slot(first["id"], other["id"], SlotUpdate(notes="x"))
    with pytest.raises(NotFoundException):
        await service.update_slot(uuid4(), provider["id"], SlotUpdate(notes="x"))


@pytest.mark.asyncio
async def test_booked_slot_cannot_be_moved_or_deleted(db_session, provider, patient, clock):
    """Booked slots are frozen for administrative changes."""
    service = AvailabilityService(db_session)
    created = await service.create_availability(provider["id"], window_request())
    confirmation = await BookingService(db_session, clock).book(
        BookAppointmentRequest(
            patient_id=patient["id"],
            provider_id=provider["id"],
            appointment_date=DAY,
            appointment_time=time(9, 0),
        )
    )

    with pytest.raises(InvalidStatusTransitionException):
        await service.update_slot(
            confirmation.appointment_id,
            provider["id"],
            SlotUpdate(end_time=datetime(2024, 2, 15, 9, 20)),
        )
    with pytest.raises(CannotDeleteBookedException):
        await service.delete_slot(confirmation.appointment_id, provider["id"])
    with pytest.raises(CannotDeleteBookedException):
        await service.delete_slot(
            confirmation.appointment_id, provider["id"], delete_recurring=True
        )

    assert len(await slots_of(db_session, created.availability_id)) == 2


@pytest.mark.asyncio
async def test_delete_slot(db_session, provider):
    """A single available slot can be removed."""
    service = AvailabilityService(db_session)
    created = await service.create_availability(provider["id"], window_request())
    first, second = await slots_of(db_session, created.availability_id)

    deleted = await service.delete_slot(first["id"], provider["id"], reason="Double entry")

    assert deleted == 1
    assert [slot["id"] for slot in await slots_of(db_session, created.availability_id)] == [
        second["id"]
    ]


@pytest.mark.asyncio
async def test_delete_recurring_slot_removes_its_window(db_session, provider):
    """delete_recurring clears the slot's whole window, not the rest of the series."""
    service = AvailabilityService(db_session)
    created = await service.create_availability(
        provider["id"],
        window_request(
            is_recurring=True,
            recurrence_pattern="daily",
            recurrence_end_date=date(2024, 2, 16),
        ),
    )
    first, _ = await slots_of(db_session, created.availability_ids[0])

    deleted = await service.delete_slot(first["id"], provider["id"], delete_recurring=True)

    assert deleted == 2
    remaining = await service.find_windows(provider["id"], DAY, date(2024, 2, 16))
    assert [window.id for window in remaining] == [created.availability_ids[1]]


class RepeatingReferences:
    """Reference factory that hands out the same code every time."""

    def __call__(self) -> str:
        return "APT-REPEAT00"


@pytest.mark.asyncio
async def test_failed_slot_insert_leaves_no_window(db_session, provider, monkeypatch):
    """Windows and slots are written together or not at all."""
    monkeypatch.setattr(
        "healthfirst.services.availability_service.BookingReferenceFactory", RepeatingReferences
    )
    service = AvailabilityService(db_session)

    with pytest.raises(InternalException):
        await service.create_availability(
            provider["id"],
            window_request(
                is_recurring=True,
                recurrence_pattern="weekly",
                recurrence_end_date=date(2024, 2, 22),
            ),
        )

    assert await count_rows(db_session, provider_availability) == 0
    assert await count_rows(db_session, appointment_slots) == 0


@pytest.mark.asyncio
async def test_generated_reference_already_stored_is_replaced(db_session, provider, monkeypatch):
    """A generated reference that already exists is replaced before insert."""
    service = AvailabilityService(db_session)
    first = await service.create_availability(provider["id"], window_request())
    taken = (await slots_of(db_session, first.availability_id))[0]["booking_reference"]

    from healthfirst.core import references

    fresh = references.new_booking_reference
    issued = iter([taken])
    monkeypatch.setattr(
        references,
        "new_booking_reference",
        lambda prefix=None: next(issued, None) or fresh(prefix),
    )

    second = await service.create_availability(
        provider["id"], window_request(date=date(2024, 2, 16))
    )

    slots = await slots_of(db_session, second.availability_id)
    assert len(slots) == 2
    assert taken not in {slot["booking_reference"] for slot in slots}
    assert await count_rows(db_session, appointment_slots) == 4


def test_slot_duration_defaults_to_configured_value(monkeypatch):
    """DEFAULT_SLOT_DURATION applies when a request omits the slot duration."""
    monkeypatch.setattr(settings, "default_slot_duration", 20)

    request = AvailabilityCreate.model_validate(
        {
            "date": DAY,
            "start_time": time(9, 0),
            "end_time": time(10, 0),
            "timezone": "America/New_York",
            "location": {"type": "telemedicine"},
        }
    )

    assert request.slot_duration == 20


def test_window_times_with_offset_are_rejected():
    """Window bounds must be wall-clock times."""
    with pytest.raises(ValueError):
        window_request(start_time="09:30:00+02:00", end_time="11:00:00+02:00")
