"""Availability store: windows and the slots derived from them."""

from collections import OrderedDict
from datetime import date, datetime, time
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import and_, delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from healthfirst.config import settings
from healthfirst.core.exceptions import (
    CannotDeleteBookedException,
    ForbiddenException,
    HasBookedSlotsException,
    InvalidRangeException,
    InvalidStatusTransitionException,
    NotFoundException,
    OutOfBoundsException,
    OverlapException,
    TooShortException,
    ValidationException,
)
from healthfirst.core.redis_client import CacheManager
from healthfirst.core.references import BookingReferenceFactory
from healthfirst.models.availability import provider_availability
from healthfirst.models.slots import appointment_slots
from healthfirst.scheduling.recurrence import expand_occurrences
from healthfirst.scheduling.slot_generator import (
    WindowDefinition,
    expected_slot_count,
    generate_slots,
)
from healthfirst.scheduling.window_validator import (
    validate_datetime_range,
    validate_window,
    window_minutes,
)
from healthfirst.schemas.availability import (
    AppointmentType,
    AvailabilityCreate,
    AvailabilityCreateResponse,
    AvailabilityStatus,
    AvailabilitySummary,
    AvailabilityWindowResponse,
    AvailabilityWindowUpdate,
    DailyAvailability,
    DateRange,
    ProviderAvailabilityResponse,
    RecurrencePattern,
    SlotInfo,
    SlotStatus,
    location_from_row,
    pricing_from_row,
)
from healthfirst.schemas.slots import SlotResponse, SlotUpdate
from healthfirst.services.identity_service import IdentityService
from healthfirst.services.search_service import invalidate_search_cache
from healthfirst.services.transactions import transaction

logger = structlog.get_logger(__name__)

# Keeps IN lists under driver parameter limits
REFERENCE_LOOKUP_CHUNK = 500

# Window columns carried alongside each slot in the provider view
_SLOT_WINDOW_COLUMNS = (
    provider_availability.c.date,
    provider_availability.c.location_type,
    provider_availability.c.address,
    provider_availability.c.room_number,
    provider_availability.c.base_fee,
    provider_availability.c.insurance_accepted,
    provider_availability.c.currency,
)


class AvailabilityService:
    """Service for provider availability windows and their slots."""

    def __init__(self, db: AsyncSession, cache: CacheManager | None = None):
        """Initialize service with database session and optional search cache."""
        self.db = db
        self.cache = cache
        self.identity = IdentityService(db)

    # Windows

    async def create_availability(
        self,
        provider_id: UUID,
        data: AvailabilityCreate,
    ) -> AvailabilityCreateResponse:
        """
        Create a window (or a recurring series of windows) with all its slots.

        Every occurrence is checked against the provider's existing windows
        before anything is written; the windows and their slots are inserted in
        one transaction, so an overlap on any date rejects the whole request.

        Args:
            provider_id: Owning provider
            data: Window definition

        Returns:
            Ids of the created windows and the number of slots generated

        Raises:
            ProviderNotFoundException: If the provider is unknown or inactive
            InvalidRangeException: If start is not before end
            TooShortException: If the window is under 15 minutes or fits no slot
            OverlapException: If any occurrence intersects an existing window
            ValidationException: If the recurrence settings are inconsistent
        """
        validate_window(provider_id, data.date, data.start_time, data.end_time)

        pattern = data.recurrence_pattern if data.is_recurring else RecurrencePattern.NONE
        if data.is_recurring and pattern == RecurrencePattern.NONE:
            raise ValidationException("Recurrence pattern is required for recurring availability")

        occurrences = expand_occurrences(
            data.date,
            pattern,
            data.recurrence_end_date,
            limit=settings.max_recurrence_occurrences,
        )

        length = int(window_minutes(data.start_time, data.end_time))
        if expected_slot_count(length, data.slot_duration, data.break_duration) == 0:
            raise TooShortException(
                f"Time window is shorter than one {data.slot_duration}-minute slot"
            )

        pricing = data.pricing
        base_fee = pricing.base_fee if pricing and pricing.base_fee else settings.default_base_fee
        currency = pricing.currency if pricing else settings.default_currency
        insurance_accepted = pricing.insurance_accepted if pricing else False

        series_id = uuid4()
        window_rows: list[dict[str, Any]] = []

        async with transaction(self.db):
            await self.identity.lock_provider(provider_id)

            for day in occurrences:
                existing = await self._find_overlapping(
                    provider_id, day, data.start_time, data.end_time
                )
                try:
                    validate_window(
                        provider_id,
                        day,
                        data.start_time,
                        data.end_time,
                        existing + window_rows,
                    )
                except OverlapException:
                    logger.info(
                        "availability_overlap_rejected",
                        provider_id=str(provider_id),
                        date=day.isoformat(),
                    )
                    raise

                window_rows.append(
                    {
                        "id": uuid4(),
                        "provider_id": provider_id,
                        "series_id": series_id,
                        "date": day,
                        "start_time": data.start_time,
                        "end_time": data.end_time,
                        "timezone": data.timezone,
                        "is_recurring": data.is_recurring,
                        "recurrence_pattern": pattern.value if data.is_recurring else None,
                        "recurrence_end_date": data.recurrence_end_date
                        if data.is_recurring
                        else None,
                        "slot_duration": data.slot_duration,
                        "break_duration": data.break_duration,
                        "status": AvailabilityStatus.AVAILABLE.value,
                        "max_appointments_per_slot": data.max_appointments_per_slot,
                        "current_appointments": 0,
                        "appointment_type": data.appointment_type.value,
                        "location_type": data.location.type.value,
                        "address": data.location.address,
                        "room_number": data.location.room_number,
                        "base_fee": base_fee,
                        "insurance_accepted": insurance_accepted,
                        "currency": currency,
                        "notes": data.notes,
                        "special_requirements": data.special_requirements,
                    }
                )

            next_reference = BookingReferenceFactory()
            slot_rows = [
                {
                    "availability_id": window["id"],
                    "provider_id": provider_id,
                    "slot_start_time": slot.start,
                    "slot_end_time": slot.end,
                    "status": slot.status.value,
                    "appointment_type": slot.appointment_type.value,
                    "booking_reference": slot.booking_reference,
                }
                for window in window_rows
                for slot in generate_slots(WindowDefinition.from_mapping(window), next_reference)
            ]
            await self._reissue_taken_references(slot_rows, next_reference)

            await self.db.execute(insert(provider_availability), window_rows)
            await self.db.execute(insert(appointment_slots), slot_rows)

        invalidate_search_cache(self.cache)

        logger.info(
            "availability_created",
            provider_id=str(provider_id),
            series_id=str(series_id),
            windows=len(window_rows),
            slots=len(slot_rows),
        )

        return AvailabilityCreateResponse(
            availability_id=window_rows[0]["id"],
            availability_ids=[window["id"] for window in window_rows],
            series_id=series_id,
            slots_created=len(slot_rows),
            date_range=DateRange(start=occurrences[0], end=occurrences[-1]),
            total_appointments_available=len(slot_rows) * data.max_appointments_per_slot,
        )

    async def find_windows(
        self,
        provider_id: UUID,
        start_date: date,
        end_date: date,
        status: AvailabilityStatus | None = None,
        appointment_type: AppointmentType | None = None,
    ) -> list[AvailabilityWindowResponse]:
        """List a provider's windows in a date range, ordered by (date, start time)."""
        if start_date > end_date:
            raise InvalidRangeException("Start date must not be after end date")

        conditions = self._window_conditions(
            provider_id, start_date, end_date, status, appointment_type
        )
        stmt = (
            select(provider_availability)
            .where(and_(*conditions))
            .order_by(provider_availability.c.date, provider_availability.c.start_time)
        )

        async with transaction(self.db):
            result = await self.db.execute(stmt)
            rows = result.fetchall()

        return [AvailabilityWindowResponse.from_row(dict(row._mapping)) for row in rows]

    async def find_overlapping(
        self,
        provider_id: UUID,
        day: date,
        start: time,
        end: time,
    ) -> list[dict[str, Any]]:
        """Windows of the provider on ``day`` that intersect [start, end)."""
        async with transaction(self.db):
            return await self._find_overlapping(provider_id, day, start, end)

    async def get_window(self, window_id: UUID) -> AvailabilityWindowResponse:
        """
        Get a window by ID.

        Raises:
            NotFoundException: If the window does not exist
        """
        async with transaction(self.db):
            window = await self._get_window(window_id)
        return AvailabilityWindowResponse.from_row(window)

    async def get_provider_availability(
        self,
        provider_id: UUID,
        start_date: date,
        end_date: date,
        status: AvailabilityStatus | None = None,
        appointment_type: AppointmentType | None = None,
    ) -> ProviderAvailabilityResponse:
        """
        Slots of a provider's windows grouped by date, with status counts.

        Raises:
            InvalidRangeException: If start_date is after end_date
            ProviderNotFoundException: If the provider is unknown or inactive
        """
        if start_date > end_date:
            raise InvalidRangeException("Start date must not be after end date")

        conditions = self._window_conditions(
            provider_id, start_date, end_date, status, appointment_type
        )
        stmt = (
            select(appointment_slots, *_SLOT_WINDOW_COLUMNS)
            .join(
                provider_availability,
                appointment_slots.c.availability_id == provider_availability.c.id,
            )
            .where(and_(*conditions))
            .order_by(provider_availability.c.date, appointment_slots.c.slot_start_time)
        )

        async with transaction(self.db):
            await self.identity.resolve_provider(provider_id)
            result = await self.db.execute(stmt)
            rows = [dict(row._mapping) for row in result.fetchall()]

        days: OrderedDict[date, list[SlotInfo]] = OrderedDict()
        summary = AvailabilitySummary()

        for row in rows:
            days.setdefault(row["date"], []).append(
                SlotInfo(
                    slot_id=row["id"],
                    availability_id=row["availability_id"],
                    start_time=row["slot_start_time"],
                    end_time=row["slot_end_time"],
                    status=row["status"],
                    appointment_type=row["appointment_type"],
                    booking_reference=row["booking_reference"],
                    location=location_from_row(row),
                    pricing=pricing_from_row(row),
                )
            )
            summary.total_slots += 1
            counter = f"{row['status']}_slots"
            if hasattr(summary, counter):
                setattr(summary, counter, getattr(summary, counter) + 1)

        return ProviderAvailabilityResponse(
            provider_id=provider_id,
            availability_summary=summary,
            availability=[DailyAvailability(date=day, slots=slots) for day, slots in days.items()],
        )

    async def update_window(
        self,
        window_id: UUID,
        provider_id: UUID,
        data: AvailabilityWindowUpdate,
    ) -> AvailabilityWindowResponse:
        """
        Update the notes and/or status of a window.

        Raises:
            NotFoundException: If the window does not exist
            ForbiddenException: If the window belongs to another provider
        """
        values = data.model_dump(exclude_unset=True, exclude_none=True)
        if "status" in values:
            values["status"] = data.status.value  # type: ignore[union-attr]

        async with transaction(self.db):
            window = await self._get_window(window_id, for_update=True)
            self._check_owner(window["provider_id"], provider_id)

            if not values:
                return AvailabilityWindowResponse.from_row(window)

            stmt = (
                update(provider_availability)
                .where(provider_availability.c.id == window_id)
                .values(**values, updated_at=func.now())
                .returning(provider_availability)
            )
            result = await self.db.execute(stmt)
            row = result.fetchone()

        invalidate_search_cache(self.cache)
        logger.info("availability_updated", window_id=str(window_id), fields=sorted(values))

        return AvailabilityWindowResponse.from_row(dict(row._mapping))

    async def delete_window(
        self,
        window_id: UUID,
        provider_id: UUID,
        cascade: bool = False,
        include_series: bool = False,
    ) -> int:
        """
        Delete a window together with its slots.

        A window that still has slots is only deleted when ``cascade`` is set,
        and never while any of its slots is booked. ``include_series`` extends
        the deletion to every window created by the same recurring request.

        Returns:
            Number of windows deleted

        Raises:
            NotFoundException: If the window does not exist
            ForbiddenException: If the window belongs to another provider
            HasBookedSlotsException: If a slot is booked, or slots exist and
                cascading was not requested
        """
        async with transaction(self.db):
            window = await self._get_window(window_id, for_update=True)
            self._check_owner(window["provider_id"], provider_id)

            if include_series:
                stmt = select(provider_availability.c.id).where(
                    and_(
                        provider_availability.c.series_id == window["series_id"],
                        provider_availability.c.provider_id == provider_id,
                    )
                )
                result = await self.db.execute(stmt)
                window_ids = [row.id for row in result.fetchall()]
            else:
                window_ids = [window_id]

            counts = await self._slot_status_counts(window_ids)
            if counts.get(SlotStatus.BOOKED.value, 0):
                raise HasBookedSlotsException(
                    "Cannot delete availability with booked appointments"
                )
            if sum(counts.values()) and not cascade:
                raise HasBookedSlotsException(
                    "Availability has slots; confirm cascading deletion to remove them"
                )

            await self.db.execute(
                delete(appointment_slots).where(appointment_slots.c.availability_id.in_(window_ids))
            )
            await self.db.execute(
                delete(provider_availability).where(provider_availability.c.id.in_(window_ids))
            )

        invalidate_search_cache(self.cache)
        logger.info(
            "availability_deleted",
            window_id=str(window_id),
            provider_id=str(provider_id),
            windows=len(window_ids),
        )
        return len(window_ids)

    # Slots

    async def update_slot(
        self,
        slot_id: UUID,
        provider_id: UUID,
        patch: SlotUpdate,
    ) -> SlotResponse:
        """
        Administrative slot patch.

        Moving a slot keeps it inside its window and clear of its siblings, and
        is only allowed while the slot is available or blocked. The only status
        change allowed here is AVAILABLE to BLOCKED. Notes are stored on the
        parent window.

        Raises:
            NotFoundException: If the slot or its window does not exist
            ForbiddenException: If the slot belongs to another provider
            InvalidRangeException: If the new start is not before the new end
            OutOfBoundsException: If the new interval leaves the window
            OverlapException: If the new interval intersects a sibling slot
            InvalidStatusTransitionException: For any other status change
        """
        async with transaction(self.db):
            slot = await self._get_slot(slot_id, for_update=True)
            self._check_owner(slot["provider_id"], provider_id)
            window = await self._get_window(slot["availability_id"])

            values: dict[str, Any] = {}
            current_status = SlotStatus(slot["status"])

            if patch.start_time is not None or patch.end_time is not None:
                if current_status not in (SlotStatus.AVAILABLE, SlotStatus.BLOCKED):
                    raise InvalidStatusTransitionException(
                        f"A {current_status.value} slot cannot be rescheduled"
                    )
                new_start = patch.start_time or slot["slot_start_time"]
                new_end = patch.end_time or slot["slot_end_time"]
                await self._check_slot_interval(slot, window, new_start, new_end)
                values["slot_start_time"] = new_start
                values["slot_end_time"] = new_end

            if patch.status is not None and patch.status != current_status:
                if not (
                    current_status == SlotStatus.AVAILABLE and patch.status == SlotStatus.BLOCKED
                ):
                    raise InvalidStatusTransitionException(
                        f"Cannot change slot status from {current_status.value} "
                        f"to {patch.status.value}"
                    )
                values["status"] = patch.status.value

            if patch.notes is not None:
                await self.db.execute(
                    update(provider_availability)
                    .where(provider_availability.c.id == window["id"])
                    .values(notes=patch.notes, updated_at=func.now())
                )

            if values:
                stmt = (
                    update(appointment_slots)
                    .where(appointment_slots.c.id == slot_id)
                    .values(**values, updated_at=func.now())
                    .returning(appointment_slots)
                )
                result = await self.db.execute(stmt)
                slot = dict(result.fetchone()._mapping)

        invalidate_search_cache(self.cache)
        logger.info("slot_updated", slot_id=str(slot_id), fields=sorted(values))

        return SlotResponse.model_validate(slot)

    async def delete_slot(
        self,
        slot_id: UUID,
        provider_id: UUID,
        delete_recurring: bool = False,
        reason: str | None = None,
    ) -> int:
        """
        Delete a slot, or with ``delete_recurring`` on a recurring window, the
        whole window and all of its slots.

        Returns:
            Number of slots deleted

        Raises:
            NotFoundException: If the slot does not exist
            ForbiddenException: If the slot belongs to another provider
            CannotDeleteBookedException: If any slot to be deleted is booked
        """
        async with transaction(self.db):
            slot = await self._get_slot(slot_id, for_update=True)
            self._check_owner(slot["provider_id"], provider_id)
            window = await self._get_window(slot["availability_id"], for_update=True)

            if delete_recurring and window["is_recurring"]:
                counts = await self._slot_status_counts([window["id"]])
                if counts.get(SlotStatus.BOOKED.value, 0):
                    raise CannotDeleteBookedException(
                        "Cannot delete recurring availability with booked slots"
                    )
                result = await self.db.execute(
                    delete(appointment_slots).where(
                        appointment_slots.c.availability_id == window["id"]
                    )
                )
                await self.db.execute(
                    delete(provider_availability).where(provider_availability.c.id == window["id"])
                )
                deleted = result.rowcount
            else:
                if slot["status"] == SlotStatus.BOOKED.value:
                    raise CannotDeleteBookedException()
                result = await self.db.execute(
                    delete(appointment_slots).where(appointment_slots.c.id == slot_id)
                )
                deleted = result.rowcount

        invalidate_search_cache(self.cache)
        logger.info(
            "slot_deleted",
            slot_id=str(slot_id),
            provider_id=str(provider_id),
            delete_recurring=delete_recurring,
            deleted=deleted,
            reason=reason,
        )
        return deleted

    # Helpers

    @staticmethod
    def _check_owner(owner_id: UUID, provider_id: UUID) -> None:
        if owner_id != provider_id:
            raise ForbiddenException("Access denied to this availability")

    @staticmethod
    def _window_conditions(
        provider_id: UUID,
        start_date: date,
        end_date: date,
        status: AvailabilityStatus | None,
        appointment_type: AppointmentType | None,
    ) -> list:
        conditions = [
            provider_availability.c.provider_id == provider_id,
            provider_availability.c.date >= start_date,
            provider_availability.c.date <= end_date,
        ]
        if status:
            conditions.append(provider_availability.c.status == status.value)
        if appointment_type:
            conditions.append(provider_availability.c.appointment_type == appointment_type.value)
        return conditions

    async def _find_overlapping(
        self,
        provider_id: UUID,
        day: date,
        start: time,
        end: time,
    ) -> list[dict[str, Any]]:
        stmt = select(
            provider_availability.c.id,
            provider_availability.c.provider_id,
            provider_availability.c.date,
            provider_availability.c.start_time,
            provider_availability.c.end_time,
        ).where(
            and_(
                provider_availability.c.provider_id == provider_id,
                provider_availability.c.date == day,
                provider_availability.c.start_time < end,
                provider_availability.c.end_time > start,
            )
        )
        result = await self.db.execute(stmt)
        return [dict(row._mapping) for row in result.fetchall()]

    async def _reissue_taken_references(
        self,
        slot_rows: list[dict[str, Any]],
        next_reference: BookingReferenceFactory,
    ) -> None:
        """Replace generated references that already belong to stored slots."""
        pending = slot_rows
        while pending:
            references = [row["booking_reference"] for row in pending]
            taken: set[str] = set()
            for offset in range(0, len(references), REFERENCE_LOOKUP_CHUNK):
                chunk = references[offset : offset + REFERENCE_LOOKUP_CHUNK]
                result = await self.db.execute(
                    select(appointment_slots.c.booking_reference).where(
                        appointment_slots.c.booking_reference.in_(chunk)
                    )
                )
                taken.update(result.scalars().all())

            pending = [row for row in pending if row["booking_reference"] in taken]
            for row in pending:
                logger.warning("booking_reference_reissued", reference=row["booking_reference"])
                row["booking_reference"] = next_reference()

    async def _get_window(self, window_id: UUID, for_update: bool = False) -> dict[str, Any]:
        stmt = select(provider_availability).where(provider_availability.c.id == window_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        row = result.fetchone()
        if not row:
            raise NotFoundException("Availability not found")
        return dict(row._mapping)

    async def _get_slot(self, slot_id: UUID, for_update: bool = False) -> dict[str, Any]:
        stmt = select(appointment_slots).where(appointment_slots.c.id == slot_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        row = result.fetchone()
        if not row:
            raise NotFoundException("Slot not found")
        return dict(row._mapping)

    async def _slot_status_counts(self, window_ids: list[UUID]) -> dict[str, int]:
        stmt = (
            select(appointment_slots.c.status, func.count())
            .where(appointment_slots.c.availability_id.in_(window_ids))
            .group_by(appointment_slots.c.status)
        )
        result = await self.db.execute(stmt)
        return {status: count for status, count in result.fetchall()}

    async def _check_slot_interval(
        self,
        slot: dict[str, Any],
        window: dict[str, Any],
        new_start: datetime,
        new_end: datetime,
    ) -> None:
        validate_datetime_range(new_start, new_end)

        window_start = datetime.combine(window["date"], window["start_time"])
        window_end = datetime.combine(window["date"], window["end_time"])
        if new_start < window_start or new_end > window_end:
            raise OutOfBoundsException("Slot must lie within its availability window")

        stmt = select(appointment_slots.c.id).where(
            and_(
                appointment_slots.c.availability_id == slot["availability_id"],
                appointment_slots.c.id != slot["id"],
                appointment_slots.c.slot_start_time < new_end,
                appointment_slots.c.slot_end_time > new_start,
            )
        )
        result = await self.db.execute(stmt)
        if result.first() is not None:
            raise OverlapException("Slot overlaps another slot of the same availability")
