"""Booking engine: the slot state machine."""

import math
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from healthfirst.core.clock import Clock
from healthfirst.core.exceptions import (
    AppException,
    NoAvailableSlotException,
    NotBookedException,
    NotFoundException,
    OutOfBoundsException,
    PastAppointmentException,
    SlotConflictException,
)
from healthfirst.core.redis_client import CacheManager
from healthfirst.models.availability import provider_availability
from healthfirst.models.patients import patients
from healthfirst.models.providers import providers
from healthfirst.models.slots import appointment_slots
from healthfirst.scheduling.pricing import estimate_cost
from healthfirst.schemas.appointments import (
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    BookAppointmentRequest,
)
from healthfirst.schemas.availability import AppointmentType, SlotStatus
from healthfirst.services.identity_service import IdentityService, clinic_address, full_name
from healthfirst.services.search_service import invalidate_search_cache
from healthfirst.services.transactions import transaction

logger = structlog.get_logger(__name__)

# Slot joined with the window pricing and both parties
APPOINTMENT_SELECT = (
    select(
        appointment_slots,
        provider_availability.c.base_fee,
        provider_availability.c.currency,
        providers.c.first_name.label("provider_first_name"),
        providers.c.last_name.label("provider_last_name"),
        providers.c.email.label("provider_email"),
        providers.c.phone_number.label("provider_phone"),
        providers.c.specialization.label("provider_specialization"),
        providers.c.clinic_street,
        providers.c.clinic_city,
        providers.c.clinic_state,
        providers.c.clinic_zip,
        patients.c.first_name.label("patient_first_name"),
        patients.c.last_name.label("patient_last_name"),
        patients.c.email.label("patient_email"),
        patients.c.phone_number.label("patient_phone"),
    )
    .join(
        provider_availability,
        appointment_slots.c.availability_id == provider_availability.c.id,
    )
    .join(providers, appointment_slots.c.provider_id == providers.c.id)
    .outerjoin(patients, appointment_slots.c.patient_id == patients.c.id)
)


def appointment_from_row(row: dict[str, Any]) -> AppointmentResponse:
    """Build a confirmation from an ``APPOINTMENT_SELECT`` row."""
    start: datetime = row["slot_start_time"]
    appointment_type = row["appointment_type"]
    cost = (
        estimate_cost(row["base_fee"], appointment_type)
        if appointment_type and row["base_fee"] is not None
        else None
    )
    patient_name = (
        full_name(row["patient_first_name"], row["patient_last_name"])
        if row["patient_id"]
        else None
    )

    return AppointmentResponse(
        appointment_id=row["id"],
        availability_id=row["availability_id"],
        booking_reference=row["booking_reference"],
        appointment_datetime=start,
        appointment_end_datetime=row["slot_end_time"],
        appointment_date=start.date(),
        appointment_time=start.time(),
        appointment_type=appointment_type,
        status=row["status"],
        patient_id=row["patient_id"],
        patient_name=patient_name,
        patient_email=row["patient_email"],
        patient_phone=row["patient_phone"],
        provider_id=row["provider_id"],
        provider_name=full_name(row["provider_first_name"], row["provider_last_name"]),
        provider_specialization=row["provider_specialization"],
        provider_email=row["provider_email"],
        provider_phone=row["provider_phone"],
        clinic_address=clinic_address(row),
        estimated_cost=cost,
        currency=row["currency"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class BookingService:
    """
    Books and cancels slots.

    ``AVAILABLE -> BOOKED -> CANCELLED``. A cancelled slot is terminal and is
    never offered again. At most one booking succeeds per slot: the slot row is
    read with ``FOR UPDATE`` and flipped with a compare-and-swap update that
    only matches while the slot is still available.
    """

    def __init__(self, db: AsyncSession, clock: Clock, cache: CacheManager | None = None):
        """Initialize service with database session, clock and optional search cache."""
        self.db = db
        self.clock = clock
        self.cache = cache
        self.identity = IdentityService(db)

    async def book(self, data: BookAppointmentRequest) -> AppointmentResponse:
        """
        Book the available slot that contains the requested time.

        Args:
            data: Booking request

        Returns:
            Booking confirmation with patient, provider and estimated cost

        Raises:
            PatientNotFoundException: If the patient is unknown or inactive
            ProviderNotFoundException: If the provider is unknown or inactive
            PastAppointmentException: If the requested time is in the past
            SlotConflictException: If the time is already booked, or another
                booking won the slot concurrently
            NoAvailableSlotException: If no available slot covers the time
            OutOfBoundsException: If the located slot does not contain the time
        """
        requested_at = data.appointment_datetime

        try:
            async with transaction(self.db):
                await self.identity.resolve_patient(data.patient_id)
                await self.identity.resolve_provider(data.provider_id)

                if requested_at < self.clock.now():
                    raise PastAppointmentException()

                slot = await self._locate_slot(data.provider_id, requested_at)
                await self._claim(slot, data.patient_id, data.appointment_type)
        except AppException as e:
            logger.info(
                "appointment_booking_rejected",
                provider_id=str(data.provider_id),
                patient_id=str(data.patient_id),
                requested_at=requested_at.isoformat(),
                reason=e.error_code,
            )
            raise

        confirmation = await self._load_by_id(slot["id"])

        invalidate_search_cache(self.cache)
        logger.info(
            "appointment_booked",
            slot_id=str(slot["id"]),
            booking_reference=slot["booking_reference"],
            provider_id=str(data.provider_id),
            patient_id=str(data.patient_id),
        )

        return confirmation.model_copy(
            update={
                "appointment_mode": data.appointment_mode,
                "reason_for_visit": data.reason_for_visit,
                "additional_notes": data.additional_notes,
                "insurance_provider": data.insurance_provider,
                "insurance_policy_number": data.insurance_policy_number,
            }
        )

    async def cancel(self, booking_reference: str) -> AppointmentResponse:
        """
        Cancel a booked appointment by its reference.

        The slot becomes CANCELLED with no patient and no appointment type, and
        cannot be booked again.

        Raises:
            NotFoundException: If no slot carries the reference
            NotBookedException: If the slot is not currently booked
        """
        async with transaction(self.db):
            stmt = (
                select(appointment_slots)
                .where(appointment_slots.c.booking_reference == booking_reference)
                .with_for_update()
            )
            result = await self.db.execute(stmt)
            row = result.fetchone()
            if not row:
                raise NotFoundException("Appointment not found")

            slot = dict(row._mapping)
            if slot["status"] != SlotStatus.BOOKED.value:
                raise NotBookedException()

            result = await self.db.execute(
                update(appointment_slots)
                .where(
                    and_(
                        appointment_slots.c.id == slot["id"],
                        appointment_slots.c.status == SlotStatus.BOOKED.value,
                    )
                )
                .values(
                    status=SlotStatus.CANCELLED.value,
                    patient_id=None,
                    appointment_type=None,
                    updated_at=func.now(),
                )
            )
            if result.rowcount != 1:
                raise NotBookedException()

            await self.db.execute(
                update(provider_availability)
                .where(provider_availability.c.id == slot["availability_id"])
                .values(
                    current_appointments=case(
                        (
                            provider_availability.c.current_appointments > 0,
                            provider_availability.c.current_appointments - 1,
                        ),
                        else_=0,
                    ),
                    updated_at=func.now(),
                )
            )

        confirmation = await self._load_by_id(slot["id"])

        invalidate_search_cache(self.cache)
        logger.info(
            "appointment_cancelled",
            slot_id=str(slot["id"]),
            booking_reference=booking_reference,
            provider_id=str(slot["provider_id"]),
        )
        return confirmation

    async def get_by_booking_reference(self, booking_reference: str) -> AppointmentResponse:
        """
        Get an appointment by its booking reference.

        Raises:
            NotFoundException: If no slot carries the reference
        """
        stmt = APPOINTMENT_SELECT.where(appointment_slots.c.booking_reference == booking_reference)
        async with transaction(self.db):
            result = await self.db.execute(stmt)
            row = result.fetchone()

        if not row:
            raise NotFoundException("Appointment not found")
        return appointment_from_row(dict(row._mapping))

    async def list_appointments(self, filters: AppointmentFilters) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination.

        Without a status filter only slots that have been booked at some point
        (BOOKED or CANCELLED) are listed.

        Args:
            filters: Filter and pagination parameters

        Returns:
            Paginated list ordered by start time, newest first
        """
        conditions = []

        if filters.status:
            conditions.append(appointment_slots.c.status == filters.status.value)
        else:
            conditions.append(
                appointment_slots.c.status.in_(
                    [SlotStatus.BOOKED.value, SlotStatus.CANCELLED.value]
                )
            )

        if filters.provider_id:
            conditions.append(appointment_slots.c.provider_id == filters.provider_id)

        if filters.patient_id:
            conditions.append(appointment_slots.c.patient_id == filters.patient_id)

        if filters.appointment_type:
            conditions.append(
                appointment_slots.c.appointment_type == filters.appointment_type.value
            )

        if filters.start_date:
            conditions.append(
                appointment_slots.c.slot_start_time
                >= datetime.combine(filters.start_date, datetime.min.time())
            )

        if filters.end_date:
            conditions.append(
                appointment_slots.c.slot_start_time
                <= datetime.combine(filters.end_date, datetime.max.time())
            )

        count_stmt = select(func.count()).select_from(appointment_slots).where(and_(*conditions))

        offset = (filters.page - 1) * filters.page_size
        stmt = (
            APPOINTMENT_SELECT.where(and_(*conditions))
            .order_by(appointment_slots.c.slot_start_time.desc())
            .limit(filters.page_size)
            .offset(offset)
        )

        async with transaction(self.db):
            total_result = await self.db.execute(count_stmt)
            total = total_result.scalar() or 0
            result = await self.db.execute(stmt)
            rows = result.fetchall()

        items = [appointment_from_row(dict(row._mapping)) for row in rows]
        total_pages = math.ceil(total / filters.page_size) if total else 0

        return AppointmentListResponse(
            items=items,
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            total_pages=total_pages,
            has_next=filters.page < total_pages,
            has_previous=filters.page > 1,
        )

    async def _locate_slot(self, provider_id: UUID, requested_at: datetime) -> dict[str, Any]:
        """Find and lock the available slot containing ``requested_at``."""
        booked = await self.db.execute(
            select(appointment_slots.c.id).where(
                and_(
                    appointment_slots.c.provider_id == provider_id,
                    appointment_slots.c.status == SlotStatus.BOOKED.value,
                    appointment_slots.c.slot_start_time <= requested_at,
                    appointment_slots.c.slot_end_time > requested_at,
                )
            )
        )
        if booked.first() is not None:
            raise SlotConflictException()

        result = await self.db.execute(
            select(appointment_slots)
            .where(
                and_(
                    appointment_slots.c.provider_id == provider_id,
                    appointment_slots.c.status == SlotStatus.AVAILABLE.value,
                    appointment_slots.c.slot_start_time <= requested_at,
                    appointment_slots.c.slot_end_time > requested_at,
                )
            )
            .order_by(appointment_slots.c.slot_start_time)
            .limit(1)
            .with_for_update()
        )
        row = result.fetchone()
        if not row:
            raise NoAvailableSlotException()

        slot = dict(row._mapping)
        if not (slot["slot_start_time"] <= requested_at < slot["slot_end_time"]):
            raise OutOfBoundsException()
        return slot

    async def _claim(
        self,
        slot: dict[str, Any],
        patient_id: UUID,
        appointment_type: AppointmentType,
    ) -> None:
        """Compare-and-swap AVAILABLE to BOOKED and count it on the window."""
        result = await self.db.execute(
            update(appointment_slots)
            .where(
                and_(
                    appointment_slots.c.id == slot["id"],
                    appointment_slots.c.status == SlotStatus.AVAILABLE.value,
                )
            )
            .values(
                status=SlotStatus.BOOKED.value,
                patient_id=patient_id,
                appointment_type=appointment_type.value,
                updated_at=func.now(),
            )
        )
        if result.rowcount != 1:
            raise SlotConflictException()

        await self.db.execute(
            update(provider_availability)
            .where(provider_availability.c.id == slot["availability_id"])
            .values(
                current_appointments=provider_availability.c.current_appointments + 1,
                updated_at=func.now(),
            )
        )

    async def _load_by_id(self, slot_id: UUID) -> AppointmentResponse:
        stmt = APPOINTMENT_SELECT.where(appointment_slots.c.id == slot_id)
        async with transaction(self.db):
            result = await self.db.execute(stmt)
            row = result.fetchone()
        if not row:
            raise NotFoundException("Appointment not found")
        return appointment_from_row(dict(row._mapping))
