"""Read-only discovery of open slots."""

import hashlib
import json
from collections import OrderedDict
from datetime import timedelta
from typing import Any

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from healthfirst.config import settings
from healthfirst.core.clock import Clock
from healthfirst.core.exceptions import InvalidRangeException
from healthfirst.core.redis_client import CacheManager
from healthfirst.models.availability import provider_availability
from healthfirst.models.providers import providers
from healthfirst.models.slots import appointment_slots
from healthfirst.schemas.availability import (
    AvailabilityStatus,
    SlotStatus,
    location_from_row,
    pricing_from_row,
)
from healthfirst.schemas.search import (
    AvailabilitySearchParams,
    AvailabilitySearchResponse,
    SearchCriteria,
    SearchProviderInfo,
    SearchResult,
    SearchSlot,
)
from healthfirst.services.identity_service import clinic_address, full_name
from healthfirst.services.transactions import transaction

logger = structlog.get_logger(__name__)

SEARCH_CACHE_PREFIX = "search"


def invalidate_search_cache(cache: CacheManager | None) -> None:
    """Drop every cached search result after a write that changes availability."""
    if cache is not None:
        cache.delete_pattern(f"{SEARCH_CACHE_PREFIX}:*")


def search_cache_key(criteria: SearchCriteria) -> str:
    """Stable cache key for normalized criteria."""
    payload = json.dumps(criteria.model_dump(mode="json"), sort_keys=True)
    digest = hashlib.sha256(payload.encode()).hexdigest()[:32]
    return f"{SEARCH_CACHE_PREFIX}:{digest}"


class SearchService:
    """
    Projection of open slots grouped by provider.

    Reads are not locked and may trail concurrent bookings by the cache TTL;
    booking itself always re-reads authoritative state.
    """

    def __init__(self, db: AsyncSession, clock: Clock, cache: CacheManager | None = None):
        """Initialize service with database session, clock and optional cache."""
        self.db = db
        self.clock = clock
        self.cache = cache

    def normalize(self, params: AvailabilitySearchParams) -> SearchCriteria:
        """
        Resolve the effective date range.

        A single ``date`` wins over a range; an open range defaults to today
        through ``SEARCH_DEFAULT_DAYS`` days ahead.
        """
        if params.date is not None:
            start_date = end_date = params.date
        else:
            today = self.clock.now().date()
            start_date = params.start_date or today
            end_date = params.end_date or start_date + timedelta(days=settings.search_default_days)

        if start_date > end_date:
            raise InvalidRangeException("Start date must not be after end date")

        return SearchCriteria(
            start_date=start_date,
            end_date=end_date,
            specialization=params.specialization,
            appointment_type=params.appointment_type,
            insurance_accepted=params.insurance_accepted,
            max_price=params.max_price,
        )

    async def search_available_slots(
        self,
        params: AvailabilitySearchParams,
    ) -> AvailabilitySearchResponse:
        """
        Find open future slots matching the criteria.

        Args:
            params: Search parameters

        Returns:
            Matching slots grouped by provider
        """
        criteria = self.normalize(params)

        cache_key = search_cache_key(criteria)
        if self.cache is not None:
            cached = self.cache.get_json(cache_key)
            if cached is not None:
                logger.debug("search_cache_hit", key=cache_key)
                return AvailabilitySearchResponse.model_validate(cached)

        async with transaction(self.db):
            windows = await self._matching_windows(criteria)
            slots = await self._open_slots([window["id"] for window in windows])

        response = self._assemble(criteria, windows, slots)

        if self.cache is not None:
            self.cache.set_json(
                cache_key,
                response.model_dump(mode="json"),
                ttl=settings.search_cache_ttl,
            )

        return response

    async def _matching_windows(self, criteria: SearchCriteria) -> list[dict[str, Any]]:
        conditions = [
            provider_availability.c.status == AvailabilityStatus.AVAILABLE.value,
            provider_availability.c.date >= criteria.start_date,
            provider_availability.c.date <= criteria.end_date,
            providers.c.is_active.is_(True),
        ]

        if criteria.specialization:
            conditions.append(providers.c.specialization.ilike(f"%{criteria.specialization}%"))

        if criteria.appointment_type:
            conditions.append(
                provider_availability.c.appointment_type == criteria.appointment_type.value
            )

        if criteria.insurance_accepted is not None:
            conditions.append(
                provider_availability.c.insurance_accepted.is_(criteria.insurance_accepted)
            )

        if criteria.max_price is not None:
            conditions.append(provider_availability.c.base_fee <= criteria.max_price)

        stmt = (
            select(
                provider_availability,
                providers.c.first_name,
                providers.c.last_name,
                providers.c.specialization,
                providers.c.years_of_experience,
                providers.c.clinic_street,
                providers.c.clinic_city,
                providers.c.clinic_state,
                providers.c.clinic_zip,
            )
            .join(providers, provider_availability.c.provider_id == providers.c.id)
            .where(and_(*conditions))
            .order_by(provider_availability.c.date, provider_availability.c.start_time)
            .limit(settings.search_result_limit)
        )
        result = await self.db.execute(stmt)
        return [dict(row._mapping) for row in result.fetchall()]

    async def _open_slots(self, window_ids: list) -> list[dict[str, Any]]:
        if not window_ids:
            return []

        stmt = (
            select(appointment_slots)
            .where(
                and_(
                    appointment_slots.c.availability_id.in_(window_ids),
                    appointment_slots.c.status == SlotStatus.AVAILABLE.value,
                    appointment_slots.c.slot_start_time > self.clock.now(),
                )
            )
            .order_by(appointment_slots.c.slot_start_time)
        )
        result = await self.db.execute(stmt)
        return [dict(row._mapping) for row in result.fetchall()]

    @staticmethod
    def _assemble(
        criteria: SearchCriteria,
        windows: list[dict[str, Any]],
        slots: list[dict[str, Any]],
    ) -> AvailabilitySearchResponse:
        windows_by_id = {window["id"]: window for window in windows}
        grouped: OrderedDict[Any, SearchResult] = OrderedDict()

        for slot in slots:
            window = windows_by_id[slot["availability_id"]]
            provider_id = window["provider_id"]

            if provider_id not in grouped:
                grouped[provider_id] = SearchResult(
                    provider=SearchProviderInfo(
                        id=provider_id,
                        name=full_name(window["first_name"], window["last_name"]),
                        specialization=window["specialization"],
                        years_of_experience=window["years_of_experience"],
                        clinic_address=clinic_address(window),
                    ),
                    available_slots=[],
                )

            grouped[provider_id].available_slots.append(
                SearchSlot(
                    slot_id=slot["id"],
                    date=slot["slot_start_time"].date(),
                    start_time=slot["slot_start_time"].time(),
                    end_time=slot["slot_end_time"].time(),
                    appointment_type=slot["appointment_type"],
                    location=location_from_row(window),
                    pricing=pricing_from_row(window),
                    special_requirements=window.get("special_requirements") or [],
                )
            )

        results = list(grouped.values())
        return AvailabilitySearchResponse(
            search_criteria=criteria,
            total_results=sum(len(result.available_slots) for result in results),
            results=results,
        )
