"""Identity lookups for providers and patients."""

from typing import Any
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from healthfirst.core.exceptions import PatientNotFoundException, ProviderNotFoundException
from healthfirst.models.patients import patients
from healthfirst.models.providers import providers


def full_name(first_name: str | None, last_name: str | None) -> str:
    """Display name from name parts."""
    return " ".join(part for part in (first_name, last_name) if part)


def clinic_address(provider: dict[str, Any]) -> str | None:
    """Single-line clinic address of a provider row, if any part is set."""
    parts = [
        provider.get("clinic_street"),
        provider.get("clinic_city"),
        provider.get("clinic_state"),
        provider.get("clinic_zip"),
    ]
    address = ", ".join(part for part in parts if part)
    return address or None


class IdentityService:
    """Resolves provider and patient references. Inactive records count as missing."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def resolve_provider(self, provider_id: UUID) -> dict[str, Any]:
        """
        Get an active provider.

        Raises:
            ProviderNotFoundException: If the provider does not exist or is inactive
        """
        stmt = select(providers).where(
            and_(providers.c.id == provider_id, providers.c.is_active.is_(True))
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        if not row:
            raise ProviderNotFoundException()
        return dict(row._mapping)

    async def lock_provider(self, provider_id: UUID) -> dict[str, Any]:
        """
        Get an active provider and hold its row lock until the transaction ends.

        Serializes availability writes for one provider so concurrent overlap
        checks cannot both pass.
        """
        stmt = (
            select(providers)
            .where(and_(providers.c.id == provider_id, providers.c.is_active.is_(True)))
            .with_for_update()
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        if not row:
            raise ProviderNotFoundException()
        return dict(row._mapping)

    async def resolve_patient(self, patient_id: UUID) -> dict[str, Any]:
        """
        Get an active patient.

        Raises:
            PatientNotFoundException: If the patient does not exist or is inactive
        """
        stmt = select(patients).where(
            and_(patients.c.id == patient_id, patients.c.is_active.is_(True))
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        if not row:
            raise PatientNotFoundException()
        return dict(row._mapping)
