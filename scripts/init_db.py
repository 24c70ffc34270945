"""Create the scheduling tables directly, optionally with demo identities.

Usage: python scripts/init_db.py [--seed]
"""

import asyncio
import sys
from uuid import uuid4

from sqlalchemy import insert

from healthfirst.core.security import create_access_token
from healthfirst.database import engine
from healthfirst.models import metadata, patients, providers


async def init_db(seed: bool = False) -> None:
    """Create all tables and, with ``seed``, one provider and one patient."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
        print("✓ Database initialized successfully!")

        if not seed:
            return

        provider_id, patient_id = uuid4(), uuid4()
        await conn.execute(
            insert(providers).values(
                id=provider_id,
                first_name="Jane",
                last_name="Doe",
                email=f"jane.doe+{provider_id.hex[:8]}@example.com",
                specialization="Cardiology",
                years_of_experience=12,
                clinic_street="1 Main St",
                clinic_city="Springfield",
            )
        )
        await conn.execute(
            insert(patients).values(
                id=patient_id,
                first_name="John",
                last_name="Smith",
                email=f"john.smith+{patient_id.hex[:8]}@example.com",
            )
        )

    print(f"provider {provider_id}")
    print(f"  token: {create_access_token(provider_id, 'provider')}")
    print(f"patient {patient_id}")
    print(f"  token: {create_access_token(patient_id, 'patient')}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db(seed="--seed" in sys.argv[1:]))
