"""Transaction scope shared by the service methods."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from healthfirst.core.exceptions import InternalException, ServiceUnavailableException

logger = structlog.get_logger(__name__)


def translate_database_error(error: SQLAlchemyError) -> Exception:
    """Map a driver failure onto the Unavailable / Internal error kinds."""
    if isinstance(error, (OperationalError, InterfaceError, PoolTimeoutError)):
        return ServiceUnavailableException()
    return InternalException()


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a block as one all-or-nothing unit.

    Commits when the block exits cleanly, which also releases any row locks
    (or the SQLite write lock) taken inside it. Any exception rolls the
    session back before it propagates; SQLAlchemy errors are re-raised as
    ``ServiceUnavailableException`` or ``InternalException``.
    """
    try:
        yield db
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("database_error", error=str(e), error_type=type(e).__name__)
        raise translate_database_error(e) from e
    except Exception:
        await db.rollback()
        raise
