"""FastAPI dependencies."""

from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from healthfirst.core.clock import Clock, SystemClock
from healthfirst.core.redis_client import CacheManager, get_cache_manager
from healthfirst.core.security import ROLE_PATIENT, ROLE_PROVIDER, decode_access_token
from healthfirst.database import get_db

# Security
security = HTTPBearer(auto_error=False)

_system_clock = SystemClock()


@dataclass(frozen=True)
class Principal:
    """Caller identity asserted by the access token."""

    id: UUID
    role: str

    @property
    def is_provider(self) -> bool:
        return self.role == ROLE_PROVIDER

    @property
    def is_patient(self) -> bool:
        return self.role == ROLE_PATIENT


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Principal:
    """
    Extract and validate the caller from the JWT bearer token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Principal with the token subject and role

    Raises:
        HTTPException: If the token is missing, invalid or expired
    """
    if credentials is None:
        raise _credentials_error("Not authenticated")

    claims = decode_access_token(credentials.credentials)
    if claims is None:
        raise _credentials_error()

    return Principal(id=claims.subject, role=claims.role)


async def require_provider(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """Require a provider token."""
    if not principal.is_provider:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Provider access required",
        )
    return principal


def get_clock() -> Clock:
    """Dependency returning the wall clock used for booking decisions."""
    return _system_clock


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
CurrentProvider = Annotated[Principal, Depends(require_provider)]
Cache = Annotated[CacheManager | None, Depends(get_cache_manager)]
ClockDep = Annotated[Clock, Depends(get_clock)]
