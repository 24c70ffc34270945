"""Security utilities for JWT handling.

Access tokens are issued by the identity service. This service only checks
the signature and reads two claims: ``sub`` (provider or patient id) and
``role``.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from jose import JWTError, jwt

from healthfirst.config import settings

ROLE_PROVIDER = "provider"
ROLE_PATIENT = "patient"
ROLES = (ROLE_PROVIDER, ROLE_PATIENT)


@dataclass(frozen=True)
class TokenClaims:
    """Claims this service relies on."""

    subject: UUID
    role: str


def create_access_token(
    subject: UUID | str,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token for a provider or patient.

    Used by local tooling and tests.

    Args:
        subject: Provider or patient id
        role: ``provider`` or ``patient``
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    issued = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)

    return jwt.encode(
        {
            "sub": str(subject),
            "role": role,
            "iat": issued,
            "exp": issued + lifetime,
            "type": "access",
        },
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> TokenClaims | None:
    """
    Decode a JWT access token into its claims.

    Returns:
        Claims, or None when the token is invalid, expired, not an access
        token, or lacks a usable subject or role
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    if payload.get("type") != "access" or payload.get("role") not in ROLES:
        return None

    try:
        subject = UUID(str(payload.get("sub")))
    except ValueError:
        return None

    return TokenClaims(subject=subject, role=payload["role"])
