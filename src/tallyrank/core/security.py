"""Bearer token helpers for the account half of voter identity.

Accounts are issued by the external authentication provider; this service
only verifies the signed token and reads the account id from ``sub``.
"""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from tallyrank.core.settings import settings


class InvalidTokenError(ValueError):
    """The bearer token is malformed, expired or has no subject."""


def create_access_token(account_id: str | int, expires_minutes: int = 60) -> str:
    """Create a signed access token for ``account_id``."""
    expire = datetime.now(UTC) + timedelta(minutes=expires_minutes)
    to_encode: dict[str, object] = {"sub": str(account_id), "exp": expire}
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_account_ref(token: str) -> str:
    """Return the account id carried by ``token``.

    Raises:
        InvalidTokenError: If the token cannot be verified.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise InvalidTokenError("Could not validate credentials") from err

    subject = payload.get("sub")
    if not subject:
        raise InvalidTokenError("Token has no subject")
    return str(subject)
