"""Shared API dependencies for identity resolution and common functionality."""

from typing import Annotated

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from tallyrank.core.errors import NoIdentityError
from tallyrank.core.security import InvalidTokenError, decode_account_ref
from tallyrank.db.session import get_db
from tallyrank.services.rate_limiter import RateLimiter, get_rate_limiter

# Optional HTTP Bearer scheme; anonymous voters send a fingerprint instead.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_account_ref(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str | None:
    """Return the authenticated account id, or None for anonymous callers.

    A token that is present but invalid is rejected rather than treated as
    anonymous, so a broken session never silently votes under a fingerprint.

    Raises:
        NoIdentityError: If a bearer token is present but cannot be verified
    """
    if credentials is None:
        return None
    try:
        return decode_account_ref(credentials.credentials)
    except InvalidTokenError as err:
        raise NoIdentityError("Could not validate credentials") from err


def get_header_fingerprint(
    x_client_fingerprint: Annotated[str | None, Header()] = None,
) -> str | None:
    """Return the anonymous fingerprint sent in ``X-Client-Fingerprint``."""
    return x_client_fingerprint


def get_rate_limiter_dep() -> RateLimiter:
    """Return the shared vote rate limiter."""
    return get_rate_limiter()


AccountRefDep = Annotated[str | None, Depends(get_account_ref)]
HeaderFingerprintDep = Annotated[str | None, Depends(get_header_fingerprint)]
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter_dep)]
