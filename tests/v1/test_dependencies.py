"""Tests for shared API dependencies."""

import pytest
from fastapi.security import HTTPAuthorizationCredentials

from tallyrank.api.v1.dependencies import get_account_ref, get_rate_limiter_dep
from tallyrank.core.errors import NoIdentityError
from tallyrank.core.security import InvalidTokenError, create_access_token, decode_account_ref
from tallyrank.services.rate_limiter import RateLimiter


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_no_credentials_is_anonymous() -> None:
    assert get_account_ref(None) is None


def test_valid_token_yields_account_id() -> None:
    assert get_account_ref(_bearer(create_access_token(17))) == "17"


def test_invalid_token_is_rejected() -> None:
    with pytest.raises(NoIdentityError) as exc_info:
        get_account_ref(_bearer("garbage"))
    assert exc_info.value.status_code == 401
    assert exc_info.value.code == "no_identity"


def test_expired_token_is_rejected() -> None:
    token = create_access_token("17", expires_minutes=-1)
    with pytest.raises(InvalidTokenError):
        decode_account_ref(token)


def test_rate_limiter_dependency_is_shared() -> None:
    limiter = get_rate_limiter_dep()
    assert isinstance(limiter, RateLimiter)
    assert get_rate_limiter_dep() is limiter
