"""Voter identity resolution.

A vote is keyed either by an authenticated account or, for anonymous
visitors, by a client-generated fingerprint. The account always wins when
both are present. When a visitor signs in, their anonymous votes are re-keyed
to the account by an external batch job; this module only resolves who is
voting for the current request.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from tallyrank.core.errors import NoIdentityError
from tallyrank.core.settings import settings

_FINGERPRINT_CHARSET = re.compile(r"^[A-Za-z0-9_-]+$")


class IdentityKind(str, Enum):
    ACCOUNT = "account"
    ANONYMOUS = "anon"


@dataclass(frozen=True)
class Identity:
    """Resolved voter reference used as the dedup key for votes."""

    kind: IdentityKind
    value: str

    @property
    def key(self) -> str:
        """Return the storage key, e.g. ``account:42`` or ``anon:abc...``."""
        return f"{self.kind.value}:{self.value}"

    @property
    def is_anonymous(self) -> bool:
        return self.kind is IdentityKind.ANONYMOUS

    @classmethod
    def from_key(cls, key: str) -> Identity:
        kind, _, value = key.partition(":")
        return cls(IdentityKind(kind), value)


def validate_fingerprint(
    fingerprint: str | None,
    *,
    min_length: int | None = None,
    max_length: int | None = None,
) -> bool:
    """Return True if ``fingerprint`` is a well-formed anonymous token."""
    if not fingerprint:
        return False
    low = settings.fingerprint_min_length if min_length is None else min_length
    high = settings.fingerprint_max_length if max_length is None else max_length
    if not low <= len(fingerprint) <= high:
        return False
    return _FINGERPRINT_CHARSET.match(fingerprint) is not None


def resolve_identity(
    account_ref: str | int | None = None,
    fingerprint: str | None = None,
) -> Identity:
    """Resolve the voting identity for a request.

    Args:
        account_ref: Account identifier from the authenticated session, if any.
        fingerprint: Anonymous client fingerprint, if any.

    Returns:
        The account identity when ``account_ref`` is present, otherwise the
        anonymous identity for a valid fingerprint.

    Raises:
        NoIdentityError: If there is no account and the fingerprint is
            missing or malformed. Callers must surface this to the user
            rather than fall back to a weaker identity.
    """
    if account_ref is not None and str(account_ref).strip():
        return Identity(IdentityKind.ACCOUNT, str(account_ref).strip())

    if fingerprint is None:
        raise NoIdentityError("Sign in or enable the anonymous voting token to vote")

    if not validate_fingerprint(fingerprint):
        raise NoIdentityError("Anonymous voting token is invalid; please reload the page")

    return Identity(IdentityKind.ANONYMOUS, fingerprint)
