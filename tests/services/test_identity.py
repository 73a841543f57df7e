"""Tests for voter identity resolution."""

import pytest

from tallyrank.core.errors import NoIdentityError
from tallyrank.services.identity import (
    Identity,
    IdentityKind,
    resolve_identity,
    validate_fingerprint,
)

VALID_FP = "a1B2-c3D4_e5F6g7H8"


def test_account_wins_over_fingerprint() -> None:
    identity = resolve_identity(account_ref="acct-7", fingerprint=VALID_FP)
    assert identity.kind is IdentityKind.ACCOUNT
    assert identity.key == "account:acct-7"
    assert not identity.is_anonymous


def test_account_wins_even_with_invalid_fingerprint() -> None:
    identity = resolve_identity(account_ref=12, fingerprint="bad fp!")
    assert identity == Identity(IdentityKind.ACCOUNT, "12")


def test_valid_fingerprint_resolves_anonymous() -> None:
    identity = resolve_identity(fingerprint=VALID_FP)
    assert identity.is_anonymous
    assert identity.key == f"anon:{VALID_FP}"


def test_blank_account_falls_through_to_fingerprint() -> None:
    identity = resolve_identity(account_ref="  ", fingerprint=VALID_FP)
    assert identity.is_anonymous


@pytest.mark.parametrize(
    "fingerprint",
    [None, "", "short", "has spaces in it here", "x" * 129, "ünïcode-ünïcode-1"],
)
def test_missing_or_invalid_fingerprint_raises(fingerprint) -> None:
    with pytest.raises(NoIdentityError) as exc_info:
        resolve_identity(fingerprint=fingerprint)
    assert exc_info.value.status_code == 401


def test_validate_fingerprint_bounds() -> None:
    assert validate_fingerprint("x" * 16)
    assert validate_fingerprint("x" * 128)
    assert not validate_fingerprint("x" * 15)
    assert not validate_fingerprint("x" * 129)
    assert validate_fingerprint("abc", min_length=3, max_length=3)


def test_account_and_fingerprint_keys_never_collide() -> None:
    account = resolve_identity(account_ref=VALID_FP)
    anon = resolve_identity(fingerprint=VALID_FP)
    assert account.key != anon.key


def test_from_key_round_trip() -> None:
    identity = Identity.from_key("anon:" + VALID_FP)
    assert identity == Identity(IdentityKind.ANONYMOUS, VALID_FP)
