from __future__ import annotations

import pytest

from gatehouse.app.services.error_taxonomy import (
    AccountStatus,
    ErrorKind,
    blocked_status_from_text,
    classify_error,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Account is suspended", ErrorKind.ACCOUNT_BLOCKED),
        ("Your account is INACTIVE", ErrorKind.ACCOUNT_BLOCKED),
        ("Account under review by moderators", ErrorKind.ACCOUNT_BLOCKED),
        ("Email not confirmed", ErrorKind.EMAIL_UNVERIFIED),
        ("Please verify your email first", ErrorKind.EMAIL_UNVERIFIED),
        ("invalid_credentials", ErrorKind.INVALID_CREDENTIALS),
        ("Invalid login credentials", ErrorKind.INVALID_CREDENTIALS),
        ("Wrong password", ErrorKind.INVALID_CREDENTIALS),
        ("over_request_rate_limit: too_many_requests", ErrorKind.SERVER_RATE_LIMITED),
        ("Rate limit reached", ErrorKind.SERVER_RATE_LIMITED),
        ("Profile not found for user", ErrorKind.PROFILE_MISSING),
        ("Network request failed", ErrorKind.GENERIC),
        ("", ErrorKind.GENERIC),
        (None, ErrorKind.GENERIC),
    ],
)
def test_classify_error(raw, expected) -> None:
    assert classify_error(raw) is expected


def test_blocked_wins_over_invalid_credentials() -> None:
    assert classify_error("Invalid login credentials suspended test") is (
        ErrorKind.ACCOUNT_BLOCKED
    )


def test_unverified_wins_over_invalid() -> None:
    assert classify_error("Invalid: email not confirmed") is ErrorKind.EMAIL_UNVERIFIED


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Account is suspended", AccountStatus.SUSPENDED),
        ("Account is inactive", AccountStatus.INACTIVE),
        ("Account was reported", AccountStatus.REPORTED),
        ("Account under review", AccountStatus.REPORTED),
        ("inactive and suspended", AccountStatus.INACTIVE),
        ("suspended, reported", AccountStatus.SUSPENDED),
        ("blocked", AccountStatus.INACTIVE),
    ],
)
def test_blocked_status_from_text(raw, expected) -> None:
    assert blocked_status_from_text(raw) is expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("suspended", AccountStatus.SUSPENDED),
        ("Pending Verification", AccountStatus.PENDING_VERIFICATION),
        ("pending-verification", AccountStatus.PENDING_VERIFICATION),
        ("banished", AccountStatus.UNKNOWN),
        (None, AccountStatus.UNKNOWN),
        (AccountStatus.ACTIVE, AccountStatus.ACTIVE),
    ],
)
def test_account_status_parse(raw, expected) -> None:
    assert AccountStatus.parse(raw) is expected
