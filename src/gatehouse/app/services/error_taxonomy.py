"""Classification of raw authentication error text."""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    GATE_REJECTED = "gate_rejected"
    ACCOUNT_BLOCKED = "account_blocked"
    EMAIL_UNVERIFIED = "email_unverified"
    INVALID_CREDENTIALS = "invalid_credentials"
    SERVER_RATE_LIMITED = "server_rate_limited"
    PROFILE_MISSING = "profile_missing"
    GENERIC = "generic"
    STORE_WRITE_FAILED = "store_write_failed"


class AccountStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    REPORTED = "reported"
    PENDING_VERIFICATION = "pending_verification"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: object) -> "AccountStatus":
        """Map a backend status string onto the enum, defaulting to UNKNOWN."""

        if isinstance(raw, cls):
            return raw
        value = str(raw or "").strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


# Order matters: the first matching rule wins, and blocked-account text can
# also contain words like "invalid".
CLASSIFICATION_RULES: tuple[tuple[ErrorKind, tuple[str, ...]], ...] = (
    (ErrorKind.ACCOUNT_BLOCKED, ("inactive", "suspended", "reported", "under review")),
    (
        ErrorKind.EMAIL_UNVERIFIED,
        ("email not confirmed", "not verified", "confirm your email", "verify your email"),
    ),
    (
        ErrorKind.INVALID_CREDENTIALS,
        ("invalid_credentials", "invalid login", "invalid", "wrong password"),
    ),
    (ErrorKind.SERVER_RATE_LIMITED, ("too_many_requests", "rate limit")),
    (ErrorKind.PROFILE_MISSING, ("profile not found",)),
)

BLOCKED_STATUS_RULES: tuple[tuple[AccountStatus, tuple[str, ...]], ...] = (
    (AccountStatus.INACTIVE, ("inactive",)),
    (AccountStatus.SUSPENDED, ("suspended",)),
    (AccountStatus.REPORTED, ("reported", "under review")),
)

BLOCKED_STATUSES = frozenset(status for status, _ in BLOCKED_STATUS_RULES)


def classify_error(raw: str | None) -> ErrorKind:
    """Return the first error kind whose phrases occur in ``raw``."""

    text = (raw or "").lower()
    for kind, phrases in CLASSIFICATION_RULES:
        if any(phrase in text for phrase in phrases):
            return kind
    return ErrorKind.GENERIC


def blocked_status_from_text(raw: str | None) -> AccountStatus:
    """Guess the blocked-account sub-kind from error text alone."""

    text = (raw or "").lower()
    for status, phrases in BLOCKED_STATUS_RULES:
        if any(phrase in text for phrase in phrases):
            return status
    return AccountStatus.INACTIVE


__all__ = [
    "AccountStatus",
    "BLOCKED_STATUSES",
    "ErrorKind",
    "blocked_status_from_text",
    "classify_error",
]
