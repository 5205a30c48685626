"""Reconcile a credential submission with a concurrent eligibility pre-check."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from gatehouse.app.services.account_client import (
    AccountEligibility,
    CredentialSubmitter,
    EligibilityChecker,
)
from gatehouse.app.services.attempt_gate import AttemptGate
from gatehouse.app.services.error_taxonomy import (
    BLOCKED_STATUSES,
    AccountStatus,
    ErrorKind,
    blocked_status_from_text,
    classify_error,
)
from gatehouse.app.services.service_pulse import (
    AUTH_OUTCOME,
    GATE_REJECTED,
    STORE_WRITE_FAILED,
    ServicePulse,
)


logger = logging.getLogger(__name__)

LOGIN_FAILED_MESSAGE = "Login failed. Please try again."
BLOCKED_FALLBACK_MESSAGE = "Your account is currently unable to sign in."

ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.EMAIL_UNVERIFIED: (
        "Your email address is not verified. Please check your email and "
        "click the verification link."
    ),
    ErrorKind.INVALID_CREDENTIALS: (
        "Invalid email or password. Please check your credentials and try again."
    ),
    ErrorKind.SERVER_RATE_LIMITED: (
        "Too many login attempts. Please wait a few minutes before trying again."
    ),
    ErrorKind.PROFILE_MISSING: "Account profile not found. Please contact support.",
}


class OutcomeKind(Enum):
    SUCCESS = "success"
    GATE_REJECTED = "gate_rejected"
    BLOCKED_ACCOUNT = "blocked_account"
    NEEDS_VERIFICATION = "needs_verification"
    INVALID_CREDENTIALS = "invalid_credentials"
    GENERIC_ERROR = "generic_error"


_OUTCOME_FOR_ERROR: dict[ErrorKind, OutcomeKind] = {
    ErrorKind.ACCOUNT_BLOCKED: OutcomeKind.BLOCKED_ACCOUNT,
    ErrorKind.EMAIL_UNVERIFIED: OutcomeKind.NEEDS_VERIFICATION,
    ErrorKind.INVALID_CREDENTIALS: OutcomeKind.INVALID_CREDENTIALS,
    ErrorKind.SERVER_RATE_LIMITED: OutcomeKind.GENERIC_ERROR,
    ErrorKind.PROFILE_MISSING: OutcomeKind.GENERIC_ERROR,
    ErrorKind.GENERIC: OutcomeKind.GENERIC_ERROR,
}


@dataclass(slots=True, frozen=True)
class AuthOutcome:
    """Terminal result of one submission."""

    kind: OutcomeKind
    sequence: int
    message: str | None = None
    error_kind: ErrorKind | None = None
    account_status: AccountStatus | None = None
    display_name: str | None = None
    reset_in_formatted: str | None = None
    remaining_attempts: int | None = None
    attempt_recorded: bool = False

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "sequence": self.sequence,
            "message": self.message,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "account_status": (
                self.account_status.value if self.account_status else None
            ),
            "display_name": self.display_name,
            "reset_in_formatted": self.reset_in_formatted,
            "remaining_attempts": self.remaining_attempts,
            "attempt_recorded": self.attempt_recorded,
        }


def _consume_result(task: asyncio.Task[Any]) -> None:
    if not task.cancelled():
        task.exception()


def _discard(task: asyncio.Task[Any]) -> None:
    if not task.done():
        task.cancel()
    task.add_done_callback(_consume_result)


def with_support_remedy(message: str, support_email: str) -> str:
    """Append the support contact to a blocked-account message."""

    text = message.strip() or BLOCKED_FALLBACK_MESSAGE
    if support_email and support_email in text:
        return text
    if text[-1] not in ".!?":
        text += "."
    return f"{text} Please contact {support_email} for assistance."


class AuthOrchestrator:
    """Drive one login submission through the gate and the remote calls.

    The credential submission is never held back by the eligibility
    pre-check; the pre-check only enriches blocked-account failures. A
    failed submission is counted against the gate before anything else is
    awaited.
    """

    def __init__(
        self,
        gate: AttemptGate,
        submitter: CredentialSubmitter,
        checker: EligibilityChecker,
        *,
        support_email: str,
        precheck_timeout: float = 5.0,
        service_pulse: ServicePulse | None = None,
    ) -> None:
        self._gate = gate
        self._submitter = submitter
        self._checker = checker
        self._support_email = support_email
        self._precheck_timeout = precheck_timeout
        self._service_pulse = service_pulse
        self._sequence = 0
        self._latest: AuthOutcome | None = None

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def latest_outcome(self) -> AuthOutcome | None:
        """Outcome of the most recent submission once it has resolved."""

        return self._latest

    def _is_current(self, sequence: int) -> bool:
        return sequence == self._sequence

    def _emit(self, topic: str, payload: dict[str, Any]) -> None:
        if self._service_pulse is not None:
            self._service_pulse.emit(topic, payload)

    def _resolve(self, outcome: AuthOutcome) -> AuthOutcome:
        if self._is_current(outcome.sequence):
            self._latest = outcome
        else:
            logger.debug(
                "Outcome for submission %s superseded by %s",
                outcome.sequence,
                self._sequence,
            )
        self._emit(AUTH_OUTCOME, outcome.as_dict())
        return outcome

    async def submit(self, identifier: str, secret: str) -> AuthOutcome:
        """Run one submission to its terminal outcome.

        Remote failures are converted into an :class:`AuthOutcome`; only
        cancellation propagates.
        """

        self._sequence += 1
        sequence = self._sequence

        status = self._gate.check_limit(identifier)
        if not status.allowed:
            logger.warning(
                "Gate %s rejected submission for %s; resets in %s",
                self._gate.name,
                identifier,
                status.reset_in_formatted,
            )
            self._emit(
                GATE_REJECTED,
                {
                    "gate": self._gate.name,
                    "identifier": identifier,
                    "reset_in_formatted": status.reset_in_formatted,
                },
            )
            return self._resolve(
                AuthOutcome(
                    kind=OutcomeKind.GATE_REJECTED,
                    sequence=sequence,
                    message=status.message,
                    error_kind=ErrorKind.GATE_REJECTED,
                    reset_in_formatted=status.reset_in_formatted,
                    remaining_attempts=0,
                )
            )

        precheck = asyncio.create_task(
            self._checker.check(identifier),
            name=f"gatehouse-precheck-{sequence}",
        )
        try:
            await self._submitter.submit(identifier, secret)
        except asyncio.CancelledError:
            _discard(precheck)
            raise
        except Exception as exc:
            return self._resolve(
                await self._handle_failure(identifier, sequence, str(exc), precheck)
            )

        _discard(precheck)
        logger.debug("Submission %s for %s succeeded", sequence, identifier)
        return self._resolve(AuthOutcome(kind=OutcomeKind.SUCCESS, sequence=sequence))

    async def _handle_failure(
        self,
        identifier: str,
        sequence: int,
        raw_message: str,
        precheck: asyncio.Task[AccountEligibility],
    ) -> AuthOutcome:
        recorded = self._gate.record_attempt(identifier)
        if not recorded:
            self._emit(
                STORE_WRITE_FAILED,
                {"gate": self._gate.name, "identifier": identifier},
            )
        remaining = self._gate.check_limit(identifier).remaining_attempts

        error_kind = classify_error(raw_message)
        logger.info(
            "Submission %s for %s failed (%s)", sequence, identifier, error_kind.value
        )

        if error_kind is ErrorKind.ACCOUNT_BLOCKED:
            eligibility = await self._await_precheck(precheck, sequence)
            if eligibility is not None and not eligibility.can_proceed:
                account_status = eligibility.status_code
                if account_status not in BLOCKED_STATUSES:
                    account_status = blocked_status_from_text(raw_message)
                message = eligibility.message or raw_message
                display_name = eligibility.display_name
            else:
                account_status = blocked_status_from_text(raw_message)
                message = raw_message
                display_name = None
            return AuthOutcome(
                kind=OutcomeKind.BLOCKED_ACCOUNT,
                sequence=sequence,
                message=with_support_remedy(message, self._support_email),
                error_kind=error_kind,
                account_status=account_status,
                display_name=display_name,
                remaining_attempts=remaining,
                attempt_recorded=recorded,
            )

        _discard(precheck)
        if error_kind is ErrorKind.GENERIC:
            message = raw_message.strip() or LOGIN_FAILED_MESSAGE
        else:
            message = ERROR_MESSAGES[error_kind]
        return AuthOutcome(
            kind=_OUTCOME_FOR_ERROR[error_kind],
            sequence=sequence,
            message=message,
            error_kind=error_kind,
            remaining_attempts=remaining,
            attempt_recorded=recorded,
        )

    async def _await_precheck(
        self,
        precheck: asyncio.Task[AccountEligibility],
        sequence: int,
    ) -> AccountEligibility | None:
        try:
            eligibility = await asyncio.wait_for(precheck, self._precheck_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Eligibility pre-check for submission %s timed out after %ss",
                sequence,
                self._precheck_timeout,
            )
            return None
        except Exception:
            logger.warning(
                "Eligibility pre-check for submission %s failed", sequence, exc_info=True
            )
            return None

        if not self._is_current(sequence):
            logger.debug(
                "Discarding stale pre-check result for submission %s (current %s)",
                sequence,
                self._sequence,
            )
            return None
        return eligibility


__all__ = [
    "AuthOrchestrator",
    "AuthOutcome",
    "OutcomeKind",
    "with_support_remedy",
]
