"""HTTP client for the remote authentication backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

import httpx
import orjson

from gatehouse.app.services.error_taxonomy import AccountStatus


logger = logging.getLogger(__name__)

_ERROR_FIELDS = ("error_description", "message", "msg", "error")


class CredentialRejected(Exception):
    """The backend refused the credentials; ``str(exc)`` is its raw message."""


class EligibilityUnavailable(Exception):
    """The eligibility lookup failed or returned an unusable payload."""


@dataclass(slots=True, frozen=True)
class AccountEligibility:
    """Whether an account may currently authenticate."""

    can_proceed: bool
    status_code: AccountStatus
    message: str
    display_name: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AccountEligibility":
        if "can_proceed" in payload:
            can_proceed = payload["can_proceed"]
        elif "can_login" in payload:
            can_proceed = payload["can_login"]
        else:
            raise EligibilityUnavailable("Eligibility payload is missing can_proceed")
        display_name = payload.get("display_name") or payload.get("first_name")
        return cls(
            can_proceed=bool(can_proceed),
            status_code=AccountStatus.parse(payload.get("status")),
            message=str(payload.get("message") or ""),
            display_name=str(display_name) if display_name else None,
        )


class CredentialSubmitter(Protocol):
    async def submit(self, identifier: str, secret: str) -> None:
        ...


class EligibilityChecker(Protocol):
    async def check(self, identifier: str) -> AccountEligibility:
        ...


def _error_message(response: httpx.Response) -> str:
    try:
        payload = orjson.loads(response.content)
    except orjson.JSONDecodeError:
        payload = None

    if isinstance(payload, dict):
        for field in _ERROR_FIELDS:
            value = payload.get(field)
            if value:
                return str(value)
    text = response.text.strip()
    return text or f"Authentication failed with status {response.status_code}"


class AccountClient:
    """Credential submission and eligibility lookups over HTTP.

    Implements both remote collaborators of the orchestrator. The client
    owns an ``httpx.AsyncClient`` unless one is passed in, in which case the
    caller is responsible for closing it.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
        self._headers = headers
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout, transport=httpx.AsyncHTTPTransport(retries=0)
        )

    @classmethod
    def from_settings(cls, settings: Any) -> "AccountClient":
        auth = settings.AUTH
        return cls(
            str(auth.base_url),
            api_key=str(auth.api_key or "") or None,
            timeout=float(auth.request_timeout),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, path: str, payload: Mapping[str, Any]) -> httpx.Response:
        return await self._client.post(
            f"{self.base_url}{path}",
            content=orjson.dumps(payload),
            headers={**self._headers, "Content-Type": "application/json"},
        )

    async def submit(self, identifier: str, secret: str) -> None:
        """Authenticate, raising :class:`CredentialRejected` on refusal."""

        response = await self._post(
            "/auth/token", {"identifier": identifier, "secret": secret}
        )
        if response.is_success:
            logger.debug("Backend accepted credentials for %s", identifier)
            return
        message = _error_message(response)
        logger.debug(
            "Backend rejected credentials for %s (%s): %s",
            identifier,
            response.status_code,
            message,
        )
        raise CredentialRejected(message)

    async def check(self, identifier: str) -> AccountEligibility:
        """Look up whether ``identifier`` may currently sign in."""

        response = await self._post("/accounts/status", {"identifier": identifier})
        try:
            response.raise_for_status()
            payload = orjson.loads(response.content)
        except (httpx.HTTPStatusError, orjson.JSONDecodeError) as exc:
            raise EligibilityUnavailable(str(exc)) from exc
        if not isinstance(payload, dict):
            raise EligibilityUnavailable("Eligibility payload is not an object")
        return AccountEligibility.from_payload(payload)


__all__ = [
    "AccountClient",
    "AccountEligibility",
    "CredentialRejected",
    "CredentialSubmitter",
    "EligibilityChecker",
    "EligibilityUnavailable",
]
