"""Sliding-window attempt gate backed by a key-value store."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Iterable

import orjson

from gatehouse.app.db.kv_store import KeyValueStore
from gatehouse.app.services.time import format_reset_time


logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Too many attempts. Please try again in {reset_time}."
RESET_TIME_PLACEHOLDER = "{reset_time}"


@dataclass(slots=True, frozen=True)
class Attempt:
    """One gated action, attributed to ``identifier`` when known."""

    timestamp: float
    identifier: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "identifier": self.identifier}


@dataclass(slots=True, frozen=True)
class GateConfig:
    """Static configuration for one named gate."""

    name: str
    max_attempts: int
    window: float
    storage_key: str
    message: str | None = None

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError(f"Gate '{self.name}': max_attempts must be positive")
        if self.window <= 0:
            raise ValueError(f"Gate '{self.name}': window must be positive")
        if not self.storage_key:
            raise ValueError(f"Gate '{self.name}': storage_key is required")
        if self.message is not None and RESET_TIME_PLACEHOLDER not in self.message:
            raise ValueError(
                f"Gate '{self.name}': message must contain {RESET_TIME_PLACEHOLDER}"
            )

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class GateStatus:
    """Outcome of a gate check. Never persisted."""

    allowed: bool
    remaining_attempts: int
    reset_in: float
    reset_in_formatted: str
    message: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class GateStatistics:
    """Aggregate over the attempts currently inside a gate's window."""

    total_attempts: int
    unique_identifiers: int
    oldest_attempt: float | None
    newest_attempt: float | None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _parse_attempts(raw: Any) -> list[Attempt]:
    if not isinstance(raw, list):
        raise ValueError(f"expected a list of attempts, got {type(raw).__name__}")

    attempts: list[Attempt] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        timestamp = entry.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            continue
        identifier = entry.get("identifier")
        if identifier is not None and not isinstance(identifier, str):
            identifier = None
        attempts.append(Attempt(float(timestamp), identifier))
    return attempts


class AttemptGate:
    """Sliding-window limiter for one named action.

    Every decision recomputes the window from the current clock reading, so
    attempts age out continuously instead of resetting on bucket
    boundaries. Storage problems never block a user: unreadable data counts
    as "no attempts" and failed writes are reported, not raised.
    """

    def __init__(
        self,
        config: GateConfig,
        store: KeyValueStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self._store = store
        self._clock = clock

    @property
    def name(self) -> str:
        return self.config.name

    def _load_attempts(self) -> list[Attempt]:
        key = self.config.storage_key
        try:
            stored = self._store.get(key)
        except Exception:
            logger.warning("Failed to read attempts for gate %s", self.name, exc_info=True)
            return []
        if not stored:
            return []
        try:
            return _parse_attempts(orjson.loads(stored))
        except (orjson.JSONDecodeError, ValueError):
            logger.warning(
                "Ignoring corrupt attempt data for gate %s", self.name, exc_info=True
            )
            return []

    def _in_window(self, attempts: Iterable[Attempt], now: float) -> list[Attempt]:
        window_start = now - self.config.window
        return [attempt for attempt in attempts if attempt.timestamp > window_start]

    @staticmethod
    def _for_identifier(
        attempts: list[Attempt], identifier: str | None
    ) -> list[Attempt]:
        if not identifier:
            return attempts
        return [attempt for attempt in attempts if attempt.identifier == identifier]

    def _blocked_message(self, reset_time: str) -> str:
        template = self.config.message or DEFAULT_MESSAGE
        return template.replace(RESET_TIME_PLACEHOLDER, reset_time)

    def check_limit(self, identifier: str | None = None) -> GateStatus:
        """Decide whether another attempt is allowed. Records nothing."""

        now = self._clock()
        relevant = self._for_identifier(
            self._in_window(self._load_attempts(), now), identifier
        )
        remaining = max(0, self.config.max_attempts - len(relevant))
        allowed = remaining > 0

        reset_in = 0.0
        if not allowed and relevant:
            oldest = min(attempt.timestamp for attempt in relevant)
            reset_in = max(0.0, (oldest + self.config.window) - now)
        reset_in_formatted = format_reset_time(reset_in)

        if allowed:
            return GateStatus(
                allowed=True,
                remaining_attempts=remaining,
                reset_in=reset_in,
                reset_in_formatted=reset_in_formatted,
            )

        logger.debug(
            "Gate %s blocked %s; resets in %s",
            self.name,
            identifier or "<global>",
            reset_in_formatted,
        )
        return GateStatus(
            allowed=False,
            remaining_attempts=0,
            reset_in=reset_in,
            reset_in_formatted=reset_in_formatted,
            message=self._blocked_message(reset_in_formatted),
        )

    def record_attempt(self, identifier: str | None = None) -> bool:
        """Append an attempt and persist the pruned window.

        Returns ``False`` when the attempt could not be stored durably. A
        ``False`` return must never be used to deny the user.
        """

        now = self._clock()
        attempts = self._load_attempts()
        attempts.append(Attempt(now, identifier))
        recent = self._in_window(attempts, now)

        try:
            payload = orjson.dumps([attempt.as_dict() for attempt in recent])
            stored = self._store.set(self.config.storage_key, payload.decode("utf-8"))
        except Exception:
            logger.warning(
                "Store write failed for gate %s", self.name, exc_info=True
            )
            return False

        if not stored:
            logger.warning(
                "Store write failed for gate %s; attempt not recorded", self.name
            )
        return bool(stored)

    def clear_attempts(self) -> None:
        """Forget every attempt recorded under this gate."""

        try:
            self._store.remove(self.config.storage_key)
        except Exception:
            logger.warning("Failed to clear attempts for gate %s", self.name, exc_info=True)
            return
        logger.info("Cleared attempts for gate %s", self.name)

    def time_until_reset(self, identifier: str | None = None) -> float:
        """Seconds until ``identifier`` may try again (0 when allowed)."""

        return self.check_limit(identifier).reset_in

    def get_statistics(self) -> GateStatistics:
        recent = self._in_window(self._load_attempts(), self._clock())
        timestamps = [attempt.timestamp for attempt in recent]
        identifiers = {attempt.identifier for attempt in recent if attempt.identifier}
        return GateStatistics(
            total_attempts=len(recent),
            unique_identifiers=len(identifiers),
            oldest_attempt=min(timestamps) if timestamps else None,
            newest_attempt=max(timestamps) if timestamps else None,
        )


__all__ = [
    "Attempt",
    "AttemptGate",
    "DEFAULT_MESSAGE",
    "GateConfig",
    "GateStatistics",
    "GateStatus",
]
