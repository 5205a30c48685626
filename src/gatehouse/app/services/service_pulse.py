from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterable, Mapping, Protocol

from blinker import Namespace, Signal

logger = logging.getLogger(__name__)

GATE_REJECTED = "gate.rejected"
AUTH_OUTCOME = "auth.outcome"
STORE_WRITE_FAILED = "store.write_failed"


@dataclass(slots=True, frozen=True)
class PulseEvent:
    """Snapshot of a published gate or authentication event."""

    topic: str
    payload: Mapping[str, Any]
    timestamp: float

    def as_payload(self) -> dict[str, Any]:
        return dict(self.payload)


class PulseListener(Protocol):
    def __call__(self, event: PulseEvent) -> Awaitable[None] | None:
        ...


class ServicePulse:
    """Pub/sub for gate decisions and authentication outcomes.

    Listeners may be plain callables or coroutine functions; coroutines are
    scheduled on the running loop. A failing listener is logged and never
    disturbs the publisher.
    """

    def __init__(self) -> None:
        self._latest: dict[str, PulseEvent] = {}
        self._namespace = Namespace()
        self._broadcast_signal = Signal("pulse:*")
        self._pending: set[asyncio.Task[Any]] = set()

    def signal(self, topic: str) -> Signal:
        return self._namespace.signal(topic)

    def emit(self, topic: str, payload: Mapping[str, Any]) -> PulseEvent:
        """Record ``payload`` under ``topic`` and notify subscribers."""

        event = PulseEvent(
            topic=topic,
            payload=MappingProxyType(dict(payload)),
            timestamp=time.monotonic(),
        )
        self._latest[topic] = event
        for sig in (self.signal(topic), self._broadcast_signal):
            sig.send(self, event=event)
        return event

    def _dispatch(self, listener: PulseListener, event: PulseEvent) -> None:
        try:
            result = listener(event)
        except Exception:
            logger.exception("Pulse listener failed for topic %s", event.topic)
            return
        if not asyncio.iscoroutine(result):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            result.close()
            logger.warning(
                "Dropping async pulse listener for %s: no running loop", event.topic
            )
            return
        task = loop.create_task(result)
        self._pending.add(task)
        task.add_done_callback(self._listener_done)

    def _listener_done(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Async pulse listener failed", exc_info=exc)

    def subscribe(
        self,
        listener: PulseListener,
        *,
        topics: Iterable[str] | None = None,
    ) -> Callable[[], None]:
        """Subscribe ``listener`` and return a callable that unsubscribes it."""

        def _receiver(sender: Any, *, event: PulseEvent | None = None, **_: Any) -> None:
            if event is not None:
                self._dispatch(listener, event)

        if topics is None:
            signals = [self._broadcast_signal]
        else:
            signals = [self.signal(topic) for topic in dict.fromkeys(topics)]

        for sig in signals:
            sig.connect(_receiver, sender=self, weak=False)

        def unsubscribe() -> None:
            for sig in signals:
                sig.disconnect(_receiver, sender=self)

        return unsubscribe

    def latest(self, topic: str) -> dict[str, Any] | None:
        event = self._latest.get(topic)
        return event.as_payload() if event is not None else None

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {topic: event.as_payload() for topic, event in self._latest.items()}


__all__ = [
    "AUTH_OUTCOME",
    "GATE_REJECTED",
    "PulseEvent",
    "ServicePulse",
    "STORE_WRITE_FAILED",
]
