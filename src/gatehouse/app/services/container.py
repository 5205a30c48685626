"""Application service and lifecycle helpers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from gatehouse.app.db import KeyValueStore, create_store
from gatehouse.app.services.account_client import AccountClient
from gatehouse.app.services.auth_orchestrator import AuthOrchestrator
from gatehouse.app.services.gate_registry import LOGIN, GateRegistry
from gatehouse.app.services.service_pulse import ServicePulse
from gatehouse.settings import settings


logger = logging.getLogger(__name__)

SERVICES_KEY = "gatehouse"


@dataclass(slots=True)
class AppServices:
    """Bundle long-lived application services."""

    store: KeyValueStore
    gates: GateRegistry
    account_client: AccountClient
    service_pulse: ServicePulse
    support_email: str
    precheck_timeout: float
    low_attempts_warning: int = 2

    @classmethod
    def create(cls) -> "AppServices":
        support_email = str(settings.SUPPORT.get("email") or "").strip()
        if not support_email:
            raise RuntimeError("SUPPORT.email must be configured")

        store = create_store(settings)
        return cls(
            store=store,
            gates=GateRegistry.from_settings(settings, store),
            account_client=AccountClient.from_settings(settings),
            service_pulse=ServicePulse(),
            support_email=support_email,
            precheck_timeout=float(settings.AUTH.precheck_timeout),
            low_attempts_warning=int(settings.AUTH.low_attempts_warning),
        )

    def orchestrator(self, gate_name: str = LOGIN) -> AuthOrchestrator:
        """Return a fresh orchestrator for one client's submissions.

        Sequence numbers are per orchestrator, so unrelated clients must not
        share one.
        """

        return AuthOrchestrator(
            self.gates.get(gate_name),
            self.account_client,
            self.account_client,
            support_email=self.support_email,
            precheck_timeout=self.precheck_timeout,
            service_pulse=self.service_pulse,
        )


class AppLifecycle:
    """Manage startup and shutdown of long-lived application services."""

    def __init__(self, services: AppServices) -> None:
        self._services = services
        self._lock = asyncio.Lock()
        self._started = False

    async def __aenter__(self) -> "AppLifecycle":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def start(self) -> None:
        async with self._lock:
            if self._started:
                return
            self._started = True
            logger.info(
                "Application lifecycle started with gates: %s",
                ", ".join(self._services.gates.names()),
            )

    async def stop(self) -> None:
        async with self._lock:
            if not self._started:
                return
            self._started = False

        try:
            await self._services.account_client.aclose()
        except Exception:
            logger.exception("Failed to close account client cleanly")
            raise

        logger.info("Application lifecycle stopped")


def get_services() -> AppServices:
    """Return the services container attached to the running app."""

    from quart import current_app

    services: Any = current_app.extensions.get(SERVICES_KEY)
    if services is None:
        raise RuntimeError("Gatehouse services are not initialised")
    return services


__all__ = ["AppLifecycle", "AppServices", "get_services"]
