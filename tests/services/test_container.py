from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from gatehouse.app.db import MemoryStore
from gatehouse.app.services import container
from gatehouse.app.services.container import AppServices
from gatehouse.settings import DEFAULT_GATES


def _settings(email: str) -> SimpleNamespace:
    return SimpleNamespace(
        SUPPORT={"email": email},
        STORE={"backend": "memory"},
        GATES=DEFAULT_GATES,
        AUTH=SimpleNamespace(
            base_url="http://auth.test",
            api_key="",
            request_timeout=1.0,
            precheck_timeout=2.0,
            low_attempts_warning=3,
        ),
    )


def test_create_builds_services_from_settings(monkeypatch) -> None:
    monkeypatch.setattr(container, "settings", _settings(" help@gatehouse.test "))

    services = AppServices.create()

    assert isinstance(services.store, MemoryStore)
    assert services.support_email == "help@gatehouse.test"
    assert services.precheck_timeout == 2.0
    assert services.low_attempts_warning == 3
    assert services.orchestrator().sequence == 0
    asyncio.run(services.account_client.aclose())


@pytest.mark.parametrize("email", ["", "   "])
def test_create_requires_support_email(monkeypatch, email: str) -> None:
    monkeypatch.setattr(container, "settings", _settings(email))

    with pytest.raises(RuntimeError, match="SUPPORT.email"):
        AppServices.create()
