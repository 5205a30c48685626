from __future__ import annotations

from types import SimpleNamespace

import pytest

from gatehouse.app.services.attempt_gate import GateConfig
from gatehouse.app.services.gate_registry import (
    EMAIL_VERIFICATION,
    LOGIN,
    PASSWORD_RESET,
    REGISTRATION,
    GateRegistry,
)
from gatehouse.settings import DEFAULT_GATES


def _settings(**gates) -> SimpleNamespace:
    return SimpleNamespace(GATES=gates or DEFAULT_GATES)


def test_builds_every_named_gate(store, clock) -> None:
    registry = GateRegistry.from_settings(_settings(), store, clock=clock)

    assert set(registry.names()) == {
        LOGIN,
        REGISTRATION,
        PASSWORD_RESET,
        EMAIL_VERIFICATION,
    }
    login = registry.get(LOGIN)
    assert login.config.max_attempts == 5
    assert login.config.window == 15 * 60
    assert login.config.storage_key == "rate_limit_login"


def test_gates_keep_separate_counters(store, clock) -> None:
    registry = GateRegistry.from_settings(_settings(), store, clock=clock)

    for _ in range(3):
        registry[PASSWORD_RESET].record_attempt("a@x.com")

    assert registry[PASSWORD_RESET].check_limit("a@x.com").allowed is False
    assert registry[LOGIN].check_limit("a@x.com").remaining_attempts == 5
    assert registry[REGISTRATION].check_limit("a@x.com").remaining_attempts == 3


def test_storage_key_defaults_from_name(store) -> None:
    registry = GateRegistry.from_settings(
        _settings(signup={"max_attempts": 2, "window": 30}), store
    )

    assert registry.get("signup").config.storage_key == "rate_limit_signup"
    assert registry.get("signup").config.message is None


def test_unknown_gate_raises(store) -> None:
    registry = GateRegistry.from_settings(_settings(), store)

    assert "nope" not in registry
    with pytest.raises(KeyError):
        registry.get("nope")


def test_shared_storage_key_is_rejected(store) -> None:
    configs = [
        GateConfig("login", 5, 60, "shared"),
        GateConfig("registration", 3, 60, "shared"),
    ]

    with pytest.raises(ValueError, match="share storage key"):
        GateRegistry(configs, store)


def test_statistics_and_clear_all(store, clock) -> None:
    registry = GateRegistry.from_settings(_settings(), store, clock=clock)
    registry[LOGIN].record_attempt("a@x.com")
    registry[EMAIL_VERIFICATION].record_attempt("b@x.com")

    stats = registry.statistics()
    assert stats[LOGIN].total_attempts == 1
    assert stats[EMAIL_VERIFICATION].total_attempts == 1
    assert stats[REGISTRATION].total_attempts == 0

    registry.clear_all()

    assert all(gate.get_statistics().total_attempts == 0 for gate in registry)


@pytest.mark.parametrize("name", [LOGIN, REGISTRATION, PASSWORD_RESET, EMAIL_VERIFICATION])
def test_blocked_message_carries_reset_time(store, clock, name) -> None:
    gate = GateRegistry.from_settings(_settings(), store, clock=clock)[name]
    for _ in range(gate.config.max_attempts):
        gate.record_attempt("a@x.com")

    status = gate.check_limit("a@x.com")

    assert status.allowed is False
    assert status.reset_in_formatted in status.message
    assert "{reset_time}" not in status.message


def test_template_without_reset_time_is_rejected(store) -> None:
    settings = _settings(
        signup={"max_attempts": 2, "window": 30, "message": "Slow down."}
    )

    with pytest.raises(ValueError, match="reset_time"):
        GateRegistry.from_settings(settings, store)
