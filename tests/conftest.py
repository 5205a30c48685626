from __future__ import annotations

import pytest

from gatehouse.app.db.kv_store import MemoryStore
from gatehouse.app.services.attempt_gate import AttemptGate, GateConfig


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


LOGIN_CONFIG = GateConfig(
    name="login",
    max_attempts=5,
    window=15 * 60,
    storage_key="rate_limit_login",
    message="Too many login attempts. Please try again in {reset_time}.",
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def login_gate(store: MemoryStore, clock: FakeClock) -> AttemptGate:
    return AttemptGate(LOGIN_CONFIG, store, clock=clock)
