from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Callable

from gatehouse.app.db.kv_store import KeyValueStore
from gatehouse.app.services.attempt_gate import AttemptGate, GateConfig, GateStatistics


logger = logging.getLogger(__name__)

LOGIN = "login"
REGISTRATION = "registration"
PASSWORD_RESET = "password_reset"
EMAIL_VERIFICATION = "email_verification"


def _config_from_mapping(name: str, raw: Mapping[str, Any]) -> GateConfig:
    message = raw.get("message")
    return GateConfig(
        name=name,
        max_attempts=int(raw["max_attempts"]),
        window=float(raw["window"]),
        storage_key=str(raw.get("storage_key") or f"rate_limit_{name}"),
        message=str(message) if message else None,
    )


class GateRegistry:
    """Named, independent attempt gates sharing one store.

    Gates are built once and never reconfigured. Two gates may not share a
    storage key, otherwise their counters would bleed into each other.
    """

    def __init__(
        self,
        configs: Iterable[GateConfig],
        store: KeyValueStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        gates: dict[str, AttemptGate] = {}
        keys: dict[str, str] = {}
        for config in configs:
            if config.name in gates:
                raise ValueError(f"Duplicate gate name '{config.name}'")
            owner = keys.get(config.storage_key)
            if owner is not None:
                raise ValueError(
                    f"Gates '{owner}' and '{config.name}' share storage key "
                    f"'{config.storage_key}'"
                )
            keys[config.storage_key] = config.name
            gates[config.name] = AttemptGate(config, store, clock=clock)
        self._gates = gates

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        store: KeyValueStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> "GateRegistry":
        """Construct every gate listed under ``GATES`` in ``settings``."""

        raw_gates = settings.GATES
        if hasattr(raw_gates, "to_dict"):
            raw_gates = raw_gates.to_dict()
        configs = [
            _config_from_mapping(str(name).lower(), values)
            for name, values in raw_gates.items()
        ]
        registry = cls(configs, store, clock=clock)
        logger.debug("Configured gates: %s", ", ".join(registry.names()))
        return registry

    def get(self, name: str) -> AttemptGate:
        try:
            return self._gates[name]
        except KeyError:
            raise KeyError(f"Unknown gate '{name}'") from None

    def __getitem__(self, name: str) -> AttemptGate:
        return self.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._gates

    def __iter__(self) -> Iterator[AttemptGate]:
        return iter(self._gates.values())

    def names(self) -> list[str]:
        return list(self._gates)

    def statistics(self) -> dict[str, GateStatistics]:
        return {name: gate.get_statistics() for name, gate in self._gates.items()}

    def clear_all(self) -> None:
        """Administrative reset of every gate."""

        for gate in self._gates.values():
            gate.clear_attempts()


__all__ = [
    "EMAIL_VERIFICATION",
    "GateRegistry",
    "LOGIN",
    "PASSWORD_RESET",
    "REGISTRATION",
]
