from __future__ import annotations

from typing import Any

from .kv_store import KeyValueStore, MemoryStore
from .sqlite_store import SQLiteStore


def create_store(settings: Any) -> KeyValueStore:
    """Build the configured attempt store from application settings."""

    store_settings = settings.STORE
    backend = str(store_settings.get("backend") or "sqlite").strip().lower()
    quota_raw = store_settings.get("quota")
    quota = int(quota_raw) if quota_raw else None

    if backend == "memory":
        return MemoryStore(quota=quota)
    if backend == "sqlite":
        return SQLiteStore(
            str(store_settings.get("path") or "state.sqlite3"),
            namespace=str(store_settings.get("namespace") or "gatehouse"),
            max_value_bytes=quota,
        )
    raise RuntimeError(f"Unknown STORE.backend '{backend}'; expected 'sqlite' or 'memory'")


__all__ = ["KeyValueStore", "MemoryStore", "SQLiteStore", "create_store"]
