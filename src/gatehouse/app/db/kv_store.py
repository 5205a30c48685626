from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Scoped, bounded string store shared by all attempt gates.

    ``get`` returns ``None`` for a missing key. ``set`` reports a rejected
    write (e.g. quota exceeded) by returning ``False`` instead of raising.
    """

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> bool:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStore:
    """In-process store with a total size quota.

    Sizes are counted as UTF-16 code units times two, matching how browser
    local storage accounts for its quota.
    """

    __slots__ = ("_data", "_quota")

    def __init__(self, quota: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self._quota = quota

    @staticmethod
    def _entry_size(key: str, value: str) -> int:
        return (len(key) + len(value)) * 2

    def usage(self) -> int:
        """Return the bytes currently accounted against the quota."""

        return sum(self._entry_size(k, v) for k, v in self._data.items())

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> bool:
        if self._quota is not None:
            current = self.usage()
            existing = self._data.get(key)
            if existing is not None:
                current -= self._entry_size(key, existing)
            if current + self._entry_size(key, value) > self._quota:
                logger.warning(
                    "Store quota of %s bytes exceeded writing %s", self._quota, key
                )
                return False
        self._data[key] = value
        return True

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


__all__ = ["KeyValueStore", "MemoryStore"]
