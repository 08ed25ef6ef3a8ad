"""Key-value cache collaborator used by the model catalog loader."""

import time
from abc import ABC, abstractmethod
from typing import Any

MODELS_CONFIG = "modelsConfig"


class KeyValueCache(ABC):
    """Minimal async get/set store. No locking; last write wins."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...


class MemoryCache(KeyValueCache):
    """In-process cache with an optional TTL (0 = keep until deleted)."""

    def __init__(self, ttl: float = 0):
        self._ttl = ttl
        self._entries: dict[str, tuple[Any, float | None]] = {}

    async def get(self, key: str) -> Any | None:
        if key not in self._entries:
            return None
        value, expires_at = self._entries[key]
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any) -> None:
        expires_at = time.monotonic() + self._ttl if self._ttl else None
        self._entries[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry, e.g. after a configuration reload."""
        self._entries.clear()
