"""User key store abstraction + JSON file implementation."""

import json
import os
from abc import ABC, abstractmethod

from chat_gateway.users.models import UserKey


class UserKeyStore(ABC):
    """Abstract base for per-user, per-endpoint key storage."""

    @abstractmethod
    async def get_user_key(self, user_id: str, name: str) -> UserKey | None:
        ...

    @abstractmethod
    async def update_user_key(
        self, user_id: str, name: str, value: dict, expires_at: str | None = None
    ) -> UserKey:
        ...

    @abstractmethod
    async def delete_user_key(self, user_id: str, name: str | None = None, all: bool = False) -> int:
        """Delete one key (by name) or every key of the user. Returns the count removed."""
        ...

    async def get_user_key_values(self, user_id: str, name: str) -> dict | None:
        """Stored values ({"apiKey", "baseURL"}) or None when no key exists."""
        key = await self.get_user_key(user_id, name)
        return dict(key.value) if key is not None else None

    async def get_user_key_expiry(self, user_id: str, name: str) -> dict:
        key = await self.get_user_key(user_id, name)
        return {"expiresAt": key.expires_at if key is not None else None}


class JSONUserKeyStore(UserKeyStore):
    """File-backed user key store. Reloads on mtime change, writes through."""

    def __init__(self, path: str):
        self._path = path
        self._keys: list[UserKey] = []
        self._last_mtime: float = 0.0
        self._load()

    def _load(self) -> None:
        try:
            mtime = os.path.getmtime(self._path)
        except OSError:
            self._keys = []
            return

        if mtime == self._last_mtime:
            return

        with open(self._path, encoding="utf-8") as f:
            data = json.load(f)

        self._keys = [UserKey(**entry) for entry in data.get("keys", [])]
        self._last_mtime = mtime

    def _save(self) -> None:
        data = {"keys": [vars(key) for key in self._keys]}
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        self._last_mtime = os.path.getmtime(self._path)

    async def get_user_key(self, user_id: str, name: str) -> UserKey | None:
        self._load()
        for key in self._keys:
            if key.user_id == user_id and key.name == name:
                return key
        return None

    async def update_user_key(
        self, user_id: str, name: str, value: dict, expires_at: str | None = None
    ) -> UserKey:
        self._load()
        self._keys = [k for k in self._keys if not (k.user_id == user_id and k.name == name)]
        key = UserKey(user_id=user_id, name=name, value=dict(value), expires_at=expires_at)
        self._keys.append(key)
        self._save()
        return key

    async def delete_user_key(self, user_id: str, name: str | None = None, all: bool = False) -> int:
        self._load()
        before = len(self._keys)
        self._keys = [
            k for k in self._keys
            if not (k.user_id == user_id and (all or k.name == name))
        ]
        removed = before - len(self._keys)
        if removed:
            self._save()
        return removed
