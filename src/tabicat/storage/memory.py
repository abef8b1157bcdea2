"""In-memory storage backend.

Simple dict-based storage for session-only state.
Data is lost when the application exits.
"""

import copy
from collections.abc import Iterable
from typing import Any

from .base import StorageBackend
from .models import StorageChange, StorageScope


class InMemoryStorageBackend(StorageBackend):
    """In-memory storage (session-only).

    Values are deep-copied on the way in and out so callers never share
    mutable state with the store. Suitable for single-session use or testing.
    """

    def __init__(self) -> None:
        super().__init__()
        self._scopes: dict[StorageScope, dict[str, Any]] = {
            scope: {} for scope in StorageScope
        }

    async def connect(self) -> None:
        """Initialize storage (no-op for in-memory)."""
        pass

    async def disconnect(self) -> None:
        """Close storage (no-op for in-memory)."""
        pass

    async def get(self, scope: StorageScope, keys: Iterable[str]) -> dict[str, Any]:
        data = self._scopes[scope]
        return {key: copy.deepcopy(data[key]) for key in keys if key in data}

    async def get_all(self, scope: StorageScope) -> dict[str, Any]:
        return copy.deepcopy(self._scopes[scope])

    async def set(self, scope: StorageScope, items: dict[str, Any]) -> None:
        await self._check_quota(scope, items)
        data = self._scopes[scope]
        changes = {}
        for key, value in items.items():
            changes[key] = StorageChange(old_value=data.get(key), new_value=copy.deepcopy(value))
            data[key] = copy.deepcopy(value)
        self._notify(scope, changes)

    async def remove(self, scope: StorageScope, keys: Iterable[str]) -> None:
        data = self._scopes[scope]
        changes = {}
        for key in keys:
            if key in data:
                changes[key] = StorageChange(old_value=data.pop(key))
        self._notify(scope, changes)

    @property
    def backend_type(self) -> str:
        return "memory"
