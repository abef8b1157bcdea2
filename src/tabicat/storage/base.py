"""Abstract base class for storage backends.

This module defines the key-value interface shared by both storage scopes.
The abstraction hides:
- Storage format (in-memory dict, SQLite table)
- Persistence mechanism
- Connection management
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any

from ..config import SYNC_QUOTA_BYTES, SYNC_QUOTA_BYTES_PER_ITEM
from ..errors import StorageQuotaError
from .models import StorageChange, StorageScope

logger = logging.getLogger(__name__)

ChangeListener = Callable[[dict[str, StorageChange], StorageScope], None]


def _item_size(key: str, value: Any) -> int:
    return len(key.encode("utf-8")) + len(
        json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    )


class StorageBackend(ABC):
    """Abstract two-scope key-value storage backend.

    Values must be JSON-compatible. After every successful ``set`` or
    ``remove`` registered listeners receive the changed keys with their old
    and new values.
    """

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the backend."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the backend gracefully."""

    @abstractmethod
    async def get(self, scope: StorageScope, keys: Iterable[str]) -> dict[str, Any]:
        """Read keys from a scope.

        Args:
            scope: Scope to read from
            keys: Keys to read

        Returns:
            Mapping of the keys that exist to their values
        """

    @abstractmethod
    async def set(self, scope: StorageScope, items: dict[str, Any]) -> None:
        """Write items to a scope.

        Raises:
            StorageQuotaError: If a synced write exceeds the quota
            PersistenceError: If the write fails
        """

    @abstractmethod
    async def remove(self, scope: StorageScope, keys: Iterable[str]) -> None:
        """Remove keys from a scope. Missing keys are ignored."""

    @abstractmethod
    async def get_all(self, scope: StorageScope) -> dict[str, Any]:
        """Read every item of a scope."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""

    def add_change_listener(self, listener: ChangeListener) -> None:
        """Register a callback for storage changes."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        """Unregister a storage change callback."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, scope: StorageScope, changes: dict[str, StorageChange]) -> None:
        if not changes:
            return
        for listener in list(self._listeners):
            try:
                listener(changes, scope)
            except Exception:
                logger.exception("Storage change listener failed")

    async def _check_quota(self, scope: StorageScope, items: dict[str, Any]) -> None:
        """Reject synced writes that exceed the per-item or total quota."""
        if scope is not StorageScope.SYNCED:
            return

        for key, value in items.items():
            size = _item_size(key, value)
            if size > SYNC_QUOTA_BYTES_PER_ITEM:
                raise StorageQuotaError(
                    f"Item '{key}' is {size} bytes, quota per item is {SYNC_QUOTA_BYTES_PER_ITEM}"
                )

        merged = await self.get_all(scope)
        merged.update(items)
        total = sum(_item_size(key, value) for key, value in merged.items())
        if total > SYNC_QUOTA_BYTES:
            raise StorageQuotaError(
                f"Synced storage would hold {total} bytes, quota is {SYNC_QUOTA_BYTES}"
            )
