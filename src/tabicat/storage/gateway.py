"""Best-effort persistence gateway over a storage backend.

In-memory session state is the source of truth; persisted state lags behind
it. Reads never fail (errors yield an empty mapping) and writes report
failure through their return value and the log, never by raising.
"""

import asyncio
import copy
import logging
from collections.abc import Iterable
from typing import Any

from .base import StorageBackend
from .models import StorageScope

logger = logging.getLogger(__name__)


class PersistenceGateway:
    """Typed get/set/remove access to the local and synced scopes.

    Writes can be awaited (``save``/``remove``) or dispatched as
    fire-and-forget tasks (``schedule_save``/``schedule_remove``). Scheduled
    writes snapshot their payload immediately and may complete in any order;
    ``flush`` waits for everything still pending.
    """

    def __init__(self, backend: StorageBackend):
        self._backend = backend
        self._pending: set[asyncio.Task] = set()

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    async def load(self, scope: StorageScope, keys: Iterable[str]) -> dict[str, Any]:
        """Read keys from a scope, returning an empty mapping on failure."""
        key_list = list(keys)
        try:
            return await self._backend.get(scope, key_list)
        except Exception as e:
            logger.error("Failed to load %s from %s storage: %s", key_list, scope.value, e)
            return {}

    async def save(self, scope: StorageScope, items: dict[str, Any]) -> bool:
        """Write items to a scope. Returns False if the write failed."""
        try:
            await self._backend.set(scope, items)
            return True
        except Exception as e:
            logger.error("Failed to save %s to %s storage: %s", sorted(items), scope.value, e)
            return False

    async def remove(self, scope: StorageScope, key: str) -> bool:
        """Remove a key from a scope. Returns False if the removal failed."""
        try:
            await self._backend.remove(scope, [key])
            return True
        except Exception as e:
            logger.error("Failed to remove %s from %s storage: %s", key, scope.value, e)
            return False

    def schedule_save(self, scope: StorageScope, items: dict[str, Any]) -> asyncio.Task:
        """Dispatch a save without waiting for it."""
        return self._track(self.save(scope, copy.deepcopy(items)))

    def schedule_remove(self, scope: StorageScope, key: str) -> asyncio.Task:
        """Dispatch a removal without waiting for it."""
        return self._track(self.remove(scope, key))

    def _track(self, coro: Any) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending_writes(self) -> int:
        """Number of scheduled writes that have not completed yet."""
        return len(self._pending)

    async def flush(self) -> None:
        """Wait for all scheduled writes to complete."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
