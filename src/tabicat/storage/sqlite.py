"""SQLite storage backend.

Provides persistent storage for both scopes in a single SQLite database file.
Uses aiosqlite for async access.
"""

import copy
import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import aiosqlite

from ..errors import PersistenceError, StateCorruptionError
from .base import StorageBackend
from .models import StorageChange, StorageScope

logger = logging.getLogger(__name__)


def _decode(scope: StorageScope, key: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise StateCorruptionError(f"{scope.value}/{key} is not valid JSON: {e}") from e


class SQLiteStorageBackend(StorageBackend):
    """SQLite-backed storage.

    Stores every item as a JSON document keyed by (scope, key).
    Supports persistent storage across sessions.
    """

    def __init__(self, path: str | Path = "./tabicat.db"):
        super().__init__()
        self._db_path = Path(path).expanduser()
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self._db_path)
        await self._create_schema()
        logger.debug("Opened storage database at %s", self._db_path)

    async def _create_schema(self) -> None:
        """Create database tables."""
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS items (
                scope TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (scope, key)
            )
        """)
        await self._connection.commit()

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _require_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise PersistenceError("SQLite storage is not connected")
        return self._connection

    async def _read(self, scope: StorageScope, keys: list[str] | None) -> dict[str, Any]:
        connection = self._require_connection()
        if keys is None:
            query = "SELECT key, value FROM items WHERE scope = ?"
            params: tuple = (scope.value,)
        else:
            if not keys:
                return {}
            placeholders = ", ".join("?" for _ in keys)
            query = f"SELECT key, value FROM items WHERE scope = ? AND key IN ({placeholders})"
            params = (scope.value, *keys)

        async with connection.execute(query, params) as cursor:
            rows = await cursor.fetchall()

        result = {}
        for key, raw in rows:
            try:
                result[key] = _decode(scope, key, raw)
            except StateCorruptionError as e:
                logger.warning("Discarding stored value: %s", e)
        return result

    async def get(self, scope: StorageScope, keys: Iterable[str]) -> dict[str, Any]:
        return await self._read(scope, list(keys))

    async def get_all(self, scope: StorageScope) -> dict[str, Any]:
        return await self._read(scope, None)

    async def set(self, scope: StorageScope, items: dict[str, Any]) -> None:
        connection = self._require_connection()
        await self._check_quota(scope, items)
        previous = await self._read(scope, list(items))

        try:
            await connection.executemany(
                """
                INSERT INTO items (scope, key, value) VALUES (?, ?, ?)
                ON CONFLICT(scope, key) DO UPDATE SET value = excluded.value
                """,
                [(scope.value, key, json.dumps(value)) for key, value in items.items()],
            )
            await connection.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to write {sorted(items)}: {e}") from e

        self._notify(scope, {
            key: StorageChange(old_value=previous.get(key), new_value=copy.deepcopy(value))
            for key, value in items.items()
        })

    async def remove(self, scope: StorageScope, keys: Iterable[str]) -> None:
        connection = self._require_connection()
        key_list = list(keys)
        previous = await self._read(scope, key_list)

        try:
            await connection.executemany(
                "DELETE FROM items WHERE scope = ? AND key = ?",
                [(scope.value, key) for key in key_list],
            )
            await connection.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to remove {key_list}: {e}") from e

        self._notify(scope, {
            key: StorageChange(old_value=value) for key, value in previous.items()
        })

    @property
    def backend_type(self) -> str:
        return "sqlite"

    @property
    def db_path(self) -> Path:
        return self._db_path
