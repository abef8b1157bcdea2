"""Factory for creating storage backends."""

from typing import Any

from .base import StorageBackend


def create_storage_backend(backend: str = "memory", **config: Any) -> StorageBackend:
    """Create a storage backend instance.

    Args:
        backend: Backend type ("memory" or "sqlite")
        **config: Backend-specific configuration
            For sqlite:
                - path: str | Path (default: './tabicat.db')

    Returns:
        StorageBackend instance (not yet connected)

    Raises:
        ValueError: If backend type is not supported

    Example:
        >>> storage = create_storage_backend("sqlite", path="~/.tabicat/state.db")
        >>> await storage.connect()
    """
    if backend == "memory":
        from .memory import InMemoryStorageBackend
        return InMemoryStorageBackend(**config)

    elif backend == "sqlite":
        from .sqlite import SQLiteStorageBackend
        return SQLiteStorageBackend(**config)

    raise ValueError(
        f"Unsupported storage backend: {backend}. "
        f"Supported backends: memory, sqlite"
    )
