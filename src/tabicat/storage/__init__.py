"""Two-scope persistence layer for tabicat."""

from .base import StorageBackend
from .factory import create_storage_backend
from .gateway import PersistenceGateway
from .models import (
    CONVERSATION_KEY,
    CURRENT_PROFILE_KEY,
    PENDING_PROMPT_KEY,
    PROFILES_KEY,
    TEMPLATES_KEY,
    StorageChange,
    StorageScope,
)

__all__ = [
    "CONVERSATION_KEY",
    "CURRENT_PROFILE_KEY",
    "PENDING_PROMPT_KEY",
    "PROFILES_KEY",
    "TEMPLATES_KEY",
    "PersistenceGateway",
    "StorageBackend",
    "StorageChange",
    "StorageScope",
    "create_storage_backend",
]
