"""
TabiCat: a conversational session engine for locally hosted LLM servers.

Streams chat replies from an Ollama-compatible server, reconciles saved
profiles with the models the server reports, and keeps device-local and
synced state persisted behind the in-memory session.
"""

__version__ = "0.1.0"

from .session import EventBridge, MessageBus, SelectionRelay, SessionEngine
from .storage import PersistenceGateway, StorageScope, create_storage_backend

__all__ = [
    "EventBridge",
    "MessageBus",
    "PersistenceGateway",
    "SelectionRelay",
    "SessionEngine",
    "StorageScope",
    "create_storage_backend",
]
