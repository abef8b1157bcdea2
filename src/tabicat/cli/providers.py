"""Provider factory functions for CLI.

Centralizes creation of storage, model server and session instances from
environment variables. Hides configuration details from command
implementations.
"""

import contextlib
import logging
import os
from collections.abc import AsyncIterator
from dataclasses import dataclass

from rich.console import Console
from rich.logging import RichHandler

from ..config import DEFAULT_OLLAMA_URL, PROBE_TIMEOUT_SECONDS, LogLevel
from ..llm import ChatClient, ConnectionMonitor, LLMProvider, create_llm_provider
from ..session import EventBridge, MessageBus, SelectionRelay, SessionEngine
from ..storage import PersistenceGateway, StorageBackend, create_storage_backend

# Default console for output
_console = Console()


def configure_logging(level: str | None = None, console: Console | None = None) -> None:
    """Route log records through Rich.

    Environment variables:
        TABICAT_LOG_LEVEL: debug, info, warning or error (default: warning)
    """
    level_name = level or os.getenv("TABICAT_LOG_LEVEL", "warning")
    logging.basicConfig(
        level=LogLevel.from_string(level_name),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console or Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_storage() -> StorageBackend:
    """Create storage backend from environment variables.

    Environment variables:
        TABICAT_STORAGE: Backend type, 'sqlite' or 'memory' (default: sqlite)
        TABICAT_STORAGE_PATH: SQLite database file (default: ~/.tabicat/state.db)
    """
    backend = os.getenv("TABICAT_STORAGE", "sqlite").lower()
    if backend == "sqlite":
        return create_storage_backend(
            "sqlite",
            path=os.getenv("TABICAT_STORAGE_PATH", "~/.tabicat/state.db"),
        )
    return create_storage_backend(backend)


def get_llm() -> LLMProvider:
    """Create the model server provider from environment variables.

    Environment variables:
        TABICAT_OLLAMA_URL: Server base URL (default: http://localhost:11434)
    """
    return create_llm_provider(
        "ollama",
        base_url=os.getenv("TABICAT_OLLAMA_URL", DEFAULT_OLLAMA_URL),
    )


def get_probe_timeout() -> float:
    """Probe timeout in seconds.

    Environment variables:
        TABICAT_PROBE_TIMEOUT: Seconds (default: 3.0)
    """
    raw = os.getenv("TABICAT_PROBE_TIMEOUT")
    if not raw:
        return PROBE_TIMEOUT_SECONDS
    try:
        return float(raw)
    except ValueError:
        _console.print(f"[yellow]Warning: invalid TABICAT_PROBE_TIMEOUT {raw!r}, using default[/yellow]")
        return PROBE_TIMEOUT_SECONDS


@dataclass
class SessionHandle:
    """Everything a command needs to drive an open session."""

    engine: SessionEngine
    gateway: PersistenceGateway
    llm: LLMProvider
    bus: MessageBus
    relay: SelectionRelay


@contextlib.asynccontextmanager
async def open_session(probe: bool = True, interactive: bool = False) -> AsyncIterator[SessionHandle]:
    """Connect storage, start a session and tear everything down afterwards.

    Only interactive sessions take over a pending prompt; other commands
    leave it for the next chat.
    """
    storage = get_storage()
    llm = get_llm()
    await storage.connect()

    gateway = PersistenceGateway(storage)
    engine = SessionEngine(
        gateway,
        ChatClient(llm),
        ConnectionMonitor(llm, timeout=get_probe_timeout()),
    )
    bus = MessageBus()
    bridge = EventBridge(engine, bus, storage)
    bridge.attach()

    try:
        await engine.start(probe=probe, consume_pending_prompt=interactive)
        yield SessionHandle(
            engine=engine,
            gateway=gateway,
            llm=llm,
            bus=bus,
            relay=SelectionRelay(gateway, bus),
        )
    finally:
        bridge.detach()
        await engine.close()
        await llm.close()
        await storage.disconnect()
