"""Bridges external "selected text" events into the session.

Two delivery paths exist for text captured outside the session: a runtime
message sent by whoever captured the selection, and the storage change on
the pending-prompt slot written just before it. Both end in
``SessionEngine.offer_pending_prompt``, which tolerates duplicates.
"""

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import pydantic
from pydantic import BaseModel, Field

from ..storage import PENDING_PROMPT_KEY, PersistenceGateway, StorageBackend, StorageChange, StorageScope

if TYPE_CHECKING:
    from .engine import SessionEngine

logger = logging.getLogger(__name__)

CONTEXT_SELECTION = "context-selection"

MessageListener = Callable[[dict[str, Any]], Any]


class RuntimeMessage(BaseModel):
    """A message exchanged over the runtime message bus."""

    type: str = Field(description="Message kind, e.g. 'context-selection'")
    text: str = Field(default="", description="Selected text")


class MessageBus:
    """In-process runtime message bus.

    Sending with no listener attached is not an error: the receiving side
    may simply not be open yet.
    """

    def __init__(self) -> None:
        self._listeners: list[MessageListener] = []

    def add_listener(self, listener: MessageListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: MessageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def send_message(self, message: dict[str, Any]) -> int:
        """Deliver ``message`` to every listener.

        Returns:
            Number of listeners that received it
        """
        if not self._listeners:
            logger.debug("No receiver for runtime message %s", message.get("type"))
            return 0

        delivered = 0
        for listener in list(self._listeners):
            try:
                listener(message)
                delivered += 1
            except Exception:
                logger.exception("Runtime message listener failed")
        return delivered


class SelectionRelay:
    """Background side of the "ask about selection" action.

    Stores the selection in the pending-prompt slot first, so a session that
    opens later still finds it, then notifies any open session directly.
    """

    def __init__(self, gateway: PersistenceGateway, bus: MessageBus):
        self._gateway = gateway
        self._bus = bus

    async def capture(self, text: str) -> bool:
        if not text:
            return False
        await self._gateway.save(StorageScope.LOCAL, {PENDING_PROMPT_KEY: text})
        self._bus.send_message(RuntimeMessage(type=CONTEXT_SELECTION, text=text).model_dump())
        return True


class EventBridge:
    """Funnels runtime messages and storage changes into the session engine."""

    def __init__(self, engine: "SessionEngine", bus: MessageBus, backend: StorageBackend):
        self._engine = engine
        self._bus = bus
        self._backend = backend

    def attach(self) -> None:
        self._bus.add_listener(self.handle_message)
        self._backend.add_change_listener(self.handle_storage_change)

    def detach(self) -> None:
        self._bus.remove_listener(self.handle_message)
        self._backend.remove_change_listener(self.handle_storage_change)

    def handle_message(self, message: dict[str, Any]) -> bool:
        try:
            parsed = RuntimeMessage.model_validate(message)
        except pydantic.ValidationError:
            logger.debug("Ignoring malformed runtime message: %r", message)
            return False
        if parsed.type != CONTEXT_SELECTION:
            return False
        return self._engine.offer_pending_prompt(parsed.text)

    def handle_storage_change(self, changes: dict[str, StorageChange], scope: StorageScope) -> bool:
        if scope is not StorageScope.LOCAL:
            return False
        change = changes.get(PENDING_PROMPT_KEY)
        if change is None:
            return False
        return self._engine.offer_pending_prompt(change.new_value)
