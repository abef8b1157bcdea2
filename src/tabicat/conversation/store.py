"""Index-addressed conversation log backed by the persistence gateway."""

import logging

from ..storage import CONVERSATION_KEY, PersistenceGateway, StorageScope
from .models import Message, Role, parse_messages

logger = logging.getLogger(__name__)


class ConversationStore:
    """Ordered message log with stable indices.

    Messages are only ever appended, or have their content replaced in
    place; indices returned by ``append`` stay valid until the log is
    reset or reloaded. Every mutation schedules a fire-and-forget write of
    the whole log to the local scope.
    """

    def __init__(self, gateway: PersistenceGateway):
        self._gateway = gateway
        self._messages: list[Message] = []

    @property
    def messages(self) -> list[Message]:
        """Snapshot of the current log."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]

    async def load(self) -> list[Message]:
        """Replace the in-memory log with the persisted one."""
        stored = await self._gateway.load(StorageScope.LOCAL, [CONVERSATION_KEY])
        self._messages = parse_messages(stored.get(CONVERSATION_KEY))
        logger.debug("Loaded %d conversation messages", len(self._messages))
        return self.messages

    def append(self, role: Role | str, content: str) -> int:
        """Append a message and return its index."""
        self._messages.append(Message(role=Role(role), content=content))
        self.flush()
        return len(self._messages) - 1

    def replace(self, index: int, content: str) -> bool:
        """Replace the content of the message at ``index``.

        Returns:
            False without touching anything if the index is out of range
            (for example because the log was reset meanwhile)
        """
        if not 0 <= index < len(self._messages):
            logger.debug("Ignoring update of message %d; log has %d entries", index, len(self._messages))
            return False
        current = self._messages[index]
        if current.content != content:
            self._messages[index] = current.model_copy(update={"content": content})
            self.flush()
        return True

    def reset(self) -> None:
        """Clear the log."""
        self._messages = []
        self.flush()

    def flush(self) -> None:
        """Schedule a write of the whole log."""
        self._gateway.schedule_save(
            StorageScope.LOCAL,
            {CONVERSATION_KEY: [message.to_storage() for message in self._messages]},
        )
