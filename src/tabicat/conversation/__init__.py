"""Conversation log for tabicat."""

from .models import Message, Role, parse_messages
from .store import ConversationStore

__all__ = [
    "ConversationStore",
    "Message",
    "Role",
    "parse_messages",
]
