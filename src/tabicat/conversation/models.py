"""Data models for the conversation log."""

from enum import Enum
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """A single entry in the conversation log."""

    model_config = ConfigDict(frozen=True)

    role: Role = Field(description="Role of the message sender")
    content: str = Field(description="Content of the message")

    def to_storage(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


def parse_messages(raw: Any) -> list[Message]:
    """Decode a stored conversation, dropping malformed entries.

    Anything that is not a list decodes to an empty conversation.
    """
    if not isinstance(raw, list):
        return []

    messages = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            messages.append(Message.model_validate(item))
        except pydantic.ValidationError:
            continue
    return messages
