"""Data models for the storage layer."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StorageScope(str, Enum):
    """Storage scopes offered by the host.

    LOCAL is large and immediately consistent on this device.
    SYNCED is small and eventually consistent across devices.
    """

    LOCAL = "local"
    SYNCED = "sync"


# Keys in the local scope
CONVERSATION_KEY = "conversation"
PENDING_PROMPT_KEY = "pendingPrompt"

# Keys in the synced scope
TEMPLATES_KEY = "templates"
PROFILES_KEY = "profiles"
CURRENT_PROFILE_KEY = "currentProfileId"


class StorageChange(BaseModel):
    """A single key change delivered to storage change listeners."""

    model_config = ConfigDict(frozen=True)

    old_value: Any = Field(default=None, description="Value before the change (None if absent)")
    new_value: Any = Field(default=None, description="Value after the change (None if removed)")
