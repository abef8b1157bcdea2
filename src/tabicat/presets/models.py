"""Data models for chat presets: profiles and prompt templates.

Stored field names follow the synced storage format (``systemPrompt``), so
models are dumped with ``by_alias=True`` when persisted.
"""

import logging
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

AUTO_PROFILE_PREFIX = "auto:"


class Profile(BaseModel):
    """A model + system prompt preset the user can chat with."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1, description="Unique profile identifier")
    label: str = Field(description="Display name")
    model: str = Field(description="Model name on the server")
    system_prompt: str = Field(
        default="",
        alias="systemPrompt",
        description="Optional system message sent before the prompt",
    )

    @property
    def is_auto(self) -> bool:
        """Whether the profile was derived from the live model listing."""
        return self.id.startswith(AUTO_PROFILE_PREFIX)

    @property
    def display_name(self) -> str:
        return f"{self.label} · {self.model}"

    def to_storage(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class Template(BaseModel):
    """A reusable prompt the user can drop into the composer."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Unique template identifier")
    title: str = Field(description="Display title")
    content: str = Field(description="Prompt text")

    def to_storage(self) -> dict[str, str]:
        return self.model_dump()


def _parse_entries(raw: Any, model_cls: type[BaseModel]) -> list[Any] | None:
    if not isinstance(raw, list):
        return None

    entries = []
    seen: set[str] = set()
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            entry = model_cls.model_validate(item)
        except pydantic.ValidationError:
            continue
        if entry.id in seen:
            continue
        seen.add(entry.id)
        entries.append(entry)

    dropped = len(raw) - len(entries)
    if dropped:
        logger.debug("Dropped %d malformed %s entries", dropped, model_cls.__name__)
    return entries


def parse_templates(raw: Any) -> list[Template] | None:
    """Decode stored templates.

    Returns None when the stored value is not a list at all, so callers can
    fall back to defaults. Malformed or duplicate entries are dropped.
    """
    return _parse_entries(raw, Template)


def parse_profiles(raw: Any) -> list[Profile] | None:
    """Decode stored user-declared profiles.

    Returns None when the stored value is not a list. Malformed entries,
    duplicates, and entries squatting on the auto-derived id namespace are
    dropped.
    """
    profiles = _parse_entries(raw, Profile)
    if profiles is None:
        return None
    return [profile for profile in profiles if not profile.is_auto]
