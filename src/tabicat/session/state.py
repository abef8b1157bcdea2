"""Session state owned by the session engine."""

from dataclasses import dataclass, field

from ..conversation import ConversationStore
from ..errors import TabiCatError
from ..presets import Profile, Template, compute_effective_profiles, find_profile


@dataclass
class SessionState:
    """Everything the session shows and persists.

    Mutated only through SessionEngine, which also schedules persistence.
    """

    conversation: ConversationStore
    templates: list[Template] = field(default_factory=list)
    profiles: list[Profile] = field(default_factory=list)
    models: list[str] = field(default_factory=list)
    current_profile_id: str | None = None
    composer_text: str = ""
    busy: bool = False

    @property
    def effective_profiles(self) -> list[Profile]:
        """Auto-derived profiles followed by the user-declared ones."""
        return compute_effective_profiles(self.models, self.profiles)

    @property
    def current_profile(self) -> Profile | None:
        return find_profile(self.effective_profiles, self.current_profile_id)

    @property
    def can_submit(self) -> bool:
        return not self.busy and self.current_profile is not None


@dataclass
class Exchange:
    """Outcome of one submitted prompt."""

    user_index: int
    assistant_index: int
    reply: str
    error: TabiCatError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
