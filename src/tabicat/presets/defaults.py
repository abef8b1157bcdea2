"""Presets seeded when nothing has been stored yet."""

from .models import Profile, Template

DEFAULT_TEMPLATES: tuple[Template, ...] = (
    Template(
        id="template-summary",
        title="Summarize page",
        content="Summarize the key points from this page in bullet form.",
    ),
    Template(
        id="template-email",
        title="Draft reply",
        content="Draft a professional email reply that is concise and friendly.",
    ),
    Template(
        id="template-ideas",
        title="Brainstorm ideas",
        content="Suggest five creative ideas related to this topic with short explanations.",
    ),
)

DEFAULT_PROFILES: tuple[Profile, ...] = (
    Profile(
        id="profile-general",
        label="General",
        model="llama3",
        system_prompt="You are a helpful assistant.",
    ),
    Profile(
        id="profile-creative",
        label="Creative",
        model="llama3:8b",
        system_prompt="You are a creative brainstorming partner who thinks laterally.",
    ),
)
