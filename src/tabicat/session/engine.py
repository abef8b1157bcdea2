"""Conversational session engine.

Owns the session state and is the only place it changes. Each mutation
updates memory first and then dispatches the matching persistence write
without waiting for it, so the interactive path never blocks on storage.
"""

import asyncio
import logging
from collections.abc import Callable

from ..config import ASSISTANT_PLACEHOLDER, ERROR_PREFIX
from ..conversation import ConversationStore, Role
from ..errors import (
    EmptyPromptError,
    NoModelSelectedError,
    RequestError,
    SessionBusyError,
    TransportError,
    ValidationError,
)
from ..llm import ChatClient, ConnectionMonitor, ProbeResult, ProgressCallback
from ..presets import (
    DEFAULT_PROFILES,
    DEFAULT_TEMPLATES,
    Profile,
    Template,
    find_profile,
    is_auto_profile_id,
    new_profile_id,
    new_template_id,
    parse_profiles,
    parse_templates,
    reconcile_selection,
    validate_user_profile_id,
)
from ..storage import (
    CURRENT_PROFILE_KEY,
    PENDING_PROMPT_KEY,
    PROFILES_KEY,
    TEMPLATES_KEY,
    PersistenceGateway,
    StorageScope,
)
from .page_context import PageContextProvider, append_page_context
from .state import Exchange, SessionState

logger = logging.getLogger(__name__)

ComposerListener = Callable[[str], None]


class SessionEngine:
    """Coordinates conversation, presets, the model server and storage.

    Example:
        engine = SessionEngine(gateway, ChatClient(provider), ConnectionMonitor(provider))
        await engine.start()
        exchange = await engine.submit("Hello")
        await engine.close()
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        chat_client: ChatClient,
        monitor: ConnectionMonitor,
        page_context_provider: PageContextProvider | None = None,
    ):
        self._gateway = gateway
        self._chat = chat_client
        self._monitor = monitor
        self._page_context = page_context_provider
        self._state = SessionState(conversation=ConversationStore(gateway))
        self._composer_listeners: list[ComposerListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def conversation(self) -> ConversationStore:
        return self._state.conversation

    @property
    def templates(self) -> list[Template]:
        return list(self._state.templates)

    @property
    def profiles(self) -> list[Profile]:
        """User-declared profiles."""
        return list(self._state.profiles)

    @property
    def effective_profiles(self) -> list[Profile]:
        return self._state.effective_profiles

    @property
    def current_profile(self) -> Profile | None:
        return self._state.current_profile

    @property
    def composer_text(self) -> str:
        return self._state.composer_text

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, probe: bool = True, consume_pending_prompt: bool = True) -> None:
        """Load persisted state, consume any pending prompt, then reconcile.

        Malformed stored values fall back to defaults without failing.

        Args:
            probe: Query the model server and reconcile the selection. When
                False the stored selection is left untouched until the next
                refresh_models call.
            consume_pending_prompt: Move a waiting pending prompt into the
                composer (and clear the slot)
        """
        local, synced, _ = await asyncio.gather(
            self._gateway.load(StorageScope.LOCAL, [PENDING_PROMPT_KEY]),
            self._gateway.load(StorageScope.SYNCED, [TEMPLATES_KEY, PROFILES_KEY, CURRENT_PROFILE_KEY]),
            self._state.conversation.load(),
        )

        templates = parse_templates(synced.get(TEMPLATES_KEY))
        self._state.templates = list(DEFAULT_TEMPLATES) if templates is None else templates

        profiles = parse_profiles(synced.get(PROFILES_KEY))
        self._state.profiles = list(DEFAULT_PROFILES) if profiles is None else profiles

        stored_id = synced.get(CURRENT_PROFILE_KEY)
        self._state.current_profile_id = stored_id if isinstance(stored_id, str) and stored_id else None

        pending = local.get(PENDING_PROMPT_KEY)
        if consume_pending_prompt and isinstance(pending, str):
            self.offer_pending_prompt(pending)

        if probe:
            await self.refresh_models()

        logger.info(
            "Session started: %d messages, %d templates, %d profiles",
            len(self._state.conversation),
            len(self._state.templates),
            len(self._state.profiles),
        )

    async def close(self) -> None:
        """Wait for outstanding persistence writes."""
        await self._gateway.flush()

    # ------------------------------------------------------------------
    # Models and profile selection
    # ------------------------------------------------------------------

    async def refresh_models(self, timeout: float | None = None) -> ProbeResult:
        """Probe the model server and reconcile the selection against it."""
        result = await self._monitor.probe(timeout)
        self._state.models = list(result.models)
        self.reconcile()
        return result

    def reconcile(self) -> str | None:
        """Make sure the selection points at an effective profile.

        Persists the selection when it had to change.
        """
        selected, changed = reconcile_selection(
            self._state.effective_profiles, self._state.current_profile_id
        )
        if changed:
            logger.info(
                "Profile selection changed from %s to %s",
                self._state.current_profile_id,
                selected,
            )
            self._state.current_profile_id = selected
            self._save_profiles()
        return selected

    def select_profile(self, profile_id: str) -> Profile:
        """Select an effective profile by id."""
        if self._state.busy:
            raise SessionBusyError()
        profile = find_profile(self._state.effective_profiles, profile_id)
        if profile is None:
            raise ValidationError(f"Unknown profile: {profile_id}")
        self._state.current_profile_id = profile.id
        self._save_profiles()
        return profile

    def add_profile(
        self,
        label: str,
        model: str,
        system_prompt: str = "",
        profile_id: str | None = None,
    ) -> Profile:
        """Declare a new profile and select it."""
        label = label.strip()
        model = model.strip()
        if not label:
            raise ValidationError("Profile label must not be empty")
        if not model:
            raise ValidationError("Profile model must not be empty")

        profile_id = profile_id or new_profile_id()
        validate_user_profile_id(profile_id, self._state.profiles)

        profile = Profile(id=profile_id, label=label, model=model, system_prompt=system_prompt)
        self._state.profiles = [*self._state.profiles, profile]
        self._state.current_profile_id = profile.id
        self._save_profiles()
        return profile

    def remove_profile(self, profile_id: str) -> bool:
        """Delete a user-declared profile.

        Returns:
            False if no user-declared profile has this id

        Raises:
            ValidationError: For auto-derived profiles, or when this is the
                last user-declared profile
        """
        if is_auto_profile_id(profile_id):
            raise ValidationError("Profiles derived from server models cannot be removed")
        if find_profile(self._state.profiles, profile_id) is None:
            return False
        if len(self._state.profiles) <= 1:
            raise ValidationError("At least one profile is required.")

        self._state.profiles = [p for p in self._state.profiles if p.id != profile_id]
        selected, _ = reconcile_selection(
            self._state.effective_profiles, self._state.current_profile_id
        )
        self._state.current_profile_id = selected
        self._save_profiles()
        return True

    def _save_profiles(self) -> None:
        self._gateway.schedule_save(
            StorageScope.SYNCED,
            {
                PROFILES_KEY: [profile.to_storage() for profile in self._state.profiles],
                CURRENT_PROFILE_KEY: self._state.current_profile_id,
            },
        )

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def add_template(self, title: str, content: str) -> Template:
        title = title.strip()
        if not title or not content.strip():
            raise ValidationError("Template title and content must not be empty")
        template = Template(id=new_template_id(), title=title, content=content)
        self._state.templates = [*self._state.templates, template]
        self._save_templates()
        return template

    def remove_template(self, template_id: str) -> bool:
        remaining = [t for t in self._state.templates if t.id != template_id]
        if len(remaining) == len(self._state.templates):
            return False
        self._state.templates = remaining
        self._save_templates()
        return True

    def apply_template(self, template_id: str) -> Template | None:
        """Copy a template's content into the composer."""
        template = next((t for t in self._state.templates if t.id == template_id), None)
        if template is not None:
            self.set_composer_text(template.content)
        return template

    def _save_templates(self) -> None:
        self._gateway.schedule_save(
            StorageScope.SYNCED,
            {TEMPLATES_KEY: [template.to_storage() for template in self._state.templates]},
        )

    # ------------------------------------------------------------------
    # Composer and external input
    # ------------------------------------------------------------------

    def add_composer_listener(self, listener: ComposerListener) -> None:
        self._composer_listeners.append(listener)

    def set_composer_text(self, text: str) -> None:
        self._state.composer_text = text
        for listener in list(self._composer_listeners):
            try:
                listener(text)
            except Exception:
                logger.exception("Composer listener failed")

    def offer_pending_prompt(self, text: str | None) -> bool:
        """Seed the composer from text captured outside the session.

        Every delivery path (startup read, storage change, runtime message)
        ends up here. Clearing the pending slot is idempotent, so duplicate
        deliveries are harmless.

        Returns:
            True if the composer was populated
        """
        if not isinstance(text, str) or not text:
            return False
        self.set_composer_text(text)
        self._gateway.schedule_remove(StorageScope.LOCAL, PENDING_PROMPT_KEY)
        return True

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    async def submit(
        self,
        prompt: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Exchange:
        """Send a prompt (the composer text by default) to the current profile.

        The user message and an assistant placeholder are appended before
        the request goes out; the placeholder is then replaced as the reply
        streams in. Request and transport failures are written into the
        assistant message after any text that already streamed, and are
        reported on the returned Exchange.

        Args:
            prompt: Text to send; the composer text when omitted
            on_progress: Also called with the accumulated reply while streaming

        Raises:
            SessionBusyError: If a request is already in flight
            EmptyPromptError: If the prompt is blank
            NoModelSelectedError: If no profile with a model is selected
        """
        if self._state.busy:
            raise SessionBusyError()

        text = (self._state.composer_text if prompt is None else prompt).strip()
        if not text:
            raise EmptyPromptError()

        profile = self._state.current_profile
        if profile is None or not profile.model.strip():
            raise NoModelSelectedError()

        conversation = self._state.conversation
        self._state.busy = True
        try:
            # No await before the composer is cleared.
            user_index = conversation.append(Role.USER, text)
            assistant_index = conversation.append(Role.ASSISTANT, ASSISTANT_PLACEHOLDER)
            self.set_composer_text("")
            outgoing = await self._with_page_context(text)

            streamed = ""

            def on_fragment(accumulated: str) -> None:
                nonlocal streamed
                streamed = accumulated
                conversation.replace(assistant_index, accumulated)
                if on_progress is not None:
                    on_progress(accumulated)

            try:
                reply = await self._chat.send(
                    outgoing,
                    profile,
                    on_progress=on_fragment,
                )
            except (RequestError, TransportError) as e:
                logger.error("Chat request failed: %s", e)
                message = f"{ERROR_PREFIX}{e}"
                if streamed:
                    message = f"{streamed}\n\n{message}"
                conversation.replace(assistant_index, message)
                return Exchange(user_index, assistant_index, message, error=e)

            conversation.replace(assistant_index, reply)
            return Exchange(user_index, assistant_index, reply)
        finally:
            self._state.busy = False
            conversation.flush()

    async def _with_page_context(self, prompt: str) -> str:
        if self._page_context is None:
            return prompt
        try:
            context = await self._page_context()
        except Exception as e:
            logger.warning("Could not capture page context: %s", e)
            return prompt
        return append_page_context(prompt, context)

    def clear_history(self) -> None:
        self._state.conversation.reset()
