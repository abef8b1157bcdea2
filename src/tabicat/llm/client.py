"""Chat client that turns a prompt and a profile into one assistant reply."""

import logging
from collections.abc import Callable
from typing import Any

from ..errors import EmptyPromptError, NoModelSelectedError
from ..presets import Profile
from .base import LLMProvider
from .models import ChatMessage

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


def build_messages(prompt: str, profile: Profile) -> list[ChatMessage]:
    """Build the request messages: optional system prompt, then the prompt."""
    messages = []
    if profile.system_prompt:
        messages.append(ChatMessage(role="system", content=profile.system_prompt))
    messages.append(ChatMessage(role="user", content=prompt))
    return messages


class ChatClient:
    """Sends a single-turn chat request and accumulates the streamed reply.

    The reply grows only by appending fragments; ``on_progress`` receives
    the whole accumulated text after every fragment, in stream order. There
    is no retry: a failed request propagates to the caller, and whatever was
    already reported through ``on_progress`` is all the caller gets.
    """

    def __init__(self, provider: LLMProvider):
        self._provider = provider
        self._last_usage: dict[str, Any] | None = None

    @property
    def provider(self) -> LLMProvider:
        return self._provider

    @property
    def last_usage(self) -> dict[str, Any] | None:
        """Token usage reported by the most recent completed request."""
        return self._last_usage

    async def send(
        self,
        prompt: str,
        profile: Profile | None,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Send ``prompt`` using ``profile`` and return the full reply.

        Raises:
            EmptyPromptError: If the prompt is blank (no request is sent)
            NoModelSelectedError: If there is no profile or its model is
                empty (no request is sent)
            RequestError: If the server answers with a non-success status
            TransportError: If the connection fails
        """
        if not prompt.strip():
            raise EmptyPromptError()
        if profile is None or not profile.model.strip():
            raise NoModelSelectedError()

        self._last_usage = None
        logger.info("Sending chat request to model %s", profile.model)

        stream = await self._provider.chat_completion_stream(
            build_messages(prompt, profile), model=profile.model
        )
        accumulated = ""
        try:
            async for fragment in stream:
                accumulated += fragment
                if on_progress is not None:
                    on_progress(accumulated)
        finally:
            await stream.aclose()

        self._last_usage = stream.usage
        logger.debug("Chat reply complete: %d characters, usage=%s", len(accumulated), stream.usage)
        return accumulated
