from collections.abc import AsyncIterator
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StreamingResponse:
    """Wrapper for streaming LLM responses that captures usage info.

    Acts as an async iterator for text fragments while storing token usage
    that becomes available at the end of the stream.

    Usage:
        stream = await provider.chat_completion_stream(messages, model="llama3")
        async for fragment in stream:
            print(fragment, end="")
        # After iteration, usage is available
        print(stream.usage)  # {"prompt_tokens": 26, "completion_tokens": 298, ...}
    """

    def __init__(self, async_iter: AsyncIterator[str]):
        """Initialize with an async iterator of text fragments.

        Args:
            async_iter: Async iterator yielding text fragments
        """
        self._iter = async_iter
        self._usage: dict[str, Any] | None = None

    @property
    def usage(self) -> dict[str, Any] | None:
        """Get token usage info (available after iteration completes)."""
        return self._usage

    def set_usage(self, usage: dict[str, Any]) -> None:
        """Set token usage info (called by provider at end of stream)."""
        self._usage = usage

    def __aiter__(self) -> "StreamingResponse":
        """Return self as async iterator."""
        return self

    async def __anext__(self) -> str:
        """Get next fragment from the underlying iterator."""
        return await self._iter.__anext__()

    async def aclose(self) -> None:
        """Stop the stream early and release the connection."""
        aclose = getattr(self._iter, "aclose", None)
        if aclose is not None:
            await aclose()


class ChatMessage(BaseModel):
    """Represents a chat message sent to the model server."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description="Role of the message sender: 'user', 'assistant', or 'system'")
    content: str = Field(description="Content of the message")


class ProbeResult(BaseModel):
    """Outcome of a connectivity probe against the model server."""

    model_config = ConfigDict(frozen=True)

    reachable: bool = Field(description="Whether the model listing could be read")
    models: list[str] = Field(
        default_factory=list,
        description="Distinct model names in the order the server listed them",
    )
