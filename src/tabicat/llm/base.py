from abc import ABC, abstractmethod
from typing import Any

from .models import ChatMessage, StreamingResponse


class LLMProvider(ABC):
    """Abstract base class for model server providers.

    A provider owns the connection to one kind of server and translates
    between its wire format and tabicat's types. Streaming replies come back
    as plain text fragments; HTTP failures surface as RequestError and
    connection failures as TransportError.

    Providers can be used as async context managers:
        async with create_llm_provider("ollama") as provider:
            stream = await provider.chat_completion_stream(messages, model="llama3")
    """

    @abstractmethod
    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        model: str,
        **kwargs: Any
    ) -> StreamingResponse:
        """Start a streaming chat request.

        Args:
            messages: System and user messages, in order
            model: Model name on the server
            **kwargs: Extra request fields passed through to the server

        Returns:
            StreamingResponse yielding assistant text fragments; token usage
            is on ``.usage`` once iteration finishes

        Raises:
            RequestError: The server answered with a non-success status
            TransportError: The connection failed
        """

    @abstractmethod
    async def list_models(self, timeout: float) -> Any:
        """Fetch the raw model listing from the server.

        Args:
            timeout: Seconds before the request is abandoned

        Returns:
            Decoded JSON payload of the listing endpoint
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the HTTP client."""

    async def __aenter__(self) -> "LLMProvider":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
