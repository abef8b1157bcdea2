import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx

from ...config import CHAT_CONNECT_TIMEOUT_SECONDS, CHAT_TIMEOUT_SECONDS, DEFAULT_OLLAMA_URL
from ...errors import RequestError, TransportError
from ..base import LLMProvider
from ..models import ChatMessage, StreamingResponse
from ..ndjson import NDJSONLineBuffer, assistant_fragment, parse_record, usage_from_record

logger = logging.getLogger(__name__)


class OllamaProvider(LLMProvider):
    """Ollama model server provider over its native HTTP API.

    Hidden design decisions:
    - httpx client initialization and timeouts
    - Line-delimited JSON stream decoding
    - Mapping HTTP and transport failures onto tabicat errors
    """

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_URL,
        chat_timeout: float = CHAT_TIMEOUT_SECONDS,
        **client_kwargs: Any
    ):
        """Initialize Ollama provider.

        Args:
            base_url: Server base URL (default: http://localhost:11434)
            chat_timeout: Read timeout in seconds for chat streams
            **client_kwargs: Additional kwargs for httpx.AsyncClient
        """
        self._base_url = base_url.rstrip("/")
        self._chat_timeout = httpx.Timeout(chat_timeout, connect=CHAT_CONNECT_TIMEOUT_SECONDS)
        self._client = httpx.AsyncClient(base_url=self._base_url, **client_kwargs)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        model: str,
        **kwargs: Any
    ) -> StreamingResponse:
        """Stream a chat completion from ``/api/chat``.

        The HTTP request is issued when iteration starts, so status and
        transport errors surface from the first ``__anext__``.
        """
        payload = {
            "model": model,
            "messages": [{"role": msg.role, "content": msg.content} for msg in messages],
            "stream": True,
            **kwargs,
        }
        response = StreamingResponse(
            self._stream_generator(payload, on_usage=lambda usage: response.set_usage(usage))
        )
        return response

    async def _stream_generator(
        self,
        payload: dict[str, Any],
        on_usage: Callable[[dict[str, int]], None],
    ) -> AsyncIterator[str]:
        """Internal generator that yields assistant fragments and captures usage."""
        buffer = NDJSONLineBuffer()
        try:
            async with self._client.stream(
                "POST", "/api/chat", json=payload, timeout=self._chat_timeout
            ) as resp:
                if not resp.is_success:
                    await resp.aread()
                    raise RequestError(resp.status_code, resp.reason_phrase)

                async for text in resp.aiter_text():
                    for line in buffer.feed(text):
                        fragment = self._decode_line(line, on_usage)
                        if fragment:
                            yield fragment

                for line in buffer.flush():
                    fragment = self._decode_line(line, on_usage)
                    if fragment:
                        yield fragment
        except httpx.RequestError as e:
            raise TransportError(f"{type(e).__name__}: {e}" if str(e) else type(e).__name__) from e

    def _decode_line(
        self,
        line: str,
        on_usage: Callable[[dict[str, int]], None],
    ) -> str | None:
        try:
            record = parse_record(line)
        except ValueError as e:
            logger.warning("Failed to parse Ollama chunk: %s (%r)", e, line[:200])
            return None

        if isinstance(record.get("error"), str):
            logger.warning("Ollama reported an error mid-stream: %s", record["error"])

        usage = usage_from_record(record)
        if usage is not None:
            on_usage(usage)

        return assistant_fragment(record)

    async def list_models(self, timeout: float) -> Any:
        """Fetch ``/api/tags``.

        Raises:
            httpx.HTTPError: On transport failure or non-success status
            ValueError: If the body is not JSON
        """
        resp = await self._client.get("/api/tags", timeout=timeout)
        resp.raise_for_status()
        return resp.json()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
