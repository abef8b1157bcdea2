"""Pytest configuration and shared fixtures."""
import asyncio
import json
from typing import Any

import httpx
import pytest

from tabicat.llm import ChatClient, ConnectionMonitor, OllamaProvider
from tabicat.session import SessionEngine
from tabicat.storage import PersistenceGateway, create_storage_backend


def ndjson(*records: dict[str, Any]) -> list[str]:
    """Encode records as newline-terminated stream lines."""
    return [json.dumps(record) + "\n" for record in records]


def assistant(content: str, done: bool = False, **extra: Any) -> dict[str, Any]:
    """Build a chat stream record carrying assistant text."""
    return {"message": {"role": "assistant", "content": content}, "done": done, **extra}


class FakeOllama:
    """Scriptable stand-in for the Ollama HTTP API.

    Chat bodies are served chunk by chunk exactly as listed in
    ``chat_chunks``, so tests control where lines get split.
    """

    def __init__(self) -> None:
        self.chat_chunks: list[str] = []
        self.chat_status = 200
        self.chat_error: Exception | None = None
        self.chat_gate: asyncio.Event | None = None
        self.tags: Any = {"models": []}
        self.tags_status = 200
        self.tags_delay = 0.0
        self.connect_error: Exception | None = None
        self.requests: list[httpx.Request] = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.connect_error is not None:
            raise self.connect_error

        if request.url.path == "/api/chat":
            if self.chat_status != 200:
                return httpx.Response(self.chat_status, text="model not found")
            return httpx.Response(200, content=self._chat_body())

        if request.url.path == "/api/tags":
            if self.tags_delay:
                await asyncio.sleep(self.tags_delay)
            return httpx.Response(self.tags_status, json=self.tags)

        return httpx.Response(404)

    async def _chat_body(self):
        if self.chat_gate is not None:
            await self.chat_gate.wait()
        for chunk in self.chat_chunks:
            yield chunk.encode("utf-8")
        if self.chat_error is not None:
            raise self.chat_error

    @property
    def chat_payloads(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.url.path == "/api/chat"]


@pytest.fixture
def fake_ollama():
    """Return a fake model server with no models installed."""
    return FakeOllama()


@pytest.fixture
async def provider(fake_ollama):
    """Return an Ollama provider wired to the fake server."""
    provider = OllamaProvider(
        base_url="http://ollama.test",
        transport=httpx.MockTransport(fake_ollama.handler),
    )
    yield provider
    await provider.close()


@pytest.fixture
def memory_backend():
    """Return a connected in-memory storage backend."""
    return create_storage_backend("memory")


@pytest.fixture
def gateway(memory_backend):
    """Return a persistence gateway over the in-memory backend."""
    return PersistenceGateway(memory_backend)


@pytest.fixture
async def engine(gateway, provider):
    """Return a session engine that has not been started yet."""
    engine = SessionEngine(gateway, ChatClient(provider), ConnectionMonitor(provider, timeout=1.0))
    yield engine
    await engine.close()
