"""Unit tests for the llm module."""
import json
import logging

import httpx
import pytest
from hypothesis import given
from hypothesis import strategies as st

from conftest import assistant, ndjson
from tabicat.errors import EmptyPromptError, NoModelSelectedError, RequestError, TransportError
from tabicat.llm import (
    ChatClient,
    ConnectionMonitor,
    LLMProvider,
    OllamaProvider,
    StreamingResponse,
    build_messages,
    create_llm_provider,
    extract_model_names,
)
from tabicat.llm.ndjson import NDJSONLineBuffer, assistant_fragment, parse_record, usage_from_record
from tabicat.presets import Profile

GENERAL = Profile(id="profile-general", label="General", model="llama3", system_prompt="Be helpful.")


class ScriptedProvider(LLMProvider):
    """Provider that streams fixed fragments and records when the stream is closed."""

    def __init__(self, fragments):
        self.fragments = fragments
        self.delivered = []
        self.closed = False

    async def chat_completion_stream(self, messages, model, **kwargs):
        async def fragments():
            try:
                for fragment in self.fragments:
                    self.delivered.append(fragment)
                    yield fragment
            finally:
                self.closed = True

        return StreamingResponse(fragments())

    async def list_models(self, timeout):
        return {"models": []}

    async def close(self):
        pass


class TestLLMProvider:
    """Tests for LLMProvider interface."""

    def test_provider_is_abstract(self):
        """Test that LLMProvider cannot be instantiated directly."""
        with pytest.raises(TypeError):
            LLMProvider()  # type: ignore


class TestNDJSONLineBuffer:
    """Tests for reassembling stream lines."""

    def test_complete_lines(self):
        """Test that terminated lines are released immediately."""
        buffer = NDJSONLineBuffer()

        assert buffer.feed('{"a":1}\n{"b":2}\n') == ['{"a":1}', '{"b":2}']
        assert buffer.pending == ""

    def test_partial_line_carried_over(self):
        """Test that an unterminated tail waits for the next chunk."""
        buffer = NDJSONLineBuffer()

        assert buffer.feed('{"a":') == []
        assert buffer.pending == '{"a":'
        assert buffer.feed('1}\n') == ['{"a":1}']

    def test_blank_lines_skipped(self):
        """Test that empty and whitespace-only lines are ignored."""
        assert NDJSONLineBuffer().feed('\n  \n{"a":1}\n\n') == ['{"a":1}']

    def test_flush_returns_tail(self):
        """Test that the unterminated tail is released at end of stream."""
        buffer = NDJSONLineBuffer()
        buffer.feed('{"a":1}\n{"b":2}')

        assert buffer.flush() == ['{"b":2}']
        assert buffer.flush() == []

    @given(st.data())
    def test_split_anywhere(self, data):
        """Property test: the same lines come out however the stream is split."""
        lines = data.draw(st.lists(
            st.dictionaries(st.text(max_size=5), st.text(max_size=10), max_size=3).map(json.dumps),
            min_size=1,
            max_size=8,
        ))
        stream = "".join(line + "\n" for line in lines)
        cuts = sorted(data.draw(st.lists(st.integers(0, len(stream)), max_size=6)))

        buffer = NDJSONLineBuffer()
        received = []
        start = 0
        for cut in cuts + [len(stream)]:
            received.extend(buffer.feed(stream[start:cut]))
            start = cut
        received.extend(buffer.flush())

        assert received == lines


class TestRecordDecoding:
    """Tests for decoding individual stream records."""

    def test_parse_record_rejects_non_objects(self):
        """Test that non-object JSON and invalid JSON raise ValueError."""
        with pytest.raises(ValueError):
            parse_record("[1, 2]")
        with pytest.raises(ValueError):
            parse_record("not json")

    def test_assistant_fragment(self):
        """Test extraction of assistant text."""
        assert assistant_fragment(assistant("Hi")) == "Hi"
        assert assistant_fragment({"message": {"role": "user", "content": "Hi"}}) is None
        assert assistant_fragment({"done": True}) is None
        assert assistant_fragment({"message": {"role": "assistant", "content": 42}}) == ""

    def test_usage_from_done_record(self):
        """Test token counts from the final record."""
        record = assistant("", done=True, prompt_eval_count=26, eval_count=298)

        assert usage_from_record(record) == {
            "prompt_tokens": 26,
            "completion_tokens": 298,
            "total_tokens": 324,
        }
        assert usage_from_record(assistant("Hi")) is None
        assert usage_from_record({"done": True}) is None


class TestBuildMessages:
    """Tests for request message construction."""

    def test_system_prompt_first(self):
        """Test that a system prompt precedes the user prompt."""
        messages = build_messages("Hello", GENERAL)

        assert [(m.role, m.content) for m in messages] == [
            ("system", "Be helpful."),
            ("user", "Hello"),
        ]

    def test_no_system_prompt(self):
        """Test that an empty system prompt is omitted."""
        messages = build_messages("Hello", Profile(id="p", label="P", model="llama3"))

        assert [m.role for m in messages] == ["user"]


class TestChatClient:
    """Tests for streaming chat through the Ollama provider."""

    @pytest.mark.asyncio
    async def test_progress_is_cumulative(self, provider, fake_ollama):
        """Test that progress reports the growing reply in order."""
        fake_ollama.chat_chunks = ndjson(assistant("Hi"), assistant(" there"), assistant("", done=True))
        progress = []

        reply = await ChatClient(provider).send("Hello", GENERAL, on_progress=progress.append)

        assert reply == "Hi there"
        assert progress == ["Hi", "Hi there"]

    @pytest.mark.asyncio
    async def test_request_payload(self, provider, fake_ollama):
        """Test the body posted to /api/chat."""
        fake_ollama.chat_chunks = ndjson(assistant("ok", done=True))

        await ChatClient(provider).send("Hello", GENERAL)

        assert fake_ollama.chat_payloads == [{
            "model": "llama3",
            "messages": [
                {"role": "system", "content": "Be helpful."},
                {"role": "user", "content": "Hello"},
            ],
            "stream": True,
        }]

    @pytest.mark.asyncio
    async def test_record_split_across_chunks(self, provider, fake_ollama):
        """Test that a record split mid-line yields exactly one fragment."""
        fake_ollama.chat_chunks = ['{"message":{"role":"assistant","con', 'tent":"X"}}\n']
        progress = []

        reply = await ChatClient(provider).send("Hello", GENERAL, on_progress=progress.append)

        assert reply == "X"
        assert progress == ["X"]

    @pytest.mark.asyncio
    async def test_malformed_line_skipped(self, provider, fake_ollama, caplog):
        """Test that an unparseable line is logged and the stream continues."""
        fake_ollama.chat_chunks = [
            *ndjson(assistant("A")),
            "this is not json\n",
            *ndjson(assistant("B", done=True)),
        ]

        with caplog.at_level(logging.WARNING):
            reply = await ChatClient(provider).send("Hello", GENERAL)

        assert reply == "AB"
        assert "Failed to parse Ollama chunk" in caplog.text

    @pytest.mark.asyncio
    async def test_unterminated_last_line(self, provider, fake_ollama):
        """Test that a final record without a newline is still used."""
        fake_ollama.chat_chunks = [ndjson(assistant("A"))[0], json.dumps(assistant("B", done=True))]

        assert await ChatClient(provider).send("Hello", GENERAL) == "AB"

    @pytest.mark.asyncio
    async def test_non_assistant_and_empty_records_ignored(self, provider, fake_ollama):
        """Test that only non-empty assistant content produces progress."""
        fake_ollama.chat_chunks = ndjson(
            {"message": {"role": "user", "content": "echo"}},
            assistant(""),
            assistant("Z"),
            {"done": True},
        )
        progress = []

        reply = await ChatClient(provider).send("Hello", GENERAL, on_progress=progress.append)

        assert reply == "Z"
        assert progress == ["Z"]

    @pytest.mark.asyncio
    async def test_error_record_logged(self, provider, fake_ollama, caplog):
        """Test that an error reported inside the stream is logged."""
        fake_ollama.chat_chunks = ndjson(assistant("A"), {"error": "model crashed"})

        with caplog.at_level(logging.WARNING):
            reply = await ChatClient(provider).send("Hello", GENERAL)

        assert reply == "A"
        assert "model crashed" in caplog.text

    @pytest.mark.asyncio
    async def test_usage_captured(self, provider, fake_ollama):
        """Test that token usage from the final record is kept."""
        fake_ollama.chat_chunks = ndjson(
            assistant("Hi"),
            assistant("", done=True, prompt_eval_count=10, eval_count=2),
        )
        client = ChatClient(provider)

        await client.send("Hello", GENERAL)

        assert client.last_usage == {"prompt_tokens": 10, "completion_tokens": 2, "total_tokens": 12}

    @pytest.mark.asyncio
    async def test_empty_prompt_sends_nothing(self, provider, fake_ollama):
        """Test that a blank prompt is rejected before any request."""
        with pytest.raises(EmptyPromptError):
            await ChatClient(provider).send("   ", GENERAL)

        assert fake_ollama.requests == []

    @pytest.mark.asyncio
    async def test_missing_model_sends_nothing(self, provider, fake_ollama):
        """Test that no request goes out without a model."""
        client = ChatClient(provider)

        with pytest.raises(NoModelSelectedError):
            await client.send("Hello", None)
        with pytest.raises(NoModelSelectedError):
            await client.send("Hello", Profile(id="p", label="P", model="  "))

        assert fake_ollama.requests == []

    @pytest.mark.asyncio
    async def test_http_error_status(self, provider, fake_ollama):
        """Test that a non-success status becomes a RequestError."""
        fake_ollama.chat_status = 404
        progress = []

        with pytest.raises(RequestError) as exc_info:
            await ChatClient(provider).send("Hello", GENERAL, on_progress=progress.append)

        assert exc_info.value.status_code == 404
        assert "404" in str(exc_info.value)
        assert progress == []

    @pytest.mark.asyncio
    async def test_connection_refused(self, provider, fake_ollama):
        """Test that connection failures become TransportError."""
        fake_ollama.connect_error = httpx.ConnectError("Connection refused")

        with pytest.raises(TransportError):
            await ChatClient(provider).send("Hello", GENERAL)

    @pytest.mark.asyncio
    async def test_failure_mid_stream_keeps_progress(self, provider, fake_ollama):
        """Test that text streamed before a transport failure was reported."""
        fake_ollama.chat_chunks = ndjson(assistant("A"))
        fake_ollama.chat_error = httpx.ReadError("Connection reset by peer")
        progress = []

        with pytest.raises(TransportError):
            await ChatClient(provider).send("Hello", GENERAL, on_progress=progress.append)

        assert progress == ["A"]

    @pytest.mark.asyncio
    async def test_stream_closed_when_progress_callback_raises(self):
        """Test that a failing progress callback still releases the stream."""
        provider = ScriptedProvider(["A", "B", "C"])

        def render(accumulated):
            raise RuntimeError("render failed")

        with pytest.raises(RuntimeError, match="render failed"):
            await ChatClient(provider).send("Hello", GENERAL, on_progress=render)

        assert provider.closed
        assert provider.delivered == ["A"]


class TestStreamingResponse:
    """Tests for the streaming wrapper."""

    @pytest.mark.asyncio
    async def test_iterates_and_holds_usage(self):
        """Test iteration and usage storage."""

        async def fragments():
            yield "a"
            yield "b"

        stream = StreamingResponse(fragments())
        stream.set_usage({"total_tokens": 3})

        assert [f async for f in stream] == ["a", "b"]
        assert stream.usage == {"total_tokens": 3}


class TestExtractModelNames:
    """Tests for reading model listings."""

    def test_tags_shape(self):
        """Test the /api/tags response shape."""
        payload = {"models": [{"name": "llama3:latest", "size": 1}, {"name": "mistral"}]}

        assert extract_model_names(payload) == ["llama3:latest", "mistral"]

    def test_bare_list_shape(self):
        """Test a bare list of strings or objects."""
        assert extract_model_names(["a", {"name": "b"}, {"model": "c"}, 7, "a"]) == ["a", "b"]

    def test_unexpected_shapes(self):
        """Test that anything else yields no models."""
        assert extract_model_names({"models": "llama3"}) == []
        assert extract_model_names(None) == []


class TestConnectionMonitor:
    """Tests for the reachability probe."""

    @pytest.mark.asyncio
    async def test_reachable(self, provider, fake_ollama):
        """Test a successful probe."""
        fake_ollama.tags = {"models": [{"name": "llama3"}, {"name": "mistral"}]}
        monitor = ConnectionMonitor(provider)

        result = await monitor.probe()

        assert result.reachable
        assert result.models == ["llama3", "mistral"]
        assert monitor.last_result == result

    @pytest.mark.asyncio
    async def test_error_status_is_unreachable(self, provider, fake_ollama):
        """Test that a non-success listing counts as unreachable."""
        fake_ollama.tags_status = 500

        result = await ConnectionMonitor(provider).probe()

        assert not result.reachable
        assert result.models == []

    @pytest.mark.asyncio
    async def test_connection_refused_is_unreachable(self, provider, fake_ollama):
        """Test that connection failures do not raise."""
        fake_ollama.connect_error = httpx.ConnectError("Connection refused")

        result = await ConnectionMonitor(provider).probe()

        assert not result.reachable

    @pytest.mark.asyncio
    async def test_timeout_is_unreachable(self, provider, fake_ollama, caplog):
        """Test that a slow server is reported unreachable within the timeout."""
        fake_ollama.tags_delay = 5.0
        fake_ollama.tags = {"models": [{"name": "llama3"}]}

        with caplog.at_level(logging.WARNING):
            result = await ConnectionMonitor(provider, timeout=5.0).probe(timeout=0.05)

        assert not result.reachable
        assert result.models == []
        assert "did not answer" in caplog.text


class TestCreateLLMProvider:
    """Tests for the provider factory."""

    @pytest.mark.asyncio
    async def test_create_ollama(self):
        """Test creating the Ollama provider."""
        provider = create_llm_provider("Ollama", base_url="http://example.test:11434/")
        try:
            assert isinstance(provider, OllamaProvider)
            assert provider.base_url == "http://example.test:11434"
        finally:
            await provider.close()

    def test_unsupported_provider(self):
        """Test that unknown providers are rejected."""
        with pytest.raises(ValueError, match="Unsupported provider"):
            create_llm_provider("openai")
