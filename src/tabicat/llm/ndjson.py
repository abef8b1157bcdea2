"""Incremental decoding of newline-delimited JSON chat streams."""

import json
from typing import Any


class NDJSONLineBuffer:
    """Reassembles complete lines from arbitrarily split text chunks.

    A line is only released once its terminating newline has arrived; the
    unterminated tail is carried into the next ``feed`` call.
    """

    def __init__(self) -> None:
        self._remainder = ""

    def feed(self, text: str) -> list[str]:
        """Add a chunk and return the non-blank lines it completed."""
        *lines, self._remainder = (self._remainder + text).split("\n")
        return [line for line in lines if line.strip()]

    def flush(self) -> list[str]:
        """Return the unterminated tail once the stream has ended."""
        tail, self._remainder = self._remainder, ""
        return [tail] if tail.strip() else []

    @property
    def pending(self) -> str:
        return self._remainder


def parse_record(line: str) -> dict[str, Any]:
    """Parse one stream line.

    Raises:
        ValueError: If the line is not a JSON object
    """
    record = json.loads(line)
    if not isinstance(record, dict):
        raise ValueError(f"Expected a JSON object, got {type(record).__name__}")
    return record


def assistant_fragment(record: dict[str, Any]) -> str | None:
    """Return the assistant text carried by a record, or None if it has none."""
    message = record.get("message")
    if not isinstance(message, dict) or message.get("role") != "assistant":
        return None
    content = message.get("content")
    return content if isinstance(content, str) else ""


def usage_from_record(record: dict[str, Any]) -> dict[str, int] | None:
    """Extract token counts from the final ``done`` record."""
    if not record.get("done"):
        return None
    prompt_tokens = record.get("prompt_eval_count")
    completion_tokens = record.get("eval_count")
    if not isinstance(prompt_tokens, int) and not isinstance(completion_tokens, int):
        return None
    prompt_tokens = prompt_tokens if isinstance(prompt_tokens, int) else 0
    completion_tokens = completion_tokens if isinstance(completion_tokens, int) else 0
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": prompt_tokens + completion_tokens,
    }
