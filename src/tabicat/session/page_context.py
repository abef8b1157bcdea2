"""Page context appended to outgoing prompts.

Extracting text from a page is done by a collaborator; this module only
shapes what it returns into a bounded suffix for the prompt.
"""

from collections.abc import Awaitable, Callable

from pydantic import BaseModel, Field

from ..config import PAGE_CONTEXT_CHAR_BUDGET, PAGE_CONTEXT_HEADER


class PageContext(BaseModel):
    """Text captured from the page the user is looking at."""

    title: str | None = Field(default=None, description="Page title")
    url: str | None = Field(default=None, description="Page URL")
    body_text: str | None = Field(default=None, description="Visible body text")


PageContextProvider = Callable[[], Awaitable[PageContext | None]]


def format_page_context(context: PageContext, budget: int = PAGE_CONTEXT_CHAR_BUDGET) -> str:
    """Join the available fields and truncate to ``budget`` characters."""
    parts = []
    if context.title and context.title.strip():
        parts.append(f"Title: {context.title.strip()}")
    if context.url and context.url.strip():
        parts.append(f"URL: {context.url.strip()}")
    if context.body_text and context.body_text.strip():
        parts.append(context.body_text.strip())
    return "\n".join(parts)[:budget]


def append_page_context(
    prompt: str,
    context: PageContext | None,
    budget: int = PAGE_CONTEXT_CHAR_BUDGET,
) -> str:
    """Append the formatted context to ``prompt`` when there is any."""
    if context is None:
        return prompt
    text = format_page_context(context, budget)
    if not text:
        return prompt
    return f"{prompt}\n\n{PAGE_CONTEXT_HEADER}\n{text}"
