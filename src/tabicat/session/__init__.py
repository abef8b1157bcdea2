"""Session engine: state ownership, event bridging and page context."""

from .bridge import CONTEXT_SELECTION, EventBridge, MessageBus, RuntimeMessage, SelectionRelay
from .engine import SessionEngine
from .page_context import PageContext, PageContextProvider, append_page_context, format_page_context
from .state import Exchange, SessionState

__all__ = [
    "CONTEXT_SELECTION",
    "EventBridge",
    "Exchange",
    "MessageBus",
    "PageContext",
    "PageContextProvider",
    "RuntimeMessage",
    "SelectionRelay",
    "SessionEngine",
    "SessionState",
    "append_page_context",
    "format_page_context",
]
