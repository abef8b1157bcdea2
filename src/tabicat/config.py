"""Configuration constants.

Centralizes magic numbers and configuration values for the session engine.
"""

import logging


class LogLevel:
    """Log level constants with numeric values for comparison.

    Values match the standard logging module so they can be passed
    straight to ``logging.basicConfig``.
    """

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR

    _from_string = {
        "debug": DEBUG,
        "info": INFO,
        "warning": WARNING,
        "error": ERROR,
    }

    @classmethod
    def from_string(cls, level_str: str) -> int:
        """Convert string to log level. Returns WARNING if invalid."""
        return cls._from_string.get(level_str.lower(), cls.WARNING)


# Model server
DEFAULT_OLLAMA_URL = "http://localhost:11434"
CHAT_TIMEOUT_SECONDS = 300.0
CHAT_CONNECT_TIMEOUT_SECONDS = 10.0
PROBE_TIMEOUT_SECONDS = 3.0

# Conversation display
ASSISTANT_PLACEHOLDER = "..."
ERROR_PREFIX = "Error: "

# Page context appended to outgoing prompts
PAGE_CONTEXT_CHAR_BUDGET = 4000
PAGE_CONTEXT_HEADER = "Page context:"

# Synced storage quotas (bytes), matching the host sync-storage limits
SYNC_QUOTA_BYTES = 102400
SYNC_QUOTA_BYTES_PER_ITEM = 8192
