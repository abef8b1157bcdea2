"""Exception taxonomy for the session engine.

Validation errors are raised before any I/O happens. Request and transport
errors are user-visible: the session turns them into the assistant reply.
Persistence and state-corruption errors are operator-visible only and are
logged where they occur.
"""

__all__ = [
    "EmptyPromptError",
    "NoModelSelectedError",
    "PersistenceError",
    "RequestError",
    "SessionBusyError",
    "StateCorruptionError",
    "StorageQuotaError",
    "TabiCatError",
    "TransportError",
    "ValidationError",
]


class TabiCatError(Exception):
    """Base class for all tabicat errors."""


class ValidationError(TabiCatError):
    """Rejected input; no state was mutated and no request was sent."""


class EmptyPromptError(ValidationError):
    """Raised when the submitted prompt is blank."""

    def __init__(self) -> None:
        super().__init__("Prompt is empty")


class NoModelSelectedError(ValidationError):
    """Raised when no profile with a model is available for a request."""

    def __init__(self) -> None:
        super().__init__("No model selected")


class SessionBusyError(ValidationError):
    """Raised when a submission arrives while a request is in flight."""

    def __init__(self) -> None:
        super().__init__("A request is already in progress")


class RequestError(TabiCatError):
    """The model server answered with a non-success HTTP status."""

    def __init__(self, status_code: int, reason: str) -> None:
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"Ollama request failed: {status_code} {reason}".rstrip())


class TransportError(TabiCatError):
    """The connection to the model server failed (timeout, reset, refused)."""


class PersistenceError(TabiCatError):
    """A storage read or write failed."""


class StorageQuotaError(PersistenceError):
    """A write to the synced scope would exceed its quota."""


class StateCorruptionError(TabiCatError):
    """Persisted data did not have the expected shape."""
