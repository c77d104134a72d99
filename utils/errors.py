"""
Exception types for chat requests and sessions.
"""
from typing import Optional


class AskAIError(Exception):
    """Base class for errors reported to the caller."""


class ConfigurationError(AskAIError):
    """Endpoint is missing its URL or key. Raised before any network call."""


class TransportError(AskAIError):
    """Non-2xx status, missing body, or a network failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AbortedByUser(AskAIError):
    """The caller cancelled the request mid-stream."""


class SessionBusyError(AskAIError):
    """A turn was started while the previous stream is still being read."""


class SessionNotFoundError(AskAIError, KeyError):
    """No live session with the given id."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class MalformedRecordWarning(UserWarning):
    """A single SSE record could not be parsed. Logged and skipped."""
