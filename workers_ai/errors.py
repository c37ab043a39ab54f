"""
Error hierarchy for the Workers AI client.

Every error carries the HTTP status (when one was received), the raw
response body and, best-effort, the parsed JSON body for diagnostics.
"""

from typing import Any, Optional


class WorkersAIError(Exception):
    """Base class for all Workers AI client errors."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
        json: Any = None,
    ):
        super().__init__(message)
        self.status = status
        self.body = body
        self.json = json


class ConfigurationError(WorkersAIError):
    """Base URL is malformed or does not point at a supported host."""
    pass


class TransportFailure(WorkersAIError):
    """The remote service could not be reached."""
    pass


class ProtocolFailure(WorkersAIError):
    """Non-success status, or a response that does not match the expected shape."""
    pass


class StreamFailure(WorkersAIError):
    """The event stream broke after it was opened."""
    pass


class Cancelled(WorkersAIError):
    """The caller aborted the request."""
    pass
