"""Error types raised by the Vertex client."""

from typing import Optional


class VertexError(Exception):
    """Base error for Vertex client failures."""


class ConfigurationError(VertexError):
    """Invalid client configuration or option."""


class SessionParseError(VertexError, ValueError):
    """A session blob could not be parsed into cookie tokens."""


class TransportError(VertexError):
    """No response was obtained from the server."""

    def __init__(self, message: str, cause: Optional[BaseException] = None, transient: bool = False) -> None:
        super().__init__(message)
        self.cause = cause
        self.transient = transient


class CancelledError(TransportError):
    """The caller cancelled the call before a response arrived."""

    def __init__(self, message: str = "Request cancelled") -> None:
        super().__init__(message, transient=False)


class HTTPError(VertexError):
    """The server answered with a non-2xx status."""

    def __init__(self, status: int, reason: str = "", body: bytes = b"") -> None:
        super().__init__(f"HTTP {status} {reason}".rstrip())
        self.status = status
        self.reason = reason
        self.body = body


class MalformedResponseError(VertexError):
    """A 2xx response whose body is not a valid envelope or data shape."""


class APIError(VertexError):
    """The envelope reported success=false."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(VertexError):
    """No valid session could be established."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause
