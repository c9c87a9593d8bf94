"""Exception hierarchy for the HTTP client and the streaming session.

WHY: Callers need typed exceptions to tell HTTP failures apart from
streaming failures, and to tell a dropped connection apart from a
server-side synthesis error.

HOW: Two branches under FishError. HttpCodeError carries the status code
and is specialised for the statuses callers commonly branch on.
WebSocketError roots the four streaming failure kinds.

RULES:
- Every exception raised on purpose by this package derives from FishError
- Cancellation is never wrapped; asyncio.CancelledError passes through
"""

from __future__ import annotations


class FishError(Exception):
    """Base class for all errors raised by fishwire."""


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


class HttpCodeError(FishError):
    """Raised when the API returns a non-2xx response.

    RULES:
    - Always include status and message
    - message is the JSON "detail" field when present, else the reason phrase
    """

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(f"{status} {message}")


class AuthenticationError(HttpCodeError):
    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(401, message)


class PaymentRequiredError(HttpCodeError):
    def __init__(self, message: str = "Payment required") -> None:
        super().__init__(402, message)


class NotFoundError(HttpCodeError):
    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(404, message)


_STATUS_ERRORS: dict[int, type[HttpCodeError]] = {
    401: AuthenticationError,
    402: PaymentRequiredError,
    404: NotFoundError,
}


def http_error(status: int, message: str) -> HttpCodeError:
    """Build the most specific HttpCodeError for a status code."""
    cls = _STATUS_ERRORS.get(status)
    if cls is None:
        return HttpCodeError(status, message)
    return cls(message)


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


class WebSocketError(FishError):
    """Base class for failures of the bidirectional streaming session."""


class ConnectionTimeout(WebSocketError):
    """The open handshake was not acknowledged within the deadline."""


class ConnectionLost(WebSocketError):
    """The socket failed or closed before the session finished.

    Also raised when the handshake itself is refused or the host is
    unreachable.
    """


class ProtocolError(WebSocketError):
    """An inbound frame was malformed, unknown, or not expected here."""


class RemoteSynthesisError(WebSocketError):
    """The server ended the session with a finish frame of reason "error"."""
