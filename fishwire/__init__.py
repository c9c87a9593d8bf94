"""fishwire: client for a remote speech synthesis and recognition API.

WHY: Applications want synthesized audio and transcripts without
hand-building payloads, tracking sockets, or mapping status codes.

HOW: Two clients share one set of request/response types.
Session (fishwire.api) covers the request/response HTTP endpoints.
WebSocketSession (fishwire.live) covers bidirectional live synthesis.

RULES:
- All raised errors derive from fishwire.exceptions.FishError
- Both clients are async context managers
"""

from fishwire.api.client import Session
from fishwire.exceptions import (
    AuthenticationError,
    ConnectionLost,
    ConnectionTimeout,
    FishError,
    HttpCodeError,
    NotFoundError,
    PaymentRequiredError,
    ProtocolError,
    RemoteSynthesisError,
    WebSocketError,
)
from fishwire.live.session import WebSocketSession
from fishwire.schemas import ASRRequest, Prosody, ReferenceAudio, TTSRequest

__version__ = "0.1.0"

__all__ = [
    "ASRRequest",
    "AuthenticationError",
    "ConnectionLost",
    "ConnectionTimeout",
    "FishError",
    "HttpCodeError",
    "NotFoundError",
    "PaymentRequiredError",
    "Prosody",
    "ProtocolError",
    "ReferenceAudio",
    "RemoteSynthesisError",
    "Session",
    "TTSRequest",
    "WebSocketError",
    "WebSocketSession",
]
