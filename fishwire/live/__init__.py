"""Live (bidirectional WebSocket) synthesis.

WHY: Streaming text in and audio out over one connection needs framing,
buffering, and careful cleanup. This package holds all of it, separate
from the request/response HTTP client.

HOW: codec frames messages, transport wraps the socket, channel turns
socket events into an async iterator, registry tracks open sockets, and
session ties them together behind WebSocketSession.tts().

RULES:
- Callers only need WebSocketSession; the other modules are building blocks
"""

from fishwire.live.registry import ConnectionRegistry
from fishwire.live.session import SessionState, StreamingSession, WebSocketSession

__all__ = ["ConnectionRegistry", "SessionState", "StreamingSession", "WebSocketSession"]
