"""WebSocket connection handle with message/error/close events.

WHY: The streaming session needs one object per socket that it can
register, close exactly once, and force-release when the peer stops
answering. The inbound side is consumed through event handlers
(message, error, close) so that the MessageStream adapter can buffer it.

HOW: LiveConnection.open() performs the handshake with the websockets
asyncio client under a deadline. start() launches a pump task that
iterates the socket and dispatches each inbound message to the
registered handlers. close() sends a single close request and waits for
the pump to observe the end of the socket; abort() drops the transport
without a handshake.

RULES:
- States move connecting -> open -> closing -> closed, never backwards
- close() sends at most one close request per socket, however often called
- websockets and OS errors leave this module as ConnectionLost
- Handshake timeouts leave this module as ConnectionTimeout
- The "close" event fires exactly once, after any "error" event
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable
from typing import Any, Dict, List, Optional

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from fishwire.exceptions import ConnectionLost, ConnectionTimeout

logger = logging.getLogger(__name__)

EVENTS = ("message", "error", "close")

# Frames of synthesized audio can be large; the default 1 MiB is too tight.
_MAX_MESSAGE_BYTES = 16 * 1024 * 1024


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class LiveConnection:
    """One open WebSocket to the live synthesis endpoint.

    WHY: Wraps the websockets client connection so the rest of the
    package sees a small, testable surface: send(), close(), abort(),
    and event handlers for the inbound direction.

    RULES:
    - Construct through LiveConnection.open(), not directly
    - Call start() only after the inbound handlers are attached
    - Handlers are plain callables; they must not block
    """

    def __init__(self, websocket: Any, url: str = "") -> None:
        self._ws = websocket
        self.url = url
        self.state = ConnectionState.OPEN
        self._handlers: Dict[str, List[Callable[..., None]]] = {
            name: [] for name in EVENTS
        }
        self._pump_task: Optional[asyncio.Task] = None
        self._closed = asyncio.Event()

    @classmethod
    async def open(
        cls,
        url: str,
        headers: Dict[str, str],
        timeout: float,
    ) -> LiveConnection:
        """Perform the WebSocket handshake and return an open connection.

        RULES:
        - Raises ConnectionTimeout when the handshake exceeds timeout seconds
        - Raises ConnectionLost when the host is unreachable or refuses the
          handshake (the HTTP status is included in the message)
        """
        logger.debug("Connecting to %s", url)
        try:
            websocket = await asyncio.wait_for(
                connect(
                    url,
                    additional_headers=headers,
                    open_timeout=None,
                    max_size=_MAX_MESSAGE_BYTES,
                ),
                timeout,
            )
        except asyncio.TimeoutError:
            raise ConnectionTimeout(
                f"Handshake with {url} not acknowledged within {timeout:.1f}s"
            ) from None
        except InvalidStatus as exc:
            raise ConnectionLost(
                f"Handshake with {url} rejected with HTTP "
                f"{exc.response.status_code}"
            ) from exc
        except (OSError, WebSocketException) as exc:
            raise ConnectionLost(f"Could not connect to {url}: {exc}") from exc

        logger.info("Live connection opened to %s", url)
        return cls(websocket, url)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def add_handler(self, event: str, handler: Callable[..., None]) -> None:
        if event not in self._handlers:
            raise ValueError(f"Unknown event {event!r}; expected one of {EVENTS}")
        self._handlers[event].append(handler)

    def remove_handler(self, event: str, handler: Callable[..., None]) -> None:
        try:
            self._handlers[event].remove(handler)
        except (KeyError, ValueError):
            pass

    def handler_count(self) -> int:
        return sum(len(handlers) for handlers in self._handlers.values())

    def _emit(self, event: str, *args: Any) -> None:
        for handler in list(self._handlers[event]):
            handler(*args)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin dispatching inbound messages to the handlers."""
        if self._pump_task is None:
            self._pump_task = asyncio.create_task(self._pump())

    async def _pump(self) -> None:
        try:
            async for message in self._ws:
                self._emit("message", message)
        except (ConnectionClosed, OSError) as exc:
            if self.state is ConnectionState.OPEN:
                self._emit("error", ConnectionLost(f"Connection lost: {exc}"))
        finally:
            self._mark_closed()

    def _mark_closed(self) -> None:
        if self._closed.is_set():
            return
        self.state = ConnectionState.CLOSED
        self._closed.set()
        logger.info("Live connection to %s closed", self.url or "<unknown>")
        self._emit("close")

    async def send(self, data: bytes) -> None:
        if self.state is not ConnectionState.OPEN:
            raise ConnectionLost(f"Cannot send on a {self.state.value} connection")
        try:
            await self._ws.send(data)
        except ConnectionClosed as exc:
            raise ConnectionLost(f"Connection lost while sending: {exc}") from exc

    async def close(self) -> None:
        """Request a close and wait until the socket is closed.

        RULES:
        - Only the first call on an open connection sends a close request
        - Later or concurrent calls wait for the same outcome
        - Returns immediately when already closed
        """
        if self.state is ConnectionState.OPEN:
            self.state = ConnectionState.CLOSING
            await self._ws.close()
            if self._pump_task is None:
                self._mark_closed()
        await self._closed.wait()

    def abort(self) -> None:
        """Drop the underlying transport without a closing handshake."""
        if self._closed.is_set():
            return
        logger.warning("Aborting live connection to %s", self.url or "<unknown>")
        self.state = ConnectionState.CLOSING
        transport = getattr(self._ws, "transport", None)
        if transport is not None:
            transport.abort()
        if self._pump_task is not None:
            self._pump_task.cancel()
        self._mark_closed()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()
