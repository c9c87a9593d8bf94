"""Event-to-sequence adapter for the inbound side of a live connection.

WHY: The connection reports inbound traffic as events (message, error,
close). The receiver loop wants a plain async iterator it can pull from.
Messages that arrive while nobody is waiting must be kept, in order,
or audio frames are lost.

HOW: MessageStream attaches one handler per event. Each handler pushes
an entry onto an unbounded asyncio.Queue. __anext__ pops entries in
arrival order: a message is returned, an error is raised, a close is
raised as ConnectionLost. fail() injects an error from outside the
connection. Any terminal entry, an explicit close(), or a
cancelled fetch detaches the handlers.

RULES:
- FIFO: buffered messages are delivered before waiting for new events
- Single consumer: a second concurrent fetch raises RuntimeError
- After termination the handlers are detached and iteration ends
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Tuple

from fishwire.exceptions import ConnectionLost
from fishwire.live.transport import LiveConnection

logger = logging.getLogger(__name__)

_MESSAGE = "message"
_ERROR = "error"
_CLOSE = "close"


class MessageStream:
    """Async iterator over the raw inbound messages of one connection."""

    def __init__(self, connection: LiveConnection) -> None:
        self._connection = connection
        self._queue: asyncio.Queue[Tuple[str, Any]] = asyncio.Queue()
        self._fetching = False
        self._terminated = False
        connection.add_handler(_MESSAGE, self._on_message)
        connection.add_handler(_ERROR, self._on_error)
        connection.add_handler(_CLOSE, self._on_close)

    # Event handlers ----------------------------------------------------

    def _on_message(self, data: Any) -> None:
        self._queue.put_nowait((_MESSAGE, data))

    def _on_error(self, error: BaseException) -> None:
        self._queue.put_nowait((_ERROR, error))

    def _on_close(self) -> None:
        self._queue.put_nowait((_CLOSE, None))

    # Iteration ----------------------------------------------------------

    def __aiter__(self) -> MessageStream:
        return self

    async def __anext__(self) -> Any:
        if self._terminated:
            raise StopAsyncIteration
        if self._fetching:
            raise RuntimeError("MessageStream supports a single consumer")

        self._fetching = True
        try:
            kind, payload = await self._queue.get()
        except BaseException:
            self.close()
            raise
        finally:
            self._fetching = False

        if kind == _MESSAGE:
            return payload
        self.close()
        if kind == _ERROR:
            raise payload
        raise ConnectionLost("Connection closed before the session finished")

    def fail(self, error: BaseException) -> None:
        """Fail the consumer with error once the buffered messages are read."""
        if not self._terminated:
            self._on_error(error)

    @property
    def buffered(self) -> int:
        """Number of entries received but not yet consumed."""
        return self._queue.qsize()

    def close(self) -> None:
        """Detach from the connection; pending and future fetches end."""
        if self._terminated:
            return
        self._terminated = True
        self._connection.remove_handler(_MESSAGE, self._on_message)
        self._connection.remove_handler(_ERROR, self._on_error)
        self._connection.remove_handler(_CLOSE, self._on_close)
        logger.debug("Message stream detached (%d unread)", self._queue.qsize())
