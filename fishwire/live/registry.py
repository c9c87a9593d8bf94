"""Registry of the live connections owned by one WebSocketSession.

WHY: A client may run several streaming sessions at once. Closing the
client must close every socket they still hold, even when a session's
consumer has stopped iterating without cleaning up.

HOW: A set of LiveConnection handles guarded by a threading.Lock.
close_all() snapshots the set, closes every connection concurrently
under a grace period, aborts the ones that do not finish in time, and
unregisters each one.

RULES:
- One registry per client instance, created in the client's constructor
- register/unregister are idempotent and safe under concurrent callers
- close_all() never hangs longer than the grace period per connection
- After close_all() every snapshotted connection is closed and unregistered
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import List, Set

from fishwire.config import FISH_CLOSE_TIMEOUT
from fishwire.live.transport import LiveConnection

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Thread-safe set of live connections with bulk shutdown."""

    def __init__(self, close_timeout: float = FISH_CLOSE_TIMEOUT) -> None:
        self._connections: Set[LiveConnection] = set()
        self._lock = threading.Lock()
        self.close_timeout = close_timeout

    def register(self, connection: LiveConnection) -> None:
        with self._lock:
            self._connections.add(connection)

    def unregister(self, connection: LiveConnection) -> None:
        with self._lock:
            self._connections.discard(connection)

    def connections(self) -> List[LiveConnection]:
        """Return a snapshot of the registered connections."""
        with self._lock:
            return list(self._connections)

    def __contains__(self, connection: object) -> bool:
        with self._lock:
            return connection in self._connections

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    async def close_all(self) -> None:
        """Close every registered connection and wait for each to finish.

        RULES:
        - Each connection gets close_timeout seconds, then is aborted
        - A connection that fails while closing is aborted and logged
        - Safe to call repeatedly and with nothing registered
        """
        connections = self.connections()
        if not connections:
            return
        logger.info("Closing %d live connection(s)", len(connections))
        await asyncio.gather(*(self._close_one(c) for c in connections))

    async def _close_one(self, connection: LiveConnection) -> None:
        try:
            await asyncio.wait_for(connection.close(), self.close_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Connection to %s did not close within %.1fs",
                connection.url or "<unknown>",
                self.close_timeout,
            )
            connection.abort()
        except Exception:
            logger.warning(
                "Error while closing connection to %s",
                connection.url or "<unknown>",
                exc_info=True,
            )
            connection.abort()
        finally:
            self.unregister(connection)
