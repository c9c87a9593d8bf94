"""Shared test fixtures for the fishwire test suite.

WHY: The live session tests need a WebSocket peer that behaves like the
real endpoint (answers after the stop frame, closes, drops) without any
network. Centralizing the fake here keeps every live test on the same
behavior.

HOW: FakeWebSocket mimics the parts of a websockets ClientConnection the
transport uses (send, close, async iteration, transport.abort). It
decodes outbound frames into FakeWebSocket.sent and, when the stop frame
arrives, queues the scripted replies. FakeConnector replaces
websockets' connect() and records every socket it hands out.

RULES:
- Replies are raw wire bytes, or the CLOSE / DROP markers
- CLOSE ends the inbound stream cleanly; DROP raises ConnectionClosedError
- close_calls counts close requests received by each socket
- Sockets are created inside the running event loop
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional
from unittest.mock import MagicMock, patch

import msgpack
import pytest
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

from fishwire.live import codec
from fishwire.live.codec import AudioFrame, FinishFrame, FinishReason

CLOSE = object()
DROP = object()

BASE_URL = "https://api.example.test"
API_KEY = "test-key"


def audio(size: int, fill: bytes = b"\x01") -> bytes:
    """Wire bytes of an audio frame carrying size bytes."""
    return codec.encode(AudioFrame(audio=fill * size))


def finish(reason: str = "stop") -> bytes:
    return codec.encode(FinishFrame(reason=FinishReason(reason)))


def raw(message: Any) -> bytes:
    """Pack an arbitrary map, for frames the codec would never produce."""
    return msgpack.packb(message, use_bin_type=True)


class FakeWebSocket:
    """In-memory stand-in for a websockets client connection."""

    def __init__(
        self,
        replies: Optional[List[Any]] = None,
        hang_on_close: bool = False,
    ) -> None:
        self.sent: List[dict] = []
        self.close_calls = 0
        self.replies = list(replies or [])
        self.hang_on_close = hang_on_close
        self.transport = MagicMock()
        self._inbound: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def push(self, message: Any) -> None:
        self._inbound.put_nowait(message)

    async def send(self, data: bytes) -> None:
        if self._closed:
            raise ConnectionClosedOK(None, None)
        frame = msgpack.unpackb(data, raw=False)
        self.sent.append(frame)
        if frame["event"] == "stop":
            for reply in self.replies:
                self.push(reply)

    async def close(self) -> None:
        self.close_calls += 1
        if self.hang_on_close:
            await asyncio.Event().wait()
        self._closed = True
        self.push(CLOSE)

    def __aiter__(self) -> FakeWebSocket:
        return self

    async def __anext__(self) -> Any:
        item = await self._inbound.get()
        if item is CLOSE:
            self._closed = True
            raise StopAsyncIteration
        if item is DROP:
            self._closed = True
            raise ConnectionClosedError(None, None)
        return item

    def events(self) -> List[str]:
        return [frame["event"] for frame in self.sent]


class FakeConnector:
    """Replacement for websockets.asyncio.client.connect."""

    def __init__(self) -> None:
        self.replies: List[Any] = []
        self.delay = 0.0
        self.error: Optional[BaseException] = None
        self.hang_on_close = False
        self.calls: List[tuple] = []
        self.sockets: List[FakeWebSocket] = []

    def __call__(self, url: str, **kwargs: Any):
        self.calls.append((url, kwargs))
        return self._open()

    async def _open(self) -> FakeWebSocket:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        ws = FakeWebSocket(self.replies, hang_on_close=self.hang_on_close)
        self.sockets.append(ws)
        return ws


@pytest.fixture
def fake_connect():
    """Patch the transport's connect() with a FakeConnector."""
    connector = FakeConnector()
    with patch("fishwire.live.transport.connect", new=connector):
        yield connector


@pytest.fixture(autouse=True)
def _api_key(monkeypatch):
    """Provide an API key so clients can be built without a .env file."""
    monkeypatch.setenv("FISH_API_KEY", API_KEY)
