"""Bidirectional live synthesis: text fragments in, audio chunks out.

WHY: Callers that produce text incrementally (an LLM token stream, a
reader of a long document) want audio back while they are still
producing text. The live endpoint accepts text frames over one
WebSocket and answers with audio frames on the same socket.

HOW: WebSocketSession is the client object. It owns a
ConnectionRegistry and hands out one StreamingSession per tts() call.
StreamingSession.run() is an async generator:
  open       handshake under a deadline, register the connection
  sender     a task that writes start, one text frame per fragment, stop
  receiver   the generator body, decoding inbound frames and yielding audio
  teardown   detach the adapter, close the socket, unregister, join sender
Teardown runs on every exit path: finish, failure, or the caller
stopping early.

RULES:
- Outbound order is exactly start, text*, stop
- Inbound order is audio*, finish; nothing is read after finish
- The sender never outlives the session
- Receiver errors win; a sender error surfaces only after a clean finish
- If the text source raises, stop is still sent, then the error is kept
- A sender that fails before stop fails the receiver with its error
- Only the handshake has a timeout; streaming is bounded by the peers
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from typing import Dict, Optional, Union

from fishwire.config import FISH_CLOSE_TIMEOUT, FISH_OPEN_TIMEOUT, live_url, load_api_key
from fishwire.exceptions import ProtocolError, RemoteSynthesisError
from fishwire.live import codec
from fishwire.live.channel import MessageStream
from fishwire.live.codec import AudioFrame, FinishFrame, FinishReason
from fishwire.live.registry import ConnectionRegistry
from fishwire.live.transport import LiveConnection
from fishwire.schemas import TTSRequest

logger = logging.getLogger(__name__)

TextSource = Union[AsyncIterable[str], Iterable[str]]


class SessionState(str, enum.Enum):
    IDLE = "idle"
    OPENING = "opening"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


async def _iter_text(source: TextSource) -> AsyncIterator[str]:
    if isinstance(source, AsyncIterable):
        async for text in source:
            yield text
    else:
        for text in source:
            yield text


async def _join(task: asyncio.Task) -> Optional[BaseException]:
    """Wait for a finished or cancelled task and return its error, if any."""
    try:
        await task
    except asyncio.CancelledError:
        if not task.cancelled():
            raise
    except Exception as exc:
        return exc
    return None


class StreamingSession:
    """One live synthesis call, from handshake to teardown.

    WHY: Keeps the per-call state (connection, sender task, lifecycle
    state) apart from the long-lived client so concurrent calls never
    share anything but the registry.

    RULES:
    - run() may be called once per instance
    - state moves idle -> opening -> streaming -> completed|failed|cancelled
    - connection is registered only while it is open or closing
    """

    def __init__(
        self,
        url: str,
        headers: Dict[str, str],
        registry: ConnectionRegistry,
        open_timeout: float = FISH_OPEN_TIMEOUT,
    ) -> None:
        self.url = url
        self.state = SessionState.IDLE
        self.connection: Optional[LiveConnection] = None
        self._headers = headers
        self._registry = registry
        self._open_timeout = open_timeout
        self._stop_sent = False

    async def run(
        self, request: TTSRequest, text_stream: TextSource
    ) -> AsyncIterator[bytes]:
        """Stream text_stream to the server and yield audio chunks.

        RULES:
        - Raises ConnectionTimeout / ConnectionLost if the handshake fails
        - Raises ConnectionLost if the socket drops before a finish frame
        - Raises ProtocolError on a malformed or unexpected inbound frame
        - Raises RemoteSynthesisError on finish(error)
        - Re-raises a text source error after a clean finish
        """
        if self.state is not SessionState.IDLE:
            raise RuntimeError("A StreamingSession can only run once")

        self.state = SessionState.OPENING
        try:
            connection = await LiveConnection.open(
                self.url, self._headers, self._open_timeout
            )
        except BaseException as exc:
            self._settle(exc)
            raise
        self.connection = connection
        self._registry.register(connection)

        messages = MessageStream(connection)
        connection.start()
        self.state = SessionState.STREAMING
        sender = asyncio.create_task(self._send(connection, request, text_stream))
        sender.add_done_callback(lambda task: self._on_sender_done(task, messages))

        outcome: Optional[BaseException] = None
        chunks = 0
        try:
            async for raw in messages:
                frame = codec.decode(raw)
                if isinstance(frame, AudioFrame):
                    chunks += 1
                    yield frame.audio
                elif isinstance(frame, FinishFrame):
                    if frame.reason is FinishReason.ERROR:
                        raise RemoteSynthesisError(
                            f"Server ended the session with an error after "
                            f"{chunks} audio chunk(s)"
                        )
                    break
                else:
                    raise ProtocolError(f"Unexpected {frame.kind!r} frame from server")
        except BaseException as exc:
            outcome = exc
            raise
        finally:
            sender_error = await self._teardown(connection, messages, sender)
            self._settle(outcome)
            logger.debug(
                "Session %s after %d audio chunk(s)", self.state.value, chunks
            )

        if sender_error is not None:
            self.state = SessionState.FAILED
            raise sender_error

    async def _send(
        self,
        connection: LiveConnection,
        request: TTSRequest,
        text_stream: TextSource,
    ) -> None:
        await connection.send(codec.encode(codec.StartFrame(request=request)))

        source = _iter_text(text_stream)
        sent = 0
        while True:
            try:
                text = await anext(source)
            except StopAsyncIteration:
                break
            except Exception:
                logger.debug("Text source failed after %d fragment(s)", sent)
                await connection.send(codec.encode(codec.StopFrame()))
                self._stop_sent = True
                raise
            await connection.send(codec.encode(codec.TextFrame(text=text)))
            sent += 1

        await connection.send(codec.encode(codec.StopFrame()))
        self._stop_sent = True
        logger.debug("Sent %d text fragment(s) and stop", sent)

    def _on_sender_done(self, task: asyncio.Task, messages: MessageStream) -> None:
        # No stop frame on the wire means no finish frame will come back.
        if task.cancelled() or self._stop_sent:
            return
        error = task.exception()
        if error is not None:
            logger.debug("Sender failed before stop: %r", error)
            messages.fail(error)

    async def _teardown(
        self,
        connection: LiveConnection,
        messages: MessageStream,
        sender: asyncio.Task,
    ) -> Optional[BaseException]:
        messages.close()
        if not sender.done():
            sender.cancel()
        try:
            await connection.close()
        finally:
            self._registry.unregister(connection)
        error = await _join(sender)
        if error is not None:
            logger.debug("Sender ended with %r", error)
        return error

    def _settle(self, outcome: Optional[BaseException]) -> None:
        if outcome is None:
            self.state = SessionState.COMPLETED
        elif isinstance(outcome, (asyncio.CancelledError, GeneratorExit)):
            self.state = SessionState.CANCELLED
        else:
            self.state = SessionState.FAILED


class WebSocketSession:
    """Client for the live synthesis endpoint.

    WHY: Owns the connections of every live call made through it, so one
    close() releases them all.

    HOW: Builds the endpoint URL and bearer header once. tts() creates a
    StreamingSession per call. close() delegates to the registry.

    RULES:
    - Use as: async with WebSocketSession() as ws: ...
    - api_key defaults to load_api_key() from .env
    - base_url is the HTTP base; the ws/wss URL is derived from it
    - close() is safe with no session active and may be called repeatedly
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        open_timeout: float = FISH_OPEN_TIMEOUT,
        close_timeout: float = FISH_CLOSE_TIMEOUT,
    ) -> None:
        self._api_key = api_key or load_api_key("live")
        self.url = live_url(base_url)
        self.open_timeout = open_timeout
        self.registry = ConnectionRegistry(close_timeout=close_timeout)

    async def __aenter__(self) -> WebSocketSession:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.close()

    def session(self) -> StreamingSession:
        """Create an idle StreamingSession bound to this client."""
        return StreamingSession(
            self.url,
            {"Authorization": f"Bearer {self._api_key}"},
            self.registry,
            open_timeout=self.open_timeout,
        )

    def tts(
        self, request: TTSRequest, text_stream: TextSource
    ) -> AsyncIterator[bytes]:
        """Synthesize text_stream live; iterate the result for audio bytes."""
        return self.session().run(request, text_stream)

    async def close(self) -> None:
        await self.registry.close_all()
