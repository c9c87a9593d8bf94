"""MessagePack codec for the frames of the live synthesis protocol.

WHY: Every application message on the live connection is one binary
WebSocket message holding a MessagePack map tagged by its "event" key.
The session code works with typed frames, never with raw maps.

HOW: Five frozen dataclasses form a closed union (Frame). encode() renders
a frame to its wire map and packs it. decode() unpacks, checks the tag
and the payload shape, and builds the matching dataclass.

RULES:
- The "event" tag is mandatory; unknown tags are ProtocolError, never ignored
- decode() is atomic: it returns a frame or raises ProtocolError
- encode() is deterministic for equal frames
- Tags and payload shapes are fixed; adding one needs a protocol version step
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Union

import msgpack

from fishwire.exceptions import ProtocolError
from fishwire.schemas import TTSRequest


class FinishReason(str, enum.Enum):
    STOP = "stop"
    ERROR = "error"


@dataclass(frozen=True)
class StartFrame:
    request: TTSRequest = field(default_factory=TTSRequest)
    kind = "start"


@dataclass(frozen=True)
class TextFrame:
    text: str
    kind = "text"


@dataclass(frozen=True)
class StopFrame:
    kind = "stop"


@dataclass(frozen=True)
class AudioFrame:
    audio: bytes
    kind = "audio"


@dataclass(frozen=True)
class FinishFrame:
    reason: FinishReason = FinishReason.STOP
    kind = "finish"


Frame = Union[StartFrame, TextFrame, StopFrame, AudioFrame, FinishFrame]


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _to_wire(frame: Frame) -> Dict[str, Any]:
    if isinstance(frame, StartFrame):
        return {"event": "start", "request": frame.request.to_dict()}
    if isinstance(frame, TextFrame):
        return {"event": "text", "text": frame.text}
    if isinstance(frame, StopFrame):
        return {"event": "stop"}
    if isinstance(frame, AudioFrame):
        return {"event": "audio", "audio": frame.audio}
    if isinstance(frame, FinishFrame):
        return {"event": "finish", "reason": frame.reason.value}
    raise TypeError(f"Not a frame: {frame!r}")


def encode(frame: Frame) -> bytes:
    """Pack a frame into one binary wire message."""
    return msgpack.packb(_to_wire(frame), use_bin_type=True)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _field(data: dict, name: str, expected: type, tag: str) -> Any:
    if name not in data:
        raise ProtocolError(f"{tag!r} frame is missing field {name!r}")
    value = data[name]
    if not isinstance(value, expected):
        raise ProtocolError(
            f"{tag!r} frame field {name!r} must be {expected.__name__}, "
            f"got {type(value).__name__}"
        )
    return value


def _decode_start(data: dict) -> StartFrame:
    request = _field(data, "request", dict, "start")
    try:
        return StartFrame(request=TTSRequest.from_dict(request))
    except (KeyError, TypeError) as exc:
        raise ProtocolError(f"'start' frame carries an invalid request: {exc}") from exc


def _decode_text(data: dict) -> TextFrame:
    return TextFrame(text=_field(data, "text", str, "text"))


def _decode_stop(data: dict) -> StopFrame:
    return StopFrame()


def _decode_audio(data: dict) -> AudioFrame:
    return AudioFrame(audio=_field(data, "audio", bytes, "audio"))


def _decode_finish(data: dict) -> FinishFrame:
    reason = _field(data, "reason", str, "finish")
    try:
        return FinishFrame(reason=FinishReason(reason))
    except ValueError:
        raise ProtocolError(f"Unknown finish reason: {reason!r}") from None


_DECODERS: Dict[str, Callable[[dict], Frame]] = {
    "start": _decode_start,
    "text": _decode_text,
    "stop": _decode_stop,
    "audio": _decode_audio,
    "finish": _decode_finish,
}


def decode(data: bytes) -> Frame:
    """Unpack one wire message into a typed frame.

    RULES:
    - Raises ProtocolError for invalid MessagePack or a non-map payload
    - Raises ProtocolError for a missing, non-string, or unknown "event"
    - Raises ProtocolError when the payload does not fit the tag
    """
    if isinstance(data, str):
        raise ProtocolError("Expected a binary frame, got a text message")
    try:
        message = msgpack.unpackb(data, raw=False)
    except (msgpack.UnpackException, ValueError, TypeError) as exc:
        raise ProtocolError(f"Undecodable frame: {exc}") from exc

    if not isinstance(message, dict):
        raise ProtocolError(f"Frame must be a map, got {type(message).__name__}")

    tag = message.get("event")
    if tag is None:
        raise ProtocolError("Frame has no 'event' tag")
    decoder = _DECODERS.get(tag) if isinstance(tag, str) else None
    if decoder is None:
        raise ProtocolError(f"Unknown frame tag: {tag!r}")
    return decoder(message)
