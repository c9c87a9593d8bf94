"""Tests for the MessagePack frame codec.

WHY: The codec is the only thing standing between raw socket bytes and
the session's frame dispatch. A frame that slips through with the wrong
shape would surface as a confusing error deep in the session, or worse,
as silently wrong audio.

HOW: Encodes each frame kind and inspects the wire map, then feeds
hand-built wire maps (valid and malformed) through decode().

RULES:
- Malformed input must raise ProtocolError, never KeyError/TypeError
- Unknown tags are errors, not ignored
"""

from __future__ import annotations

import msgpack
import pytest

from fishwire.exceptions import ProtocolError
from fishwire.live.codec import (
    AudioFrame,
    FinishFrame,
    FinishReason,
    StartFrame,
    StopFrame,
    TextFrame,
    decode,
    encode,
)
from fishwire.schemas import Prosody, ReferenceAudio, TTSRequest


def _wire(frame) -> dict:
    return msgpack.unpackb(encode(frame), raw=False)


class TestEncode:
    """encode() renders the tagged wire map."""

    def test_start_carries_full_request(self):
        request = TTSRequest(
            text="",
            format="wav",
            references=(ReferenceAudio(audio=b"\x00\x01", text="ref"),),
            reference_id="voice-1",
            prosody=Prosody(speed=1.2),
        )
        wire = _wire(StartFrame(request=request))
        assert wire["event"] == "start"
        assert wire["request"]["format"] == "wav"
        assert wire["request"]["references"] == [{"audio": b"\x00\x01", "text": "ref"}]
        assert wire["request"]["reference_id"] == "voice-1"
        assert wire["request"]["prosody"] == {"speed": 1.2, "volume": 0.0}

    def test_text(self):
        assert _wire(TextFrame(text="Hello")) == {"event": "text", "text": "Hello"}

    def test_stop_has_only_the_tag(self):
        assert _wire(StopFrame()) == {"event": "stop"}

    def test_audio_is_binary(self):
        wire = _wire(AudioFrame(audio=b"\xff\x00"))
        assert wire == {"event": "audio", "audio": b"\xff\x00"}

    def test_finish_reason(self):
        assert _wire(FinishFrame(reason=FinishReason.ERROR)) == {
            "event": "finish",
            "reason": "error",
        }

    def test_deterministic(self):
        frame = StartFrame(request=TTSRequest(text="x"))
        assert encode(frame) == encode(StartFrame(request=TTSRequest(text="x")))

    def test_rejects_non_frame(self):
        with pytest.raises(TypeError):
            encode({"event": "text", "text": "x"})


class TestDecode:
    """decode() accepts well-formed frames and rejects everything else."""

    @pytest.mark.parametrize(
        "frame",
        [
            TextFrame(text="fragment"),
            StopFrame(),
            AudioFrame(audio=b"\x00" * 16),
            FinishFrame(reason=FinishReason.STOP),
            FinishFrame(reason=FinishReason.ERROR),
            StartFrame(request=TTSRequest(text="hi", latency="normal")),
        ],
    )
    def test_decodes_what_encode_produces(self, frame):
        assert decode(encode(frame)) == frame

    def test_audio_from_server_map(self):
        data = msgpack.packb({"event": "audio", "audio": b"abc", "time": 0.5}, use_bin_type=True)
        assert decode(data) == AudioFrame(audio=b"abc")

    def test_missing_tag(self):
        with pytest.raises(ProtocolError, match="no 'event' tag"):
            decode(msgpack.packb({"audio": b"abc"}, use_bin_type=True))

    def test_unknown_tag(self):
        with pytest.raises(ProtocolError, match="Unknown frame tag"):
            decode(msgpack.packb({"event": "log", "message": "hi"}, use_bin_type=True))

    def test_non_string_tag(self):
        with pytest.raises(ProtocolError, match="Unknown frame tag"):
            decode(msgpack.packb({"event": 3}, use_bin_type=True))

    def test_non_map_payload(self):
        with pytest.raises(ProtocolError, match="must be a map"):
            decode(msgpack.packb(["audio", b"abc"], use_bin_type=True))

    def test_garbage_bytes(self):
        with pytest.raises(ProtocolError, match="Undecodable"):
            decode(b"\xc1")

    def test_truncated_bytes(self):
        with pytest.raises(ProtocolError):
            decode(encode(AudioFrame(audio=b"x" * 64))[:-10])

    def test_text_message_rejected(self):
        with pytest.raises(ProtocolError, match="binary"):
            decode('{"event": "audio"}')

    def test_audio_must_be_bytes(self):
        data = msgpack.packb({"event": "audio", "audio": "not bytes"}, use_bin_type=True)
        with pytest.raises(ProtocolError, match="must be bytes"):
            decode(data)

    def test_audio_missing_payload(self):
        with pytest.raises(ProtocolError, match="missing field 'audio'"):
            decode(msgpack.packb({"event": "audio"}, use_bin_type=True))

    def test_unknown_finish_reason(self):
        data = msgpack.packb({"event": "finish", "reason": "timeout"}, use_bin_type=True)
        with pytest.raises(ProtocolError, match="finish reason"):
            decode(data)

    def test_start_with_invalid_request(self):
        data = msgpack.packb(
            {"event": "start", "request": {"references": [{"text": "no audio"}]}},
            use_bin_type=True,
        )
        with pytest.raises(ProtocolError, match="invalid request"):
            decode(data)
