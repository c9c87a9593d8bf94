"""Tests for the command-line interface.

WHY: The CLI is the quickest manual check of a key or a voice; argument
wiring and exit codes should not regress silently.

HOW: Parser tests inspect parsed namespaces. main() tests swap the
command table so no network call is made.
"""

from __future__ import annotations

import asyncio
import io
import threading
import time
from unittest.mock import patch

import pytest

from fishwire.cli import _build_request, _read_lines, build_parser, main
from fishwire.exceptions import AuthenticationError


class TestParser:
    def test_tts_defaults(self):
        args = build_parser().parse_args(["tts", "Hello", "-o", "out.mp3"])
        assert args.command == "tts"
        assert args.text == "Hello"
        assert args.format == "mp3"
        assert args.latency == "balanced"

        request = _build_request(args, args.text)
        assert request.text == "Hello"
        assert request.mp3_bitrate == 128
        assert request.reference_id is None

    def test_live_options(self):
        args = build_parser().parse_args(
            ["live", "-o", "out.wav", "--format", "wav", "--input", "story.txt",
             "--reference-id", "voice-1"]
        )
        assert args.input == "story.txt"
        request = _build_request(args)
        assert request.text == ""
        assert request.format == "wav"
        assert request.reference_id == "voice-1"

    def test_rejects_bad_bitrate(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["tts", "x", "-o", "o", "--mp3-bitrate", "96"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class _BlockingStream:
    """A stream whose readline() blocks until released, like an idle tty."""

    def __init__(self):
        self.release = threading.Event()

    def readline(self):
        self.release.wait()
        return ""


class TestReadLines:
    def test_skips_blank_lines(self):
        async def _run():
            return [line async for line in _read_lines(io.StringIO("one\n\n  two  \nthree"))]

        assert asyncio.run(_run()) == ["one", "two", "three"]

    def test_early_exit_does_not_wait_for_blocked_read(self):
        stream = _BlockingStream()

        async def _run():
            async def _first_line():
                return await anext(_read_lines(stream))

            fetch = asyncio.create_task(_first_line())
            await asyncio.sleep(0.05)
            fetch.cancel()
            with pytest.raises(asyncio.CancelledError):
                await fetch

        started = time.monotonic()
        try:
            asyncio.run(_run())
        finally:
            stream.release.set()
        assert time.monotonic() - started < 2


class TestMain:
    def test_fish_error_exits_1(self, capsys):
        async def _failing(args):
            raise AuthenticationError("Invalid token")

        with patch.dict("fishwire.cli._COMMANDS", {"credit": _failing}):
            with pytest.raises(SystemExit) as exc_info:
                main(["credit"])

        assert exc_info.value.code == 1
        assert "401 Invalid token" in capsys.readouterr().err

    def test_success(self):
        calls = []

        async def _ok(args):
            calls.append(args.command)

        with patch.dict("fishwire.cli._COMMANDS", {"credit": _ok}):
            main(["credit"])

        assert calls == ["credit"]
