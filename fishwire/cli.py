"""Command-line interface for fishwire.

WHY: Quick manual checks of an API key, a voice, or the live endpoint
should not need a script. The CLI wires the two clients to files and
stdin behind three subcommands.

HOW: Uses argparse subcommands. Each one runs an async coroutine via
asyncio.run(). Status messages go to stderr; audio goes to the file
given with --output.

RULES:
- tts: one-shot HTTP synthesis of TEXT into --output
- live: stream lines of text (from --input or stdin) over the live
  WebSocket endpoint into --output
- credit: print the API credit balance
- Status output goes to stderr (not stdout); credit prints to stdout
- Exit code 1 on errors, 130 on Ctrl-C
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import threading
from collections.abc import AsyncIterator
from contextlib import aclosing
from pathlib import Path
from typing import List, Optional, TextIO

from fishwire.api.client import Session
from fishwire.exceptions import FishError
from fishwire.live.session import WebSocketSession
from fishwire.schemas import TTSRequest


def _status(msg: str) -> None:
    """Print a status message to stderr, flushed."""
    print(msg, file=sys.stderr, flush=True)


def _build_request(args: argparse.Namespace, text: str = "") -> TTSRequest:
    return TTSRequest(
        text=text,
        format=args.format,
        mp3_bitrate=args.mp3_bitrate,
        reference_id=args.reference_id,
        latency=args.latency,
    )


async def _read_lines(stream: TextIO) -> AsyncIterator[str]:
    """Yield non-empty lines without blocking the event loop on reads.

    WHY: A blocked readline() on an interactive stdin cannot be
    interrupted. Reading on a daemon thread lets the command exit as soon
    as the session ends, instead of waiting for the next line.

    HOW: The reader thread hands each line to the loop through an
    asyncio.Queue; None marks end of input.
    """
    loop = asyncio.get_running_loop()
    lines: asyncio.Queue[Optional[str]] = asyncio.Queue()

    def _reader() -> None:
        try:
            for line in iter(stream.readline, ""):
                loop.call_soon_threadsafe(lines.put_nowait, line)
            loop.call_soon_threadsafe(lines.put_nowait, None)
        except (RuntimeError, ValueError):
            # Loop already closed, or the file was closed under us.
            return

    threading.Thread(target=_reader, name="fishwire-input", daemon=True).start()
    while True:
        line = await lines.get()
        if line is None:
            return
        line = line.strip()
        if line:
            yield line


async def _run_tts(args: argparse.Namespace) -> None:
    output = Path(args.output)
    total = 0
    async with Session() as session:
        _status("Synthesizing {} characters...".format(len(args.text)))
        with open(output, "wb") as f:
            async for chunk in session.tts(_build_request(args, args.text)):
                f.write(chunk)
                total += len(chunk)
    _status("Saved {} bytes to {}".format(total, output))


async def _run_live(args: argparse.Namespace) -> None:
    output = Path(args.output)
    total = 0
    source = open(args.input, encoding="utf-8") if args.input else sys.stdin
    try:
        async with WebSocketSession() as ws:
            _status("Streaming to {} ...".format(ws.url))
            with open(output, "wb") as f:
                async with aclosing(ws.tts(_build_request(args), _read_lines(source))) as audio:
                    async for chunk in audio:
                        f.write(chunk)
                        total += len(chunk)
                        _status("  {} KB received".format(total // 1024))
    finally:
        if source is not sys.stdin:
            source.close()
    _status("Saved {} bytes to {}".format(total, output))


async def _run_credit(args: argparse.Namespace) -> None:
    async with Session() as session:
        credit = await session.get_api_credit()
    print(credit.credit)


_COMMANDS = {
    "tts": _run_tts,
    "live": _run_live,
    "credit": _run_credit,
}


def _add_synthesis_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-o", "--output", required=True, help="Audio file to write.")
    parser.add_argument(
        "--format",
        choices=["mp3", "wav", "pcm"],
        default="mp3",
        help="Audio format (default: %(default)s).",
    )
    parser.add_argument(
        "--mp3-bitrate",
        type=int,
        choices=[64, 128, 192],
        default=128,
        help="MP3 bitrate in kbps (default: %(default)s).",
    )
    parser.add_argument("--reference-id", default=None, help="Voice model id.")
    parser.add_argument(
        "--latency",
        choices=["normal", "balanced"],
        default="balanced",
        help="Latency mode (default: %(default)s).",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable: tests can inspect the parser without running a command.
    """
    parser = argparse.ArgumentParser(
        prog="fishwire",
        description="Speech synthesis and recognition API client.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug output to stderr."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    tts = sub.add_parser("tts", help="Synthesize TEXT over HTTP.")
    tts.add_argument("text", help="Text to synthesize.")
    _add_synthesis_options(tts)

    live = sub.add_parser("live", help="Stream text lines over the live endpoint.")
    live.add_argument(
        "--input",
        default=None,
        help="Text file to stream, one fragment per line (default: stdin).",
    )
    _add_synthesis_options(live)

    sub.add_parser("credit", help="Print the API credit balance.")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        asyncio.run(_COMMANDS[args.command](args))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except (FishError, ValueError, OSError) as e:
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
