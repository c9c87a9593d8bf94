"""End-to-end tests against the real speech API.

WHY: Unit tests run against fakes of the HTTP service and the live
socket. Only a real call confirms the wire formats (MessagePack bodies,
frame tags, the bearer header) match what the server accepts.

HOW: Uses the real API with the key from the environment. Skipped
automatically if FISH_API_KEY is not set.

RULES:
- The key is read at import time; the autouse fixture in conftest
  replaces FISH_API_KEY with a fake during tests, so it is passed
  explicitly here
- Only read-only or billable-but-tiny calls are made
"""

import asyncio
import os
from contextlib import aclosing

import pytest

_API_KEY = os.getenv("FISH_API_KEY", "").strip()
_BASE_URL = os.getenv("FISH_BASE_URL", "https://api.fish.audio")


@pytest.mark.skipif(
    not _API_KEY,
    reason="FISH_API_KEY not set in environment, skipping real API test",
)
class TestRealAPI:
    """Round trips through both clients with the real service."""

    def test_credit(self):
        from fishwire.api.client import Session

        async def _run():
            async with Session(api_key=_API_KEY, base_url=_BASE_URL) as session:
                return await session.get_api_credit()

        credit = asyncio.run(_run())
        assert credit.credit >= 0

    def test_http_synthesis(self):
        from fishwire.api.client import Session
        from fishwire.schemas import TTSRequest

        async def _run():
            chunks = []
            async with Session(api_key=_API_KEY, base_url=_BASE_URL) as session:
                async for chunk in session.tts(TTSRequest(text="Hello.")):
                    chunks.append(chunk)
            return b"".join(chunks)

        assert len(asyncio.run(_run())) > 0

    def test_live_synthesis(self):
        from fishwire.live.session import WebSocketSession
        from fishwire.schemas import TTSRequest

        async def _run():
            chunks = []
            async with WebSocketSession(api_key=_API_KEY, base_url=_BASE_URL) as ws:
                stream = ws.tts(TTSRequest(), ["Hello, ", "world!"])
                async with aclosing(stream) as audio:
                    async for chunk in audio:
                        chunks.append(chunk)
                assert len(ws.registry) == 0
            return chunks

        chunks = asyncio.run(_run())
        assert chunks
        assert all(isinstance(c, bytes) for c in chunks)
