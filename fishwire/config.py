"""Configuration constants, endpoint helpers, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. The HTTP client, the WebSocket session, and the
CLI all read the same defaults from here.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level values with environment overrides. The load_api_key()
function provides a clear error when the key is missing.

RULES:
- API key is loaded from .env via python-dotenv, never hardcoded
- All defaults can be overridden via environment variables
- Timeouts are in seconds (floats)
"""

from __future__ import annotations

import os
from urllib.parse import urlsplit, urlunsplit

from dotenv import load_dotenv

# Values from a .env file fill in unset environment variables.
load_dotenv()

# ---------------------------------------------------------------------------
# API configuration defaults
# ---------------------------------------------------------------------------

FISH_BASE_URL = os.getenv("FISH_BASE_URL", "https://api.fish.audio")
FISH_OPEN_TIMEOUT = float(os.getenv("FISH_OPEN_TIMEOUT", "5.0"))
FISH_CLOSE_TIMEOUT = float(os.getenv("FISH_CLOSE_TIMEOUT", "5.0"))

LIVE_TTS_PATH = "/v1/tts/live"
"""Path of the bidirectional synthesis endpoint."""

_WS_SCHEMES = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


def live_url(base_url: str | None = None, path: str = LIVE_TTS_PATH) -> str:
    """Map the HTTP base URL to the WebSocket streaming endpoint.

    WHY: Users configure one base URL (https://api.fish.audio). The
    WebSocket client needs the same host under the ws/wss scheme.

    RULES:
    - http -> ws, https -> wss; ws/wss are kept as-is
    - Any path already on the base URL is preserved as a prefix
    - Raises ValueError for other schemes
    """
    parts = urlsplit((base_url or FISH_BASE_URL).rstrip("/"))
    scheme = _WS_SCHEMES.get(parts.scheme.lower())
    if scheme is None:
        raise ValueError(f"Unsupported base URL scheme: {parts.scheme!r}")
    return urlunsplit((scheme, parts.netloc, parts.path + path, "", ""))


def load_api_key(client: str = "fishwire") -> str:
    """Return FISH_API_KEY, stripped, or fail naming the client that needs it.

    RULES:
    - client appears in the error so HTTP and live failures are told apart
    - An empty or whitespace-only value counts as missing
    """
    key = os.getenv("FISH_API_KEY", "").strip()
    if not key:
        raise ValueError(
            f"The {client} client needs an API key: set FISH_API_KEY "
            "(environment or .env) or pass api_key=..."
        )
    return key
