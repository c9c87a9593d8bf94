"""Request/response API client package.

WHY: Synthesis, recognition, model management, and wallet lookups are
single HTTP calls. This package keeps them behind one async client class.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. Response data is
parsed into the dataclasses defined in fishwire.schemas.

RULES:
- All HTTP calls go through Session (no direct httpx usage elsewhere)
- Authentication is via Bearer token from config
"""

from fishwire.api.client import Session

__all__ = ["Session"]
