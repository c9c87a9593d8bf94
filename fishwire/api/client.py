"""Async HTTP client for the request/response endpoints of the speech API.

WHY: Everything that is not live synthesis is a single HTTP call:
one-shot synthesis (streamed back as audio bytes), recognition, voice
model management, and wallet lookups. This module keeps the HTTP
details (auth header, MessagePack bodies, status mapping) in one class
so callers (CLI, tests, applications) don't need to know them.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. Session is an async
context manager. Enter it to get an authenticated client, exit to
close the connection pool. Two generic primitives, request() and
stream_request(), carry every call; the endpoint methods build payloads
and parse responses into the dataclasses from fishwire.schemas.

RULES:
- Always use the async context manager (async with Session(...) as session:)
- Every non-2xx response raises HttpCodeError (or a status subclass)
- Synthesis and recognition bodies are MessagePack (application/msgpack)
- Model create/update bodies are multipart form data
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any, Dict, List, Optional, Union

import httpx
import msgpack

from fishwire.config import FISH_BASE_URL, load_api_key
from fishwire.exceptions import HttpCodeError, http_error
from fishwire.schemas import (
    APICreditEntity,
    ASRRequest,
    ASRResponse,
    ModelEntity,
    PackageEntity,
    PaginatedResponse,
    TTSRequest,
)

logger = logging.getLogger(__name__)

_MSGPACK_HEADERS = {"Content-Type": "application/msgpack"}


def _error_from(resp: httpx.Response) -> HttpCodeError:
    """Build the HttpCodeError for a failed response (body must be read)."""
    message = resp.reason_phrase or "Request failed"
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("detail"):
        message = str(body["detail"])
    return http_error(resp.status_code, message)


class Session:
    """Async client for the request/response API.

    WHY: Provides a clean, typed interface over the HTTP endpoints and a
    single place where status codes become exceptions.

    HOW: Wraps httpx.AsyncClient with Bearer token auth. A custom httpx
    transport can be passed in (tests use httpx.MockTransport).

    RULES:
    - Use as: async with Session() as session: ...
    - api_key defaults to load_api_key() from .env
    - base_url defaults to FISH_BASE_URL from config
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key or load_api_key("HTTP")
        self._base_url = (base_url or FISH_BASE_URL).rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> Session:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=httpx.Timeout(300.0, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "Session must be used as an async context manager: "
                "async with Session() as session: ..."
            )
        return self._client

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        content: Optional[bytes] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[List[Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Send one request and return the response.

        RULES:
        - Raises HttpCodeError (or AuthenticationError, PaymentRequiredError,
          NotFoundError) for non-2xx responses
        - The error message is the JSON "detail" field when present
        """
        client = self._ensure_client()
        logger.debug("%s %s", method, path)
        resp = await client.request(
            method,
            path,
            json=json,
            content=content,
            data=data,
            files=files,
            params=params,
            headers=headers,
        )
        if resp.is_error:
            raise _error_from(resp)
        return resp

    async def stream_request(
        self,
        method: str,
        path: str,
        *,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> AsyncIterator[bytes]:
        """Send one request and yield the response body as it arrives.

        RULES:
        - The status is checked before the first chunk is yielded
        - Empty chunks are skipped
        """
        client = self._ensure_client()
        logger.debug("%s %s (streaming)", method, path)
        async with client.stream(method, path, content=content, headers=headers) as resp:
            if resp.is_error:
                await resp.aread()
                raise _error_from(resp)
            async for chunk in resp.aiter_bytes():
                if chunk:
                    yield chunk

    # ------------------------------------------------------------------
    # Synthesis and recognition
    # ------------------------------------------------------------------

    async def tts(self, request: TTSRequest) -> AsyncIterator[bytes]:
        """Synthesize request.text and yield audio bytes as they stream in."""
        body = msgpack.packb(request.to_dict(), use_bin_type=True)
        async for chunk in self.stream_request(
            "POST", "/v1/tts", content=body, headers=_MSGPACK_HEADERS
        ):
            yield chunk

    async def asr(self, request: ASRRequest) -> ASRResponse:
        """Transcribe request.audio."""
        body = msgpack.packb(request.to_dict(), use_bin_type=True)
        resp = await self.request(
            "POST", "/v1/asr", content=body, headers=_MSGPACK_HEADERS
        )
        return ASRResponse.from_dict(resp.json())

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------

    async def list_models(
        self,
        page_size: int = 10,
        page_number: int = 1,
        title: Optional[str] = None,
        tag: Union[str, Sequence[str], None] = None,
        self_only: bool = False,
        author_id: Optional[str] = None,
        language: Union[str, Sequence[str], None] = None,
        title_language: Optional[str] = None,
        sort_by: str = "task_count",
    ) -> PaginatedResponse[ModelEntity]:
        """List voice models, one page at a time.

        RULES:
        - sort_by: "task_count" or "created_at"
        - tag and language accept one value or a list of values
        - self_only restricts the listing to the caller's own models
        """
        params: Dict[str, Any] = {
            "page_size": page_size,
            "page_number": page_number,
            "title": title,
            "tag": tag if isinstance(tag, (str, type(None))) else list(tag),
            "self": "true" if self_only else None,
            "author_id": author_id,
            "language": (
                language if isinstance(language, (str, type(None))) else list(language)
            ),
            "title_language": title_language,
            "sort_by": sort_by,
        }
        params = {k: v for k, v in params.items() if v is not None}
        resp = await self.request("GET", "/model", params=params)
        return PaginatedResponse.from_dict(resp.json(), ModelEntity.from_dict)

    async def get_model(self, model_id: str) -> ModelEntity:
        resp = await self.request("GET", f"/model/{model_id}")
        return ModelEntity.from_dict(resp.json())

    async def create_model(
        self,
        title: str,
        voices: Sequence[bytes],
        *,
        visibility: str = "private",
        type: str = "tts",
        description: Optional[str] = None,
        cover_image: Optional[bytes] = None,
        train_mode: str = "fast",
        texts: Optional[Sequence[str]] = None,
        tags: Optional[Sequence[str]] = None,
        enhance_audio_quality: bool = True,
    ) -> ModelEntity:
        """Create a voice model from one or more voice samples.

        HOW: Sends a multipart/form-data POST. Each voice sample is one
        "voices" part; texts and tags repeat their field once per value.
        """
        files: List[Any] = [
            ("voices", (f"voice_{i}", voice)) for i, voice in enumerate(voices)
        ]
        if cover_image is not None:
            files.append(("cover_image", ("cover_image", cover_image)))

        data: Dict[str, Any] = {
            "visibility": visibility,
            "type": type,
            "title": title,
            "train_mode": train_mode,
            "enhance_audio_quality": "true" if enhance_audio_quality else "false",
        }
        if description:
            data["description"] = description
        if texts:
            data["texts"] = list(texts)
        if tags:
            data["tags"] = list(tags)

        resp = await self.request("POST", "/model", data=data, files=files)
        return ModelEntity.from_dict(resp.json())

    async def update_model(
        self,
        model_id: str,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        cover_image: Optional[bytes] = None,
        visibility: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> None:
        """Change the given fields of a model; fields left as None are kept."""
        data: Dict[str, Any] = {}
        if title:
            data["title"] = title
        if description:
            data["description"] = description
        if visibility:
            data["visibility"] = visibility
        if tags:
            data["tags"] = list(tags)
        files = None
        if cover_image is not None:
            files = [("cover_image", ("cover_image", cover_image))]

        await self.request("PATCH", f"/model/{model_id}", data=data, files=files)

    async def delete_model(self, model_id: str) -> None:
        await self.request("DELETE", f"/model/{model_id}")

    # ------------------------------------------------------------------
    # Wallet
    # ------------------------------------------------------------------

    async def get_api_credit(self) -> APICreditEntity:
        resp = await self.request("GET", "/wallet/self/api-credit")
        return APICreditEntity.from_dict(resp.json())

    async def get_package(self) -> PackageEntity:
        resp = await self.request("GET", "/wallet/self/package")
        return PackageEntity.from_dict(resp.json())
