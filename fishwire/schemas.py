"""Request and response dataclasses for the speech API.

WHY: The API exchanges plain maps (MessagePack for synthesis and
recognition, JSON for models and wallet). Typed dataclasses make these
structures explicit, enable IDE autocompletion, and catch field
mismatches early.

HOW: Request types render themselves with to_dict() into the snake_case
wire map the server expects. Response types parse raw API maps with
from_dict() factory methods. Entity ids arrive as "_id" and are exposed
as "id".

RULES:
- Requests are frozen: a TTSRequest does not change during a session
- Requests are trusted as already validated (no range checks here)
- to_dict() omits optional fields that are None
- from_dict() tolerates missing optional fields
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReferenceAudio:
    """A voice sample (audio bytes plus its transcript) used for cloning."""

    audio: bytes
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"audio": self.audio, "text": self.text}


@dataclass(frozen=True)
class Prosody:
    speed: float = 1.0
    volume: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"speed": self.speed, "volume": self.volume}


@dataclass(frozen=True)
class TTSRequest:
    """Configuration for one synthesis call (HTTP or live).

    WHY: Both the HTTP endpoint and the start frame of the live session
    carry the same request map. One dataclass serves both.

    RULES:
    - text may be empty for live sessions (text arrives as text frames)
    - format: "wav", "pcm" or "mp3"
    - latency: "normal" or "balanced"
    - reference_id and prosody are omitted from the wire map when None
    """

    text: str = ""
    chunk_length: int = 200
    format: str = "mp3"
    mp3_bitrate: int = 128
    references: tuple[ReferenceAudio, ...] = ()
    reference_id: str | None = None
    normalize: bool = True
    latency: str = "balanced"
    prosody: Prosody | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "text": self.text,
            "chunk_length": self.chunk_length,
            "format": self.format,
            "mp3_bitrate": self.mp3_bitrate,
            "references": [ref.to_dict() for ref in self.references],
            "normalize": self.normalize,
            "latency": self.latency,
        }
        if self.reference_id is not None:
            data["reference_id"] = self.reference_id
        if self.prosody is not None:
            data["prosody"] = self.prosody.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> TTSRequest:
        """Parse a TTSRequest from a wire map (the inverse of to_dict)."""
        prosody = data.get("prosody")
        return cls(
            text=data.get("text", ""),
            chunk_length=data.get("chunk_length", 200),
            format=data.get("format", "mp3"),
            mp3_bitrate=data.get("mp3_bitrate", 128),
            references=tuple(
                ReferenceAudio(audio=ref["audio"], text=ref["text"])
                for ref in data.get("references") or ()
            ),
            reference_id=data.get("reference_id"),
            normalize=data.get("normalize", True),
            latency=data.get("latency", "balanced"),
            prosody=Prosody(**prosody) if prosody is not None else None,
        )


# ---------------------------------------------------------------------------
# Recognition
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ASRRequest:
    audio: bytes
    language: str | None = None
    ignore_timestamps: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"audio": self.audio}
        if self.language is not None:
            data["language"] = self.language
        if self.ignore_timestamps is not None:
            data["ignore_timestamps"] = self.ignore_timestamps
        return data


@dataclass
class ASRSegment:
    text: str
    start: float
    end: float

    @classmethod
    def from_dict(cls, data: dict) -> ASRSegment:
        return cls(text=data["text"], start=data["start"], end=data["end"])


@dataclass
class ASRResponse:
    """Recognition result: full text, audio duration, and timed segments.

    RULES:
    - segments is empty when the request set ignore_timestamps
    """

    text: str
    duration: float
    segments: list[ASRSegment] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> ASRResponse:
        return cls(
            text=data["text"],
            duration=data.get("duration", 0.0),
            segments=[ASRSegment.from_dict(s) for s in data.get("segments") or []],
        )


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


@dataclass
class AuthorEntity:
    id: str
    username: str
    avatar: str

    @classmethod
    def from_dict(cls, data: dict) -> AuthorEntity:
        return cls(
            id=data.get("_id", data.get("id", "")),
            username=data.get("username", ""),
            avatar=data.get("avatar", ""),
        )


@dataclass
class SampleEntity:
    title: str
    text: str
    task_id: str
    audio: str

    @classmethod
    def from_dict(cls, data: dict) -> SampleEntity:
        return cls(
            title=data.get("title", ""),
            text=data.get("text", ""),
            task_id=data.get("task_id", ""),
            audio=data.get("audio", ""),
        )


@dataclass
class ModelEntity:
    """A voice model as returned by GET /model and GET /model/{id}.

    RULES:
    - type: "svc" or "tts"
    - state: "created", "training", "trained" or "failed"
    - visibility: "public", "unlist" or "private"
    - id comes from the "_id" field of the response
    """

    id: str
    type: str
    title: str
    description: str = ""
    cover_image: str = ""
    train_mode: str = "fast"
    state: str = "created"
    tags: list[str] = field(default_factory=list)
    samples: list[SampleEntity] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    languages: list[str] = field(default_factory=list)
    visibility: str = "private"
    lock_visibility: bool = False
    like_count: int = 0
    mark_count: int = 0
    shared_count: int = 0
    task_count: int = 0
    liked: bool = False
    marked: bool = False
    author: AuthorEntity | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ModelEntity:
        author = data.get("author")
        return cls(
            id=data.get("_id", data.get("id", "")),
            type=data.get("type", "tts"),
            title=data.get("title", ""),
            description=data.get("description", ""),
            cover_image=data.get("cover_image", ""),
            train_mode=data.get("train_mode", "fast"),
            state=data.get("state", "created"),
            tags=list(data.get("tags") or []),
            samples=[SampleEntity.from_dict(s) for s in data.get("samples") or []],
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            languages=list(data.get("languages") or []),
            visibility=data.get("visibility", "private"),
            lock_visibility=data.get("lock_visibility", False),
            like_count=data.get("like_count", 0),
            mark_count=data.get("mark_count", 0),
            shared_count=data.get("shared_count", 0),
            task_count=data.get("task_count", 0),
            liked=data.get("liked", False),
            marked=data.get("marked", False),
            author=AuthorEntity.from_dict(author) if author else None,
        )


@dataclass
class PaginatedResponse(Generic[T]):
    total: int
    items: list[T]

    @classmethod
    def from_dict(
        cls, data: dict, parse_item: Callable[[dict], T]
    ) -> PaginatedResponse[T]:
        return cls(
            total=data.get("total", 0),
            items=[parse_item(item) for item in data.get("items") or []],
        )


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------


@dataclass
class APICreditEntity:
    id: str
    user_id: str
    credit: float
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> APICreditEntity:
        return cls(
            id=data.get("_id", ""),
            user_id=data.get("user_id", ""),
            credit=float(data["credit"]),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


@dataclass
class PackageEntity:
    id: str
    user_id: str
    type: str
    total: int
    balance: int
    created_at: str = ""
    updated_at: str = ""
    finished_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> PackageEntity:
        return cls(
            id=data.get("_id", ""),
            user_id=data.get("user_id", ""),
            type=data["type"],
            total=data.get("total", 0),
            balance=data.get("balance", 0),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            finished_at=data.get("finished_at", ""),
        )
