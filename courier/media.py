"""Media references and the closed set of sendable media kinds.

A :class:`MediaReference` names a piece of media before the Bot API knows it:
a local path, an in-memory buffer, or a token the API issued earlier (file id
or URL).  Its :attr:`~MediaReference.cache_key` is what
:class:`~courier.media_cache.MediaCache` is keyed by, so the same local file
maps to the same remote file id across sends.

The media classes (:class:`Photo`, :class:`Video`, ...) wrap a reference with
the kind tag, an optional thumbnail and per-item options such as ``caption``.
"""

from __future__ import annotations

import hashlib
import os
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Sequence, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from courier.exceptions import UnsupportedContentError


class MediaSource(str, Enum):
    """Where the bytes of a :class:`MediaReference` come from."""

    PATH = "path"
    BUFFER = "buffer"
    FILE_ID = "file_id"


class MediaKind(str, Enum):
    """Media kinds understood by the client.

    The value doubles as the multipart field name of the upload and as the
    :class:`~courier.models.Message` attribute carrying the issued file id.
    """

    PHOTO = "photo"
    VIDEO = "video"
    ANIMATION = "animation"
    AUDIO = "audio"
    DOCUMENT = "document"
    VOICE = "voice"
    VIDEO_NOTE = "video_note"


# Kinds the sendMediaGroup method accepts.
MEDIA_GROUP_KINDS: frozenset[MediaKind] = frozenset(
    {MediaKind.PHOTO, MediaKind.VIDEO, MediaKind.AUDIO, MediaKind.DOCUMENT}
)

MEDIA_GROUP_MIN_SIZE = 2
MEDIA_GROUP_MAX_SIZE = 10


def _looks_like_path(value: str) -> bool:
    """True for strings that name a file rather than an API token.

    File ids never contain a separator or a dot; URLs are left to the API.
    """
    if "://" in value:
        return False
    separators = {os.sep, "/"} | ({os.altsep} if os.altsep else set())
    return any(sep in value for sep in separators) or bool(Path(value).suffix)


class MediaReference(BaseModel):
    """Immutable handle on media that may or may not be uploaded yet."""

    source: Union[str, bytes]
    kind: MediaSource
    filename: Optional[str] = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_source_type(self) -> "MediaReference":
        if self.kind is MediaSource.BUFFER and not isinstance(self.source, bytes):
            raise ValueError("buffer-backed media needs a bytes source")
        if self.kind is not MediaSource.BUFFER and not isinstance(self.source, str):
            raise ValueError(f"{self.kind.value}-backed media needs a str source")
        return self

    # ------------------------------------------------------------------
    #  Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_path(cls, path: Union[str, os.PathLike]) -> "MediaReference":
        return cls(source=os.fspath(path), kind=MediaSource.PATH)

    @classmethod
    def from_buffer(cls, data: bytes, filename: Optional[str] = None) -> "MediaReference":
        return cls(source=bytes(data), kind=MediaSource.BUFFER, filename=filename)

    @classmethod
    def from_file_id(cls, file_id: str) -> "MediaReference":
        return cls(source=file_id, kind=MediaSource.FILE_ID)

    @classmethod
    def of(cls, value: Union["MediaReference", str, bytes, bytearray, os.PathLike]) -> "MediaReference":
        """Coerce *value* into a reference.

        ``Path`` objects and strings naming a file (an existing one, or one
        with a directory part or suffix) are path-backed,
        ``bytes`` are buffer-backed, any other string is treated as a token
        the API already understands (file id or HTTP URL).
        """
        if isinstance(value, MediaReference):
            return value
        if isinstance(value, (bytes, bytearray)):
            return cls.from_buffer(bytes(value))
        if isinstance(value, os.PathLike):
            return cls.from_path(value)
        if isinstance(value, str):
            if os.path.isfile(value) or _looks_like_path(value):
                return cls.from_path(value)
            return cls.from_file_id(value)
        raise UnsupportedContentError(f"Cannot use {type(value).__name__} as media")

    # ------------------------------------------------------------------
    #  Properties
    # ------------------------------------------------------------------

    @property
    def cache_key(self) -> str:
        """Local identity of the media, never the remote file id it maps to."""
        if isinstance(self.source, bytes):
            return "sha256:" + hashlib.sha256(self.source).hexdigest()
        return self.source

    @property
    def needs_upload(self) -> bool:
        return self.kind is not MediaSource.FILE_ID

    @property
    def upload_name(self) -> Optional[str]:
        """File name sent with the binary part, when one is known."""
        if self.filename:
            return self.filename
        if self.kind is MediaSource.PATH:
            return Path(self.source).name
        return None


class Resolution(BaseModel):
    """Dimensions sent alongside videos and animations."""

    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[int] = None

    model_config = {"frozen": True}

    def as_options(self) -> Dict[str, int]:
        return self.model_dump(exclude_none=True)


class Media(BaseModel):
    """Base class of every sendable media kind.

    Subclasses set :attr:`kind`; instantiating :class:`Media` itself is not
    useful because the client cannot tell which method to call.
    """

    kind: ClassVar[Optional[MediaKind]] = None
    supports_thumb: ClassVar[bool] = True

    media: MediaReference
    thumb: Optional[MediaReference] = None
    options: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def __init__(self, media: Any = None, /, **data: Any) -> None:
        if media is not None:
            data["media"] = media
        super().__init__(**data)

    @field_validator("media", "thumb", mode="before")
    @classmethod
    def coerce_reference(cls, value: Any) -> Any:
        if value is None or isinstance(value, (MediaReference, dict)):
            return value
        return MediaReference.of(value)

    @model_validator(mode="after")
    def check_thumb(self) -> "Media":
        if self.thumb is not None and not self.supports_thumb:
            raise ValueError(f"{type(self).__name__} does not accept a thumbnail")
        return self

    @property
    def cache_key(self) -> str:
        return self.media.cache_key

    def extra_fields(self) -> Dict[str, Any]:
        """Type-specific metadata merged into the request (e.g. resolution)."""
        return {}


class Photo(Media):
    kind: ClassVar[Optional[MediaKind]] = MediaKind.PHOTO
    supports_thumb: ClassVar[bool] = False


class Video(Media):
    kind: ClassVar[Optional[MediaKind]] = MediaKind.VIDEO

    resolution: Optional[Resolution] = None

    def extra_fields(self) -> Dict[str, Any]:
        return self.resolution.as_options() if self.resolution else {}


class Animation(Media):
    kind: ClassVar[Optional[MediaKind]] = MediaKind.ANIMATION

    resolution: Optional[Resolution] = None

    def extra_fields(self) -> Dict[str, Any]:
        return self.resolution.as_options() if self.resolution else {}


class Audio(Media):
    kind: ClassVar[Optional[MediaKind]] = MediaKind.AUDIO


class Document(Media):
    kind: ClassVar[Optional[MediaKind]] = MediaKind.DOCUMENT


class Voice(Media):
    kind: ClassVar[Optional[MediaKind]] = MediaKind.VOICE
    supports_thumb: ClassVar[bool] = False


class VideoNote(Media):
    kind: ClassVar[Optional[MediaKind]] = MediaKind.VIDEO_NOTE

    length: Optional[int] = None
    duration: Optional[int] = None

    def extra_fields(self) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        if self.length is not None:
            fields["length"] = self.length
        if self.duration is not None:
            fields["duration"] = self.duration
        return fields


MediaGroupItem = Union[Photo, Video, Audio, Document]


def check_group_item(item: Any) -> Media:
    """Return *item* if it may be part of a media group, else raise."""
    if not isinstance(item, Media) or item.kind not in MEDIA_GROUP_KINDS:
        name = item.kind.value if isinstance(item, Media) and item.kind else type(item).__name__
        raise UnsupportedContentError(
            f"{name} cannot be sent in a media group; use Photo, Video, Audio or Document"
        )
    return item


class MediaGroup:
    """Ordered batch of media sent with a single sendMediaGroup call."""

    def __init__(self, items: Sequence[MediaGroupItem]) -> None:
        items = [check_group_item(item) for item in items]
        if not MEDIA_GROUP_MIN_SIZE <= len(items) <= MEDIA_GROUP_MAX_SIZE:
            raise ValueError(
                f"A media group holds {MEDIA_GROUP_MIN_SIZE}-{MEDIA_GROUP_MAX_SIZE} items, got {len(items)}"
            )
        self._items: List[Media] = items

    @property
    def items(self) -> List[Media]:
        return list(self._items)

    def __iter__(self) -> Iterator[Media]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> Media:
        return self._items[index]
