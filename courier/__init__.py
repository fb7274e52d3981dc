"""Async Telegram Bot API client that never uploads the same media twice.

Usage::

    from courier import CourierClient, MediaCache, Photo, Video, MediaGroup

    client = CourierClient(token, cache=MediaCache())
    await client.send(chat_id, Photo("banner.png"))
    await client.send_media_group(chat_id, MediaGroup([Photo("a.jpg"), Video("b.mp4")]))
"""

from courier import config  # noqa: F401
from courier.client import CourierClient, get_default_client
from courier.content import Alert, LocationMessage, MessageCreator, MessageSend, Toast
from courier.exceptions import (
    APIException,
    CourierError,
    MissingTokenError,
    UnsupportedContentError,
    UnsupportedOptionError,
)
from courier.media import (
    Animation,
    Audio,
    Document,
    Media,
    MediaGroup,
    MediaKind,
    MediaReference,
    MediaSource,
    Photo,
    Resolution,
    Video,
    VideoNote,
    Voice,
)
from courier.media_cache import MediaCache, get_default_cache
from courier.payload import FormData, MediaPayloadBuilder, merge_options

__all__ = [
    # Client
    "CourierClient",
    "get_default_client",
    # Cache and payloads
    "MediaCache",
    "get_default_cache",
    "MediaPayloadBuilder",
    "FormData",
    "merge_options",
    # Media
    "MediaReference",
    "MediaSource",
    "MediaKind",
    "Media",
    "Photo",
    "Video",
    "Animation",
    "Audio",
    "Document",
    "Voice",
    "VideoNote",
    "Resolution",
    "MediaGroup",
    # Message creators
    "MessageCreator",
    "MessageSend",
    "Alert",
    "Toast",
    "LocationMessage",
    # Exceptions
    "CourierError",
    "APIException",
    "MissingTokenError",
    "UnsupportedContentError",
    "UnsupportedOptionError",
]
