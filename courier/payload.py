"""Request bodies for media sends.

:class:`MediaPayloadBuilder` turns media plus call options into a single
multipart body.  For every media reference it asks the
:class:`~courier.media_cache.MediaCache` first: a cached file id is sent as a
plain string field, anything else is attached as a binary part.

Media groups travel as one JSON-encoded ``media`` field.  Items that need an
upload reference their binary part with an ``attach://<name>`` placeholder;
the part itself is appended to the same body under ``<name>``.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import IO, Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple, Union

from pydantic import BaseModel

from courier.exceptions import UnsupportedOptionError
from courier.logger import CourierLogger
from courier.media import Media, MediaReference, MediaSource, check_group_item
from courier.media_cache import MediaCache

logger = CourierLogger.get_logger()

THUMB_FIELD = "thumb"
ATTACH_PREFIX = "attach://"

# ── Recognized option keys per API method ───────────────────────────────────

_COMMON_SEND = frozenset({
    "chat_id",
    "message_thread_id",
    "disable_notification",
    "protect_content",
    "reply_to_message_id",
    "allow_sending_without_reply",
    "reply_markup",
})
_CAPTION = frozenset({"caption", "parse_mode", "caption_entities"})

RECOGNIZED_OPTIONS: Dict[str, frozenset[str]] = {
    "sendMessage": _COMMON_SEND | {"text", "parse_mode", "entities", "disable_web_page_preview"},
    "sendPhoto": _COMMON_SEND | _CAPTION | {"photo", "has_spoiler"},
    "sendVideo": _COMMON_SEND | _CAPTION | {
        "video", "duration", "width", "height", "thumb", "supports_streaming", "has_spoiler",
    },
    "sendAnimation": _COMMON_SEND | _CAPTION | {
        "animation", "duration", "width", "height", "thumb", "has_spoiler",
    },
    "sendAudio": _COMMON_SEND | _CAPTION | {"audio", "duration", "performer", "title", "thumb"},
    "sendDocument": _COMMON_SEND | _CAPTION | {"document", "thumb", "disable_content_type_detection"},
    "sendVoice": _COMMON_SEND | _CAPTION | {"voice", "duration"},
    "sendVideoNote": _COMMON_SEND | {"video_note", "duration", "length", "thumb"},
    "sendMediaGroup": (_COMMON_SEND - {"reply_markup"}) | {"media"},
    "sendLocation": _COMMON_SEND | {
        "latitude", "longitude", "horizontal_accuracy", "live_period", "heading", "proximity_alert_radius",
    },
    "forwardMessage": frozenset({
        "chat_id", "message_thread_id", "from_chat_id", "message_id", "disable_notification", "protect_content",
    }),
    "copyMessage": _COMMON_SEND | _CAPTION | {"from_chat_id", "message_id"},
    "answerCallbackQuery": frozenset({"callback_query_id", "text", "show_alert", "url", "cache_time"}),
    "setWebhook": frozenset({
        "url", "certificate", "ip_address", "max_connections", "allowed_updates",
        "drop_pending_updates", "secret_token",
    }),
    "deleteWebhook": frozenset({"drop_pending_updates"}),
}

# Descriptor keys the builder owns inside a media group item.
_RESERVED_ITEM_KEYS = frozenset({"type", "media", THUMB_FIELD})


# ── Option helpers ───────────────────────────────────────────────────────────


def merge_options(*sources: Optional[Mapping[str, Any]], method: Optional[str] = None) -> Dict[str, Any]:
    """Merge option mappings; later sources override earlier ones.

    A ``None`` value removes the key, so a later source can cancel a default.
    When *method* has an entry in :data:`RECOGNIZED_OPTIONS`, unknown keys
    raise :class:`~courier.exceptions.UnsupportedOptionError`.
    """
    merged: Dict[str, Any] = {}
    for source in sources:
        if source:
            merged.update(source)
    merged = {key: value for key, value in merged.items() if value is not None}

    allowed = RECOGNIZED_OPTIONS.get(method) if method else None
    if allowed is not None:
        unknown = set(merged) - allowed
        if unknown:
            raise UnsupportedOptionError(method, unknown)
    return merged


def is_empty(value: Any) -> bool:
    """``None``, ``""`` and empty collections are empty; ``0`` and ``False`` are not."""
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


def to_jsonable(value: Any) -> Any:
    """Recursively convert models and enums into plain JSON-compatible data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(key): to_jsonable(item) for key, item in value.items() if item is not None}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


def serialize_field(value: Any) -> str:
    """Render a scalar or structured value as the text of a multipart field."""
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(to_jsonable(value), ensure_ascii=False, separators=(",", ":"))


# ── Multipart body ───────────────────────────────────────────────────────────


class FormPart(NamedTuple):
    name: str
    value: Union[str, bytes, IO[bytes]]
    filename: Optional[str] = None

    @property
    def is_binary(self) -> bool:
        return not isinstance(self.value, str)


class FormData:
    """Ordered multipart body with text and binary parts.

    Streams opened for path-backed media are owned by the form and closed by
    :meth:`close` (or on leaving a ``with`` block).
    """

    def __init__(self) -> None:
        self._parts: List[FormPart] = []
        self._streams: List[IO[bytes]] = []

    def append(self, name: str, value: Union[str, bytes, IO[bytes]], filename: Optional[str] = None) -> None:
        self._parts.append(FormPart(name, value, filename))

    def append_stream(self, name: str, path: str, filename: Optional[str] = None) -> None:
        stream = open(path, "rb")
        self._streams.append(stream)
        self.append(name, stream, filename)

    def names(self) -> List[str]:
        return [part.name for part in self._parts]

    def fields(self) -> Dict[str, str]:
        """Text parts keyed by name."""
        return {part.name: part.value for part in self._parts if not part.is_binary}  # type: ignore[misc]

    def binary_names(self) -> List[str]:
        return [part.name for part in self._parts if part.is_binary]

    def get(self, name: str) -> Optional[FormPart]:
        for part in self._parts:
            if part.name == name:
                return part
        return None

    def as_multipart(self) -> List[Tuple[str, Tuple[Optional[str], Any]]]:
        """Return the ``files=`` argument for :func:`requests.post`.

        Text parts carry no file name, binary parts always carry one since the
        Bot API only treats named parts as uploads.
        """
        multipart: List[Tuple[str, Tuple[Optional[str], Any]]] = []
        for part in self._parts:
            if part.is_binary:
                multipart.append((part.name, (part.filename or part.name, part.value)))
            else:
                multipart.append((part.name, (None, part.value)))
        return multipart

    def close(self) -> None:
        for stream in self._streams:
            stream.close()
        self._streams.clear()

    def __enter__(self) -> "FormData":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._parts)


# ── Builder ──────────────────────────────────────────────────────────────────


class MediaPayloadBuilder:
    """Builds multipart bodies, reusing cached file ids instead of uploading."""

    def __init__(self, cache: MediaCache) -> None:
        self._cache = cache

    @property
    def cache(self) -> MediaCache:
        return self._cache

    def resolve(self, reference: MediaReference) -> Optional[str]:
        """Return the string the API can use without an upload, if any.

        That is the cached file id, or the token itself for identifier-backed
        references.  ``None`` means the bytes must be attached.
        """
        file_id = self._cache.lookup(reference.cache_key)
        if file_id is not None:
            logger.debug("Media cache hit", extra={"cache_key": reference.cache_key, "file_id": file_id})
            return file_id
        if not reference.needs_upload:
            return reference.source  # type: ignore[return-value]
        return None

    def append_media(self, form: FormData, name: str, reference: MediaReference) -> None:
        """Append *reference* under *name*: a file id when known, else its bytes."""
        resolved = self.resolve(reference)
        if resolved is not None:
            form.append(name, resolved)
        else:
            self._append_binary(form, name, reference)

    @staticmethod
    def _append_binary(form: FormData, name: str, reference: MediaReference) -> None:
        if reference.kind is MediaSource.PATH:
            form.append_stream(name, reference.source, reference.upload_name)  # type: ignore[arg-type]
        else:
            form.append(name, reference.source, reference.upload_name)

    @staticmethod
    def append_fields(form: FormData, config: Mapping[str, Any]) -> None:
        """Append every non-empty option; structured values become JSON text."""
        for key, value in config.items():
            if is_empty(value):
                continue
            form.append(key, serialize_field(value))

    def build_form_data(self, field: str, media: Media, config: Mapping[str, Any]) -> FormData:
        """Body for a single-media send (sendPhoto, sendVideo, ...).

        The thumbnail comes from ``config["thumb"]`` when given, else from
        ``media.thumb``; it is never appended a second time as a scalar.
        """
        options = dict(config)
        options.pop(field, None)
        thumb = options.pop(THUMB_FIELD, None) or media.thumb
        if isinstance(thumb, Media):
            thumb = thumb.media

        form = FormData()
        try:
            self.append_media(form, field, media.media)
            if thumb is not None:
                self.append_media(form, THUMB_FIELD, MediaReference.of(thumb))
            self.append_fields(form, options)
        except BaseException:
            form.close()
            raise
        return form

    def build_attach_form_data(self, config: Mapping[str, Any]) -> FormData:
        """Body made of option fields only."""
        form = FormData()
        self.append_fields(form, config)
        return form

    def describe_group_item(self, index: int, item: Media) -> Dict[str, Any]:
        """JSON descriptor of the *index*-th media group item."""
        check_group_item(item)
        reserved = _RESERVED_ITEM_KEYS & set(item.options)
        if reserved:
            raise UnsupportedOptionError("sendMediaGroup item", reserved)

        descriptor: Dict[str, Any] = {
            "type": item.kind.value,  # type: ignore[union-attr]
            "media": self.resolve(item.media) or f"{ATTACH_PREFIX}{index}",
        }
        if item.thumb is not None:
            descriptor[THUMB_FIELD] = self.resolve(item.thumb) or f"{ATTACH_PREFIX}{index}_thumb"
        descriptor.update(item.extra_fields())
        descriptor.update(to_jsonable({k: v for k, v in item.options.items() if not is_empty(v)}))
        return descriptor

    def build_media_group_form_data(
        self,
        chat_id: Union[int, str],
        items: Iterable[Media],
        options: Optional[Mapping[str, Any]] = None,
    ) -> FormData:
        """Body for sendMediaGroup: one JSON ``media`` field plus binary parts."""
        items = list(items)
        descriptors = [self.describe_group_item(index, item) for index, item in enumerate(items)]
        form = self.build_attach_form_data(merge_options(options, {"chat_id": chat_id, "media": descriptors}))

        try:
            for index, item in enumerate(items):
                if self.resolve(item.media) is None:
                    self._append_binary(form, str(index), item.media)
                if item.thumb is not None and self.resolve(item.thumb) is None:
                    self._append_binary(form, f"{index}_thumb", item.thumb)
        except BaseException:
            form.close()
            raise
        return form
