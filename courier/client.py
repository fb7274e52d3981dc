"""CourierClient -- async Bot API client with upload de-duplication.

Every remote call is a coroutine.  Blocking ``requests`` I/O (including the
reads of path-backed media streams) is offloaded via
:func:`asyncio.to_thread`, so concurrent sends never block the event loop.

Media sends go through :class:`~courier.payload.MediaPayloadBuilder`, which
replaces already-uploaded media with the file id remembered in the
:class:`~courier.media_cache.MediaCache`.  After a successful send the file id
the API issued is written back to the cache under the media's local key, so
the next send of the same file is not uploaded again.

Usage::

    client = CourierClient(token)
    await client.send_photo(chat_id, Photo("banner.png"))   # uploads
    await client.send_photo(chat_id, Photo("banner.png"))   # reuses file_id
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import requests
from pydantic import BaseModel

from courier import config
from courier.content import Alert, LocationMessage, MarkupBuilder, MessageCreator, MessageSend, Toast
from courier.exceptions import APIException, MissingTokenError, UnsupportedContentError
from courier.logger import CourierLogger
from courier.media import (
    Animation,
    Audio,
    Document,
    Media,
    MediaGroup,
    MediaKind,
    Photo,
    Video,
    VideoNote,
    Voice,
)
from courier.media_cache import MediaCache, get_default_cache
from courier.models import File, Message, MessageId, User, WebhookInfo
from courier.payload import FormData, MediaPayloadBuilder, merge_options, to_jsonable

logger = CourierLogger.get_logger()

ChatId = Union[int, str]
Keyboard = Union[MarkupBuilder, BaseModel, Dict[str, Any], None]
Payload = Union[Dict[str, Any], FormData, None]


async def make_request(method: str, url: str, **kwargs: object) -> requests.Response:
    """Run a :mod:`requests` call inside a thread to keep the event loop free.

    *method* is the HTTP verb (``"get"``, ``"post"``, …).
    """
    func = getattr(requests, method.lower())
    return await asyncio.to_thread(func, url, **kwargs)


def extract_file_id(kind: MediaKind, message: Message) -> Optional[str]:
    """Return the file id the API issued for *kind* in *message*.

    Photos come back as several sizes in ascending order; the last (largest)
    one is the id worth remembering.
    """
    info = getattr(message, kind.value, None)
    if kind is MediaKind.PHOTO:
        info = info[-1] if info else None
    return info.file_id if info is not None else None


class CourierClient:
    """Async client for the Telegram Bot API.

    Args:
        token: Bot token.  Calls without one raise
            :class:`~courier.exceptions.MissingTokenError`.
        cache: File id cache; defaults to the process-wide cache.
        api_root: API root URL, ``https://api.telegram.org`` by default.
        timeout: Transport timeout in seconds, ``None`` for no timeout.
        parse_mode: Parse mode applied to texts and captions unless overridden.
    """

    _MEDIA_SENDERS: Dict[MediaKind, str] = {
        MediaKind.PHOTO: "send_photo",
        MediaKind.VIDEO: "send_video",
        MediaKind.ANIMATION: "send_animation",
        MediaKind.AUDIO: "send_audio",
        MediaKind.DOCUMENT: "send_document",
        MediaKind.VOICE: "send_voice",
        MediaKind.VIDEO_NOTE: "send_video_note",
    }

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        cache: Optional[MediaCache] = None,
        api_root: str = config.API_ROOT,
        timeout: Optional[float] = config.REQUEST_TIMEOUT,
        parse_mode: Optional[str] = config.DEFAULT_PARSE_MODE,
    ) -> None:
        self._token = token
        self._cache = cache if cache is not None else get_default_cache()
        self._builder = MediaPayloadBuilder(self._cache)
        self._api_root = api_root.rstrip("/")
        self._timeout = timeout
        self._parse_mode = parse_mode

    @property
    def cache(self) -> MediaCache:
        return self._cache

    # ------------------------------------------------------------------
    #  Internal helpers
    # ------------------------------------------------------------------

    async def call(self, token: str, method: str, payload: Payload = None) -> Any:
        """POST *payload* to *method* and return the ``result`` field.

        A :class:`FormData` payload is sent as multipart, a dict as JSON.

        Raises:
            APIException: On a non-2xx status or a body with ``"ok": false``.
            requests.RequestException: On transport-level failures.
        """
        url = f"{self._api_root}/bot{token}/{method}"
        kwargs: Dict[str, Any] = {"timeout": self._timeout}
        if isinstance(payload, FormData):
            kwargs["files"] = payload.as_multipart()
        elif payload is not None:
            kwargs["json"] = to_jsonable(payload)

        logger.debug("Calling Bot API", extra={"api_endpoint": method})
        try:
            response = await make_request("post", url, **kwargs)
        except requests.RequestException as exc:
            # requests puts the full URL, token included, into the message.
            error = str(exc).replace(token, "<token>")
            logger.error("Bot API request error", extra={"api_endpoint": method, "error": error})
            raise

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not response.ok or not body.get("ok"):
            exc = APIException(response.status_code, body)
            logger.error(
                "Bot API error",
                extra={"api_endpoint": method, "status_code": response.status_code, "description": exc.description},
            )
            raise exc
        return body.get("result")

    def _require_token(self, method: str) -> str:
        if not self._token:
            raise MissingTokenError(method)
        return self._token

    async def call_api(self, method: str, payload: Payload = None) -> Any:
        """Call *method* with the client's token."""
        token = self._require_token(method)
        return await self.call(token, method, payload)

    @staticmethod
    def _markup(keyboard: Keyboard) -> Optional[Dict[str, Any]]:
        if keyboard is None:
            return None
        if isinstance(keyboard, MarkupBuilder):
            return keyboard.build_markup()
        return keyboard  # type: ignore[return-value]

    def _with_keyboard(self, keyboard: Keyboard) -> Optional[Dict[str, Any]]:
        """Option overlay carrying ``reply_markup`` only when a keyboard is given."""
        if keyboard is None:
            return None
        return {"reply_markup": self._markup(keyboard)}

    # ------------------------------------------------------------------
    #  File id write-back
    # ------------------------------------------------------------------

    def save_media_file_id(self, key: str, kind: MediaKind, message: Message) -> Message:
        """Remember the file id issued for *kind* under *key* unless already cached."""
        if self._cache.has(key):
            return message
        file_id = extract_file_id(kind, message)
        if file_id is None:
            logger.warning(
                "Response carries no file id to cache",
                extra={"cache_key": key, "media_kind": kind.value, "message_id": message.message_id},
            )
            return message
        self._cache.store(key, file_id)
        return message

    async def _send_media(
        self,
        method: str,
        chat_id: ChatId,
        media: Media,
        keyboard: Keyboard,
        more_options: Optional[Mapping[str, Any]],
        expected: MediaKind,
    ) -> Message:
        if not isinstance(media, Media) or media.kind is not expected:
            raise UnsupportedContentError(f"{method} needs {expected.value} media, got {type(media).__name__}")
        self._require_token(method)

        defaults: Dict[str, Any] = {"chat_id": chat_id}
        if expected is not MediaKind.VIDEO_NOTE:
            defaults["parse_mode"] = self._parse_mode
        options = merge_options(
            defaults,
            media.extra_fields(),
            media.options,
            more_options,
            self._with_keyboard(keyboard),
            method=method,
        )

        with self._builder.build_form_data(expected.value, media, options) as form:
            result = await self.call_api(method, form)

        message = Message.model_validate(result)
        return self.save_media_file_id(media.cache_key, expected, message)

    # ------------------------------------------------------------------
    #  Bot
    # ------------------------------------------------------------------

    async def get_me(self) -> User:
        """Returns basic information about the bot."""
        return User.model_validate(await self.call_api("getMe"))

    async def set_webhook(self, url: str, more_options: Optional[Mapping[str, Any]] = None) -> bool:
        """Sets up a webhook; see https://core.telegram.org/bots/api#setwebhook"""
        payload = merge_options(more_options, {"url": url}, method="setWebhook")
        return bool(await self.call_api("setWebhook", payload))

    async def delete_webhook(self, drop_pending_updates: Optional[bool] = None) -> bool:
        payload = merge_options({"drop_pending_updates": drop_pending_updates}, method="deleteWebhook")
        return bool(await self.call_api("deleteWebhook", payload))

    async def get_webhook_info(self) -> WebhookInfo:
        return WebhookInfo.model_validate(await self.call_api("getWebhookInfo"))

    # ------------------------------------------------------------------
    #  Sending
    # ------------------------------------------------------------------

    async def send(
        self,
        chat_id: ChatId,
        content: Union[MessageCreator, str, Media, MediaGroup, None],
        keyboard: Keyboard = None,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> Union[Message, List[Message], None]:
        """Sends text, media, a media group or a message creator.

        The API method is chosen from the type of *content*.  A creator's
        ``options`` override *more_options*.  ``None`` content sends nothing.

        Raises:
            UnsupportedContentError: For content the client cannot send.
        """
        options: Dict[str, Any] = dict(more_options or {})

        if isinstance(content, MessageCreator):
            options = merge_options(options, content.options)
            if isinstance(content, MessageSend):
                content = content.content
            elif isinstance(content, (Alert, Toast)):
                content = content.text
            elif isinstance(content, LocationMessage):
                return await self.send_location(chat_id, content.latitude, content.longitude, keyboard, options)
            else:
                raise UnsupportedContentError(f"Unknown message creator {type(content).__name__}")

        if isinstance(content, MediaGroup):
            if keyboard is not None:
                logger.warning("Keyboards are not supported on media groups, ignoring", extra={"chat_id": chat_id})
            return await self.send_media_group(chat_id, content, options)

        if isinstance(content, Media):
            sender = self._MEDIA_SENDERS.get(content.kind) if content.kind else None
            if sender is None:
                raise UnsupportedContentError(
                    "Media file type is not defined. Don't use Media class, use Photo, Video class instead"
                )
            return await getattr(self, sender)(chat_id, content, keyboard, options)

        if content is None:
            return None
        if isinstance(content, str):
            return await self.send_message(chat_id, content, keyboard, options)
        raise UnsupportedContentError(f"Cannot send content of type {type(content).__name__}")

    async def send_message(
        self,
        chat_id: ChatId,
        text: str,
        keyboard: Keyboard = None,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> Message:
        """Sends a text message; see https://core.telegram.org/bots/api#sendmessage"""
        payload = merge_options(
            {"chat_id": chat_id, "text": text, "parse_mode": self._parse_mode},
            more_options,
            self._with_keyboard(keyboard),
            method="sendMessage",
        )
        return Message.model_validate(await self.call_api("sendMessage", payload))

    async def send_photo(
        self,
        chat_id: ChatId,
        photo: Photo,
        keyboard: Keyboard = None,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> Message:
        """Sends a photo; see https://core.telegram.org/bots/api#sendphoto"""
        return await self._send_media("sendPhoto", chat_id, photo, keyboard, more_options, MediaKind.PHOTO)

    async def send_video(
        self,
        chat_id: ChatId,
        video: Video,
        keyboard: Keyboard = None,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> Message:
        """Sends a video; its resolution is merged into the options."""
        return await self._send_media("sendVideo", chat_id, video, keyboard, more_options, MediaKind.VIDEO)

    async def send_animation(
        self,
        chat_id: ChatId,
        animation: Animation,
        keyboard: Keyboard = None,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> Message:
        return await self._send_media(
            "sendAnimation", chat_id, animation, keyboard, more_options, MediaKind.ANIMATION
        )

    async def send_audio(
        self,
        chat_id: ChatId,
        audio: Audio,
        keyboard: Keyboard = None,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> Message:
        return await self._send_media("sendAudio", chat_id, audio, keyboard, more_options, MediaKind.AUDIO)

    async def send_document(
        self,
        chat_id: ChatId,
        document: Document,
        keyboard: Keyboard = None,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> Message:
        return await self._send_media(
            "sendDocument", chat_id, document, keyboard, more_options, MediaKind.DOCUMENT
        )

    async def send_voice(
        self,
        chat_id: ChatId,
        voice: Voice,
        keyboard: Keyboard = None,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> Message:
        return await self._send_media("sendVoice", chat_id, voice, keyboard, more_options, MediaKind.VOICE)

    async def send_video_note(
        self,
        chat_id: ChatId,
        video_note: VideoNote,
        keyboard: Keyboard = None,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> Message:
        """Sends a rounded video message; no parse mode applies."""
        return await self._send_media(
            "sendVideoNote", chat_id, video_note, keyboard, more_options, MediaKind.VIDEO_NOTE
        )

    async def send_media_group(
        self,
        chat_id: ChatId,
        media_group: Union[MediaGroup, Iterable[Media]],
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> List[Message]:
        """Sends 2-10 media as an album.

        The API answers with one message per item in submission order; the
        i-th message's file id is cached under the i-th item's key.
        """
        self._require_token("sendMediaGroup")
        items = list(media_group)
        options = merge_options(more_options, method="sendMediaGroup")

        with self._builder.build_media_group_form_data(chat_id, items, options) as form:
            result = await self.call_api("sendMediaGroup", form)

        messages = [Message.model_validate(entry) for entry in result or []]
        if len(messages) != len(items):
            logger.warning(
                "Media group response size differs from request",
                extra={"chat_id": chat_id, "api_endpoint": "sendMediaGroup", "sent": len(items), "received": len(messages)},
            )
        for item, message in zip(items, messages):
            self.save_media_file_id(item.cache_key, item.kind, message)  # type: ignore[arg-type]
        return messages

    async def send_location(
        self,
        chat_id: ChatId,
        latitude: float,
        longitude: float,
        keyboard: Keyboard = None,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> Message:
        """Sends a point on the map; see https://core.telegram.org/bots/api#sendlocation"""
        payload = merge_options(
            {"chat_id": chat_id, "latitude": latitude, "longitude": longitude},
            more_options,
            self._with_keyboard(keyboard),
            method="sendLocation",
        )
        return Message.model_validate(await self.call_api("sendLocation", payload))

    # ------------------------------------------------------------------
    #  Callback queries
    # ------------------------------------------------------------------

    async def answer_callback_query(
        self,
        callback_query_id: str,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Answers an inline button click; see https://core.telegram.org/bots/api#answercallbackquery"""
        payload = merge_options(
            more_options, {"callback_query_id": callback_query_id}, method="answerCallbackQuery"
        )
        return bool(await self.call_api("answerCallbackQuery", payload))

    async def alert(
        self,
        callback_query_id: str,
        text: str,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Answers a callback query with a modal alert."""
        return await self.answer_callback_query(
            callback_query_id, merge_options(more_options, {"text": text, "show_alert": True})
        )

    async def toast(
        self,
        callback_query_id: str,
        text: str,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Answers a callback query with a notification at the top of the chat."""
        return await self.answer_callback_query(
            callback_query_id, merge_options(more_options, {"text": text, "show_alert": False})
        )

    # ------------------------------------------------------------------
    #  Files and existing messages
    # ------------------------------------------------------------------

    async def get_file(self, file_id: str) -> File:
        return File.model_validate(await self.call_api("getFile", {"file_id": file_id}))

    async def forward(
        self,
        message_id: int,
        from_chat_id: ChatId,
        to_chat_id: ChatId,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> Message:
        """Forwards a message; see https://core.telegram.org/bots/api#forwardmessage"""
        payload = merge_options(
            more_options,
            {"chat_id": to_chat_id, "from_chat_id": from_chat_id, "message_id": message_id},
            method="forwardMessage",
        )
        return Message.model_validate(await self.call_api("forwardMessage", payload))

    async def copy(
        self,
        message_id: int,
        from_chat_id: ChatId,
        to_chat_id: ChatId,
        keyboard: Keyboard = None,
        more_options: Optional[Mapping[str, Any]] = None,
    ) -> MessageId:
        """Copies a message without a link to the original."""
        payload = merge_options(
            more_options,
            self._with_keyboard(keyboard),
            {"message_id": message_id, "from_chat_id": from_chat_id, "chat_id": to_chat_id},
            method="copyMessage",
        )
        return MessageId.model_validate(await self.call_api("copyMessage", payload))


# ── Module-level default client ──────────────────────────────────────────────

_default_client: CourierClient | None = None


def get_default_client() -> CourierClient:
    """Return (and lazily create) a client configured from the environment."""
    global _default_client
    if _default_client is None:
        _default_client = CourierClient(config.BOT_TOKEN)
    return _default_client
