"""Tests for option merging, field serialisation and MediaPayloadBuilder."""

import json
import sys
import os
from pathlib import Path

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from courier.exceptions import UnsupportedContentError, UnsupportedOptionError
from courier.media import Audio, Document, MediaReference, Photo, Resolution, Video, Voice
from courier.media_cache import MediaCache
from courier.models import InlineKeyboardButton, InlineKeyboardMarkup
from courier.payload import (
    FormData,
    MediaPayloadBuilder,
    is_empty,
    merge_options,
    serialize_field,
)


@pytest.fixture()
def cache() -> MediaCache:
    return MediaCache()


@pytest.fixture()
def builder(cache: MediaCache) -> MediaPayloadBuilder:
    return MediaPayloadBuilder(cache)


def _write(tmp_path: Path, name: str, data: bytes = b"bytes") -> str:
    path = tmp_path / name
    path.write_bytes(data)
    return str(path)


# ── merge_options ────────────────────────────────────────────────────────────


class TestMergeOptions:
    """Validate precedence and recognised keys."""

    def test_later_sources_override(self) -> None:
        merged = merge_options({"parse_mode": "HTML", "chat_id": 1}, {"parse_mode": "MarkdownV2"})
        assert merged == {"parse_mode": "MarkdownV2", "chat_id": 1}

    def test_none_removes_key(self) -> None:
        assert merge_options({"parse_mode": "HTML"}, {"parse_mode": None}) == {}

    def test_skips_missing_sources(self) -> None:
        assert merge_options(None, {}, {"a": 1}) == {"a": 1}

    def test_unknown_key_rejected_for_known_method(self) -> None:
        with pytest.raises(UnsupportedOptionError) as exc_info:
            merge_options({"chat_id": 1, "colour": "red"}, method="sendPhoto")
        assert exc_info.value.keys == ["colour"]
        assert "sendPhoto" in str(exc_info.value)

    def test_unlisted_method_accepts_anything(self) -> None:
        assert merge_options({"anything": 1}, method="someFutureMethod") == {"anything": 1}


# ── Field helpers ────────────────────────────────────────────────────────────


class TestFieldHelpers:
    def test_is_empty(self) -> None:
        assert is_empty(None)
        assert is_empty("")
        assert is_empty([])
        assert is_empty({})
        assert not is_empty(0)
        assert not is_empty(False)
        assert not is_empty("x")

    def test_serialize_scalars(self) -> None:
        assert serialize_field("hi") == "hi"
        assert serialize_field(42) == "42"
        assert serialize_field(True) == "true"
        assert serialize_field(False) == "false"

    def test_serialize_structured_as_json(self) -> None:
        markup = {"inline_keyboard": [[{"text": "Go", "callback_data": "go"}]]}
        assert json.loads(serialize_field(markup)) == markup

    def test_serialize_model_drops_none(self) -> None:
        markup = InlineKeyboardMarkup(inline_keyboard=[[InlineKeyboardButton(text="Go", callback_data="go")]])
        assert json.loads(serialize_field(markup)) == {
            "inline_keyboard": [[{"text": "Go", "callback_data": "go"}]]
        }


# ── FormData ─────────────────────────────────────────────────────────────────


class TestFormData:
    def test_multipart_shape(self) -> None:
        form = FormData()
        form.append("chat_id", "42")
        form.append("photo", b"raw", "cat.jpg")
        form.append("thumb", b"raw")
        assert form.as_multipart() == [
            ("chat_id", (None, "42")),
            ("photo", ("cat.jpg", b"raw")),
            ("thumb", ("thumb", b"raw")),
        ]
        assert form.fields() == {"chat_id": "42"}
        assert form.binary_names() == ["photo", "thumb"]

    def test_close_releases_streams(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "a.bin")
        with FormData() as form:
            form.append_stream("document", path, "a.bin")
            stream = form.get("document").value
            assert not stream.closed
        assert stream.closed


# ── Single-item form ─────────────────────────────────────────────────────────


class TestBuildFormData:
    """Validate the single-media multipart body."""

    def test_cache_miss_attaches_stream(self, builder: MediaPayloadBuilder, tmp_path: Path) -> None:
        path = _write(tmp_path, "cat.jpg", b"jpeg-bytes")
        with builder.build_form_data("photo", Photo(path), {"chat_id": 42}) as form:
            part = form.get("photo")
            assert part.is_binary
            assert part.filename == "cat.jpg"
            assert part.value.read() == b"jpeg-bytes"
            assert form.fields() == {"chat_id": "42"}

    def test_cache_hit_sends_identifier_only(
        self, builder: MediaPayloadBuilder, cache: MediaCache, tmp_path: Path
    ) -> None:
        path = _write(tmp_path, "cat.jpg")
        cache.store(path, "AgAC-cached")
        form = builder.build_form_data("photo", Photo(path), {"chat_id": 42})
        assert form.binary_names() == []
        assert form.fields()["photo"] == "AgAC-cached"

    def test_buffer_attached_directly(self, builder: MediaPayloadBuilder) -> None:
        ref = MediaReference.from_buffer(b"ogg", filename="note.ogg")
        form = builder.build_form_data("voice", Voice(ref), {"chat_id": 1})
        part = form.get("voice")
        assert part.value == b"ogg"
        assert part.filename == "note.ogg"

    def test_identifier_reference_sent_as_text(self, builder: MediaPayloadBuilder) -> None:
        form = builder.build_form_data("document", Document("BQACAgIAAx"), {"chat_id": 1})
        assert form.fields()["document"] == "BQACAgIAAx"
        assert form.binary_names() == []

    def test_thumb_from_media(self, builder: MediaPayloadBuilder, tmp_path: Path) -> None:
        video = _write(tmp_path, "clip.mp4")
        thumb = _write(tmp_path, "clip.jpg")
        with builder.build_form_data("video", Video(video, thumb=thumb), {"chat_id": 1}) as form:
            assert form.binary_names() == ["video", "thumb"]

    def test_cached_thumb_sent_as_identifier(
        self, builder: MediaPayloadBuilder, cache: MediaCache, tmp_path: Path
    ) -> None:
        video = _write(tmp_path, "clip.mp4")
        thumb = _write(tmp_path, "clip.jpg")
        cache.store(thumb, "thumb-id")
        with builder.build_form_data("video", Video(video, thumb=thumb), {"chat_id": 1}) as form:
            assert form.binary_names() == ["video"]
            assert form.fields()["thumb"] == "thumb-id"

    def test_thumb_in_config_not_reappended_as_scalar(self, builder: MediaPayloadBuilder) -> None:
        form = builder.build_form_data("audio", Audio("audio-id"), {"chat_id": 1, "thumb": b"png"})
        assert form.names().count("thumb") == 1
        assert form.get("thumb").is_binary

    def test_empty_fields_omitted(self, builder: MediaPayloadBuilder) -> None:
        form = builder.build_form_data(
            "photo", Photo("photo-id"), {"chat_id": 7, "caption": "Hello", "reply_to_message_id": None, "parse_mode": ""}
        )
        assert form.names() == ["photo", "chat_id", "caption"]

    def test_structured_field_is_json(self, builder: MediaPayloadBuilder) -> None:
        markup = {"inline_keyboard": [[{"text": "Ok", "callback_data": "ok"}]]}
        form = builder.build_form_data("photo", Photo("photo-id"), {"chat_id": 7, "reply_markup": markup})
        assert json.loads(form.fields()["reply_markup"]) == markup

    def test_thumb_given_as_media_in_config(self, builder: MediaPayloadBuilder, tmp_path: Path) -> None:
        video = _write(tmp_path, "clip.mp4")
        thumb = _write(tmp_path, "clip.jpg")
        with builder.build_form_data("video", Video(video), {"chat_id": 1, "thumb": Photo(thumb)}) as form:
            assert form.binary_names() == ["video", "thumb"]
            assert form.get("thumb").filename == "clip.jpg"

    def test_missing_file_raises(self, builder: MediaPayloadBuilder, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            builder.build_form_data("photo", Photo(tmp_path / "missing.jpg"), {"chat_id": 1})

    def test_missing_path_string_raises_before_sending(self, builder: MediaPayloadBuilder) -> None:
        with pytest.raises(FileNotFoundError):
            builder.build_form_data("photo", Photo("photos/cat_typo.jpg"), {"chat_id": 1})


# ── Media group form ─────────────────────────────────────────────────────────


class TestBuildMediaGroupFormData:
    """Validate placeholders, inline identifiers and binary parts."""

    def test_mixed_hits_and_misses(
        self, builder: MediaPayloadBuilder, cache: MediaCache, tmp_path: Path
    ) -> None:
        first = _write(tmp_path, "0.jpg")
        second = _write(tmp_path, "1.jpg")
        third = _write(tmp_path, "2.jpg")
        cache.store(second, "cached-1")

        with builder.build_media_group_form_data(42, [Photo(first), Photo(second), Photo(third)]) as form:
            descriptors = json.loads(form.fields()["media"])
            assert [d["media"] for d in descriptors] == ["attach://0", "cached-1", "attach://2"]
            assert [d["type"] for d in descriptors] == ["photo", "photo", "photo"]
            assert form.binary_names() == ["0", "2"]
            assert form.fields()["chat_id"] == "42"

    def test_thumb_placeholder(self, builder: MediaPayloadBuilder, tmp_path: Path) -> None:
        video = _write(tmp_path, "clip.mp4")
        thumb = _write(tmp_path, "clip.jpg")
        items = [Video(video, thumb=thumb), Photo("photo-id")]
        with builder.build_media_group_form_data(1, items) as form:
            descriptors = json.loads(form.fields()["media"])
            assert descriptors[0]["thumb"] == "attach://0_thumb"
            assert "thumb" not in descriptors[1]
            assert form.binary_names() == ["0", "0_thumb"]

    def test_metadata_merged_into_descriptor(self, builder: MediaPayloadBuilder) -> None:
        items = [
            Video("video-id", resolution=Resolution(width=1280, height=720), options={"caption": "Trip"}),
            Document("doc-id", options={"caption": None}),
        ]
        descriptors = json.loads(builder.build_media_group_form_data(1, items).fields()["media"])
        assert descriptors[0] == {
            "type": "video",
            "media": "video-id",
            "width": 1280,
            "height": 720,
            "caption": "Trip",
        }
        assert descriptors[1] == {"type": "document", "media": "doc-id"}

    def test_batch_options_appended(self, builder: MediaPayloadBuilder) -> None:
        form = builder.build_media_group_form_data(
            1, [Photo("a"), Photo("b")], {"disable_notification": True, "chat_id": 999}
        )
        assert form.fields()["disable_notification"] == "true"
        assert form.fields()["chat_id"] == "1"

    def test_unsupported_kind_rejected(self, builder: MediaPayloadBuilder) -> None:
        with pytest.raises(UnsupportedContentError):
            builder.build_media_group_form_data(1, [Photo("a"), Voice("b")])

    def test_reserved_item_option_rejected(self, builder: MediaPayloadBuilder) -> None:
        with pytest.raises(UnsupportedOptionError):
            builder.describe_group_item(0, Photo("a", options={"media": "other"}))
