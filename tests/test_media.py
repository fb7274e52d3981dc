"""Tests for media references, media kinds and media groups."""

import sys
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from courier.exceptions import UnsupportedContentError
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


# ── MediaReference ───────────────────────────────────────────────────────────


class TestMediaReference:
    """Validate coercion and cache keys."""

    def test_existing_file_is_path_backed(self, tmp_path: Path) -> None:
        path = tmp_path / "cat.jpg"
        path.write_bytes(b"jpeg")
        ref = MediaReference.of(str(path))
        assert ref.kind is MediaSource.PATH
        assert ref.cache_key == str(path)
        assert ref.upload_name == "cat.jpg"
        assert ref.needs_upload is True

    def test_path_object_is_path_backed_even_if_missing(self, tmp_path: Path) -> None:
        ref = MediaReference.of(tmp_path / "later.png")
        assert ref.kind is MediaSource.PATH

    def test_other_strings_are_identifiers(self) -> None:
        ref = MediaReference.of("AgACAgIAAxkBAAIB")
        assert ref.kind is MediaSource.FILE_ID
        assert ref.cache_key == "AgACAgIAAxkBAAIB"
        assert ref.needs_upload is False

    def test_missing_path_string_stays_path_backed(self) -> None:
        assert MediaReference.of("photos/cat_typo.jpg").kind is MediaSource.PATH
        assert MediaReference.of("banner.png").kind is MediaSource.PATH
        assert Photo("photos/cat_typo.jpg").media.needs_upload is True

    def test_url_is_identifier_backed(self) -> None:
        ref = MediaReference.of("https://example.com/cat.jpg")
        assert ref.kind is MediaSource.FILE_ID

    def test_buffer_key_is_content_digest(self) -> None:
        first = MediaReference.from_buffer(b"same bytes", filename="a.bin")
        second = MediaReference.of(b"same bytes")
        assert first.kind is MediaSource.BUFFER
        assert first.cache_key == second.cache_key
        assert first.cache_key.startswith("sha256:")
        assert MediaReference.of(b"other").cache_key != first.cache_key

    def test_buffer_upload_name(self) -> None:
        assert MediaReference.from_buffer(b"x", filename="a.bin").upload_name == "a.bin"
        assert MediaReference.from_buffer(b"x").upload_name is None

    def test_reference_is_immutable(self) -> None:
        ref = MediaReference.from_file_id("abc")
        with pytest.raises(ValidationError):
            ref.source = "other"  # type: ignore[misc]

    def test_source_must_match_kind(self) -> None:
        with pytest.raises(ValidationError):
            MediaReference(source="text", kind=MediaSource.BUFFER)

    def test_unsupported_value_rejected(self) -> None:
        with pytest.raises(UnsupportedContentError):
            MediaReference.of(42)  # type: ignore[arg-type]


# ── Media kinds ──────────────────────────────────────────────────────────────


class TestMediaKinds:
    """Validate media classes and their extra fields."""

    def test_kinds(self) -> None:
        assert Photo("id").kind is MediaKind.PHOTO
        assert Video("id").kind is MediaKind.VIDEO
        assert Animation("id").kind is MediaKind.ANIMATION
        assert Audio("id").kind is MediaKind.AUDIO
        assert Document("id").kind is MediaKind.DOCUMENT
        assert Voice("id").kind is MediaKind.VOICE
        assert VideoNote("id").kind is MediaKind.VIDEO_NOTE
        assert Media("id").kind is None

    def test_positional_and_keyword_media(self) -> None:
        assert Photo("id").media == Photo(media="id").media

    def test_cache_key_comes_from_media(self) -> None:
        assert Document("file-token").cache_key == "file-token"

    def test_video_resolution_is_merged(self) -> None:
        video = Video("id", resolution=Resolution(width=640, height=360))
        assert video.extra_fields() == {"width": 640, "height": 360}

    def test_video_without_resolution(self) -> None:
        assert Video("id").extra_fields() == {}

    def test_video_note_fields(self) -> None:
        assert VideoNote("id", length=240, duration=5).extra_fields() == {"length": 240, "duration": 5}

    def test_thumb_coerced(self) -> None:
        audio = Audio("id", thumb=b"png")
        assert audio.thumb is not None
        assert audio.thumb.kind is MediaSource.BUFFER

    def test_photo_rejects_thumb(self) -> None:
        with pytest.raises(ValidationError):
            Photo("id", thumb="thumb-id")


# ── MediaGroup ───────────────────────────────────────────────────────────────


class TestMediaGroup:
    """Validate media group construction."""

    def test_keeps_order(self) -> None:
        group = MediaGroup([Photo("a"), Video("b"), Document("c")])
        assert [item.cache_key for item in group] == ["a", "b", "c"]
        assert len(group) == 3
        assert group[1].kind is MediaKind.VIDEO

    def test_rejects_voice(self) -> None:
        with pytest.raises(UnsupportedContentError):
            MediaGroup([Photo("a"), Voice("b")])

    def test_rejects_non_media(self) -> None:
        with pytest.raises(UnsupportedContentError):
            MediaGroup([Photo("a"), "just text"])  # type: ignore[list-item]

    def test_rejects_too_few(self) -> None:
        with pytest.raises(ValueError):
            MediaGroup([Photo("a")])

    def test_rejects_too_many(self) -> None:
        with pytest.raises(ValueError):
            MediaGroup([Photo(str(i)) for i in range(11)])
