"""Tests for the checks shared by post create/update and media upload."""

from datetime import datetime, timedelta, timezone
import uuid

import pytest

from src.services import validation
from src.services.errors import ValidationError
from src.models.media import MAX_IMAGE_SIZE, MAX_VIDEO_SIZE
from src.models.post import Platform
from src.utils import utcnow

from conftest import OWNER, OTHER_OWNER


class TestValidateContent:

    def test_accepts_single_character(self):
        assert validation.validate_content("a") == "a"

    def test_accepts_maximum_length(self):
        content = "x" * 5000
        assert validation.validate_content(content) == content

    def test_rejects_over_maximum(self):
        with pytest.raises(ValidationError, match="maximum length"):
            validation.validate_content("x" * 5001)

    @pytest.mark.parametrize("content", ["", "   ", "\n\t", None])
    def test_rejects_empty_or_blank(self, content):
        with pytest.raises(ValidationError, match="cannot be empty"):
            validation.validate_content(content)

    def test_length_is_measured_after_trimming(self):
        content = "  " + "x" * 5000 + "  "
        assert validation.validate_content(content) == content


class TestValidatePlatforms:

    def test_accepts_enum_and_strings(self):
        assert validation.validate_platforms([Platform.TWITTER, "linkedin"]) == ["twitter", "linkedin"]

    def test_duplicates_collapse(self):
        assert validation.validate_platforms(["bluesky", "bluesky", "threads"]) == ["bluesky", "threads"]

    @pytest.mark.parametrize("platforms", [[], None])
    def test_rejects_empty(self, platforms):
        with pytest.raises(ValidationError, match="At least one platform"):
            validation.validate_platforms(platforms)

    def test_rejects_unknown_platform(self):
        with pytest.raises(ValidationError, match="Unsupported platform"):
            validation.validate_platforms(["myspace"])


class TestValidateScheduledAt:

    def test_accepts_future(self):
        future = utcnow() + timedelta(minutes=5)
        assert validation.validate_scheduled_at(future) == future

    def test_rejects_now(self):
        now = utcnow()
        with pytest.raises(ValidationError, match="in the future"):
            validation.validate_scheduled_at(now, now=now)

    def test_rejects_past(self):
        with pytest.raises(ValidationError, match="in the future"):
            validation.validate_scheduled_at(utcnow() - timedelta(seconds=1))

    def test_aware_datetimes_are_normalized_to_naive_utc(self):
        now = datetime(2030, 1, 1, 12, 0, 0)
        aware = datetime(2030, 1, 1, 14, 30, tzinfo=timezone(timedelta(hours=2)))
        result = validation.validate_scheduled_at(aware, now=now)
        assert result == datetime(2030, 1, 1, 12, 30)
        assert result.tzinfo is None

    def test_rejects_missing(self):
        with pytest.raises(ValidationError):
            validation.validate_scheduled_at(None)


class TestValidateMediaUpload:

    def test_image_at_limit(self):
        validation.validate_media_upload("image", "image/png", MAX_IMAGE_SIZE)

    def test_image_over_limit(self):
        with pytest.raises(ValidationError, match="Image size exceeds limit of 10MB"):
            validation.validate_media_upload("image", "image/png", MAX_IMAGE_SIZE + 1)

    def test_video_allows_larger_files(self):
        validation.validate_media_upload("video", "video/mp4", MAX_IMAGE_SIZE * 5)

    def test_video_over_limit(self):
        with pytest.raises(ValidationError, match="Video size exceeds limit of 100MB"):
            validation.validate_media_upload("video", "video/mp4", MAX_VIDEO_SIZE + 1)

    def test_rejects_unknown_type(self):
        with pytest.raises(ValidationError, match="Unsupported media type"):
            validation.validate_media_upload("audio", "audio/mpeg", 10)

    def test_rejects_mismatched_mime(self):
        with pytest.raises(ValidationError, match="does not match"):
            validation.validate_media_upload("image", "video/mp4", 10)


class TestValidateMediaRefs:

    async def test_keeps_order_and_duplicates(self, session, make_media):
        first = await make_media()
        second = await make_media()
        refs = [second.id, first.id, second.id]
        result = await validation.validate_media_refs(session, OWNER, refs)
        assert result == [str(second.id), str(first.id), str(second.id)]

    async def test_none_is_empty(self, session):
        assert await validation.validate_media_refs(session, OWNER, None) == []

    async def test_rejects_foreign_media(self, session, make_media):
        mine = await make_media()
        theirs = await make_media(owner=OTHER_OWNER)
        with pytest.raises(ValidationError, match="Invalid media reference"):
            await validation.validate_media_refs(session, OWNER, [mine.id, theirs.id])

    async def test_rejects_unknown_id(self, session):
        with pytest.raises(ValidationError, match="Invalid media reference"):
            await validation.validate_media_refs(session, OWNER, [uuid.uuid4()])

    async def test_rejects_malformed_id(self, session):
        with pytest.raises(ValidationError, match="Invalid media reference"):
            await validation.validate_media_refs(session, OWNER, ["not-a-uuid"])
