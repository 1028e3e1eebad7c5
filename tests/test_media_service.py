"""Tests for the media catalog: uploads, visibility, playback and deletion."""

import sqlite3

import pytest

from common.exceptions import (
    AccountNotFoundError,
    DuplicateVideoError,
    PayloadTooLargeError,
    UploadFailedError,
    VideoNotFoundError,
)
from mediaserver.repositories.video_repository import VideoRepository

from conftest import byte_stream, upload_for


async def failing_stream(*pieces):
    for piece in pieces:
        yield piece
    raise ConnectionResetError("client went away")


def upload_count(test_db):
    conn = sqlite3.connect(test_db)
    try:
        uploads = conn.execute("SELECT COUNT(*) FROM uploads").fetchone()[0]
        chunks = conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]
    finally:
        conn.close()
    return uploads, chunks


class TestUpload:

    @pytest.mark.asyncio
    async def test_upload_and_download(self, media_service, register):
        student = register("ann@example.com", first_name="ann")
        payload = b"lesson-video-bytes" * 7

        video = await media_service.upload(
            upload_for(student, filename="intro.mp4"),
            byte_stream(payload[:10], payload[10:50], payload[50:])
        )

        assert video.content_length == len(payload)
        assert video.owner_email == "ann@example.com"
        assert video.owner_first_name == "ann"
        assert video.school_name == "Burnside"
        assert video.viewed is False
        assert video.filename.endswith("_intro.mp4")
        assert video.filename.split("_", 1)[0].isdigit()

        stored, stream = media_service.download(video.video_id)
        assert stored.content_type == "video/mp4"
        assert b"".join(stream) == payload

    @pytest.mark.asyncio
    async def test_zero_length_upload(self, media_service, register):
        student = register("ann@example.com")

        video = await media_service.upload(upload_for(student), byte_stream())

        _, stream = media_service.download(video.video_id)
        assert video.content_length == 0
        assert list(stream) == []

    @pytest.mark.asyncio
    async def test_duplicate_then_delete_then_reupload(self, media_service, register):
        student = register("ann@example.com")
        first = await media_service.upload(upload_for(student), byte_stream(b"one"))

        with pytest.raises(DuplicateVideoError):
            await media_service.upload(upload_for(student), byte_stream(b"two"))

        media_service.delete_video(first.video_id)
        second = await media_service.upload(upload_for(student), byte_stream(b"three"))

        assert second.video_id != first.video_id
        _, stream = media_service.download(second.video_id)
        assert b"".join(stream) == b"three"

    @pytest.mark.asyncio
    async def test_same_title_in_other_class_allowed(self, media_service, register):
        student = register("ann@example.com")
        await media_service.upload(upload_for(student, class_code="X1"), byte_stream(b"a"))

        video = await media_service.upload(upload_for(student, class_code="X2"), byte_stream(b"b"))

        assert video.class_code == "X2"

    @pytest.mark.asyncio
    async def test_interrupted_stream_leaves_nothing(self, media_service, register, test_db):
        student = register("ann@example.com")

        with pytest.raises(UploadFailedError):
            await media_service.upload(upload_for(student), failing_stream(b"x" * 40, b"y" * 40))

        assert media_service.list_for(student) == []
        assert upload_count(test_db) == (0, 0)

    @pytest.mark.asyncio
    async def test_too_large_upload_leaves_nothing(self, media_service, register, test_db):
        student = register("ann@example.com")

        with pytest.raises(PayloadTooLargeError):
            await media_service.upload(upload_for(student), byte_stream(b"z" * 600, b"z" * 600))

        assert media_service.list_for(student) == []
        assert upload_count(test_db) == (0, 0)

    @pytest.mark.asyncio
    async def test_record_insert_conflict_reclaims_chunks(self, media_service, register, test_db, monkeypatch):
        student = register("ann@example.com")
        await media_service.upload(upload_for(student), byte_stream(b"first"))
        monkeypatch.setattr(VideoRepository, "find_by_owner_title_class", staticmethod(lambda *args: None))

        with pytest.raises(DuplicateVideoError):
            await media_service.upload(upload_for(student), byte_stream(b"second" * 5))

        assert upload_count(test_db)[0] == 1
        assert len(media_service.list_for(student)) == 1


class TestVisibility:

    @pytest.mark.asyncio
    async def test_teacher_and_student_views(self, media_service, account_service, register):
        teacher = register("teach@example.com", account_type="teacher", license_key="TEACHER_KEY_2",
                           class_codes=["X1"])
        student_a = register("a@example.com", class_codes=["X1"])
        student_b = register("b@example.com", class_codes=["X1"])
        outsider = register("c@example.com", school_name="STAC", class_codes=["X1"])

        v1 = await media_service.upload(upload_for(student_a, title="A1"), byte_stream(b"1"))
        v2 = await media_service.upload(upload_for(student_b, title="B1"), byte_stream(b"2"))
        await media_service.upload(upload_for(student_b, title="B2", class_code="X2"), byte_stream(b"3"))
        await media_service.upload(upload_for(outsider, title="C1"), byte_stream(b"4"))

        teacher_view = {video.video_id for video in media_service.list_for(teacher)}
        assert teacher_view == {v1.video_id, v2.video_id}

        student_view = [video.video_id for video in media_service.list_for(student_a)]
        assert student_view == [v1.video_id]

        account_service.add_class_code("teach@example.com", "X2")
        assert len(media_service.list_videos("teach@example.com")) == 3

    def test_teacher_without_class_codes_sees_nothing(self, media_service, register):
        teacher = register("teach@example.com", account_type="teacher", license_key="TEACHER_KEY_2")
        assert media_service.list_for(teacher) == []

    def test_list_videos_unknown_account(self, media_service):
        with pytest.raises(AccountNotFoundError):
            media_service.list_videos("ghost@example.com")

    @pytest.mark.asyncio
    async def test_listing_is_newest_first(self, media_service, register):
        student = register("ann@example.com")
        older = await media_service.upload(upload_for(student, title="old"), byte_stream(b"o"))
        newer = await media_service.upload(upload_for(student, title="new"), byte_stream(b"n"))

        assert [video.video_id for video in media_service.list_for(student)] == [newer.video_id, older.video_id]


class TestViewAndDelete:

    @pytest.mark.asyncio
    async def test_mark_viewed_is_idempotent(self, media_service, register):
        student = register("ann@example.com")
        video = await media_service.upload(upload_for(student), byte_stream(b"v"))

        media_service.mark_viewed(video.video_id)
        media_service.mark_viewed(video.video_id)

        assert media_service.get_video(video.video_id).viewed is True

    def test_mark_viewed_unknown_video(self, media_service, test_db):
        with pytest.raises(VideoNotFoundError):
            media_service.mark_viewed("missing")

    @pytest.mark.asyncio
    async def test_delete_video_removes_chunks(self, media_service, register, test_db):
        student = register("ann@example.com")
        video = await media_service.upload(upload_for(student), byte_stream(b"d" * 50))

        media_service.delete_video(video.video_id)

        assert upload_count(test_db) == (0, 0)
        with pytest.raises(VideoNotFoundError):
            media_service.download(video.video_id)
        with pytest.raises(VideoNotFoundError):
            media_service.delete_video(video.video_id)

    @pytest.mark.asyncio
    async def test_list_chunks(self, media_service, register):
        student = register("ann@example.com")
        video = await media_service.upload(upload_for(student), byte_stream(b"k" * 40))

        descriptors = media_service.list_chunks(video.video_id)

        assert [d.size for d in descriptors] == [16, 16, 8]
        with pytest.raises(VideoNotFoundError):
            media_service.list_chunks("missing")
