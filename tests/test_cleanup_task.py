"""Tests for the orphaned chunk sweep."""

import asyncio
from datetime import timedelta

import pytest

from chunkstore.chunk_storage import ChunkStore
from mediaserver.cleanup_task import OrphanedChunkCleaner, sweep_orphaned_chunks
from mediaserver.utils import get_current_time

from conftest import TEST_CHUNK_SIZE, byte_stream, upload_for


@pytest.fixture
def restarted_store(test_db):
    """
    A second store over the same database, standing in for the process
    after a restart: it holds none of the first store's open uploads.
    """
    return ChunkStore(chunk_size=TEST_CHUNK_SIZE)


def test_abandoned_pending_upload_is_swept(chunk_store, restarted_store):
    sink = chunk_store.begin_upload("crashed")
    sink.write(b"x" * 40)

    swept = sweep_orphaned_chunks(restarted_store, grace_seconds=0)

    assert swept == ["crashed"]
    assert restarted_store.get_upload("crashed") is None
    assert restarted_store.list_chunks("crashed") == []


def test_open_upload_is_not_swept(chunk_store):
    sink = chunk_store.begin_upload("in-flight")
    sink.write(b"x" * 40)

    assert sweep_orphaned_chunks(chunk_store, grace_seconds=0) == []
    assert len(chunk_store.list_chunks("in-flight")) == 2


def test_recent_pending_upload_is_not_swept(chunk_store, restarted_store):
    chunk_store.begin_upload("recent").write(b"x" * 20)

    assert sweep_orphaned_chunks(restarted_store, grace_seconds=3600) == []


def test_committed_upload_without_video_is_swept(chunk_store):
    sink = chunk_store.begin_upload("unreferenced")
    sink.write(b"y" * 20)
    chunk_store.finalize("unreferenced")

    assert sweep_orphaned_chunks(chunk_store, grace_seconds=0) == ["unreferenced"]
    assert chunk_store.get_upload("unreferenced") is None


@pytest.mark.asyncio
async def test_uploaded_video_is_kept(media_service, register):
    student = register("ann@example.com")
    video = await media_service.upload(upload_for(student), byte_stream(b"keep" * 10))

    assert media_service.chunk_store.get_upload(video.video_id).is_linked
    assert media_service.chunk_store.list_stale_uploads(get_current_time() + timedelta(hours=1)) == []
    assert sweep_orphaned_chunks(media_service.chunk_store, grace_seconds=0) == []
    _, stream = media_service.download(video.video_id)
    assert b"".join(stream) == b"keep" * 10


@pytest.mark.asyncio
async def test_cleaner_run_once(chunk_store, restarted_store):
    chunk_store.begin_upload("crashed").write(b"z" * 20)
    cleaner = OrphanedChunkCleaner(restarted_store, interval_seconds=3600, grace_seconds=0)

    swept = await cleaner.run_once()

    assert swept == ["crashed"]


@pytest.mark.asyncio
async def test_cleaner_start_and_stop(chunk_store):
    cleaner = OrphanedChunkCleaner(chunk_store, interval_seconds=3600)

    await cleaner.start()
    assert cleaner.running
    await asyncio.sleep(0)

    await cleaner.stop()
    assert not cleaner.running
