"""Tests for the chunk store: staged writes, commit, ordered reads and deletion."""

import sqlite3

import pytest

from chunkstore.checksum_validator import compute_checksum
from common.exceptions import (
    ChunkIntegrityError,
    ChunkNotFoundError,
    PayloadTooLargeError,
    UploadFailedError,
)

from conftest import TEST_CHUNK_SIZE


def store_bytes(store, file_id, data, piece_size=7):
    sink = store.begin_upload(file_id)
    for start in range(0, len(data), piece_size):
        sink.write(data[start:start + piece_size])
    return store.finalize(file_id)


def read_all(store, file_id):
    return b"".join(store.open_download(file_id))


class TestRoundTrip:
    """Bytes written through a sink come back unchanged."""

    @pytest.mark.parametrize("length", [0, 1, TEST_CHUNK_SIZE - 1, TEST_CHUNK_SIZE,
                                        TEST_CHUNK_SIZE + 1, TEST_CHUNK_SIZE * 3, 500])
    def test_round_trip(self, chunk_store, length):
        data = bytes((i * 31) % 256 for i in range(length))

        summary = store_bytes(chunk_store, "file-1", data)

        assert summary.content_length == length
        assert summary.checksum == compute_checksum(data)
        assert read_all(chunk_store, "file-1") == data

    def test_chunk_count_matches_length(self, chunk_store):
        summary = store_bytes(chunk_store, "exact", b"a" * (TEST_CHUNK_SIZE * 3))
        assert summary.chunk_count == 3

        summary = store_bytes(chunk_store, "tail", b"a" * (TEST_CHUNK_SIZE * 3 + 1))
        assert summary.chunk_count == 4

        summary = store_bytes(chunk_store, "empty", b"")
        assert summary.chunk_count == 0

    def test_chunks_are_full_except_last(self, chunk_store):
        store_bytes(chunk_store, "file-1", b"x" * 40, piece_size=3)

        descriptors = chunk_store.list_chunks("file-1")

        assert [d.chunk_index for d in descriptors] == [0, 1, 2]
        assert [d.size for d in descriptors] == [16, 16, 8]

    def test_large_single_write_is_sliced(self, chunk_store):
        data = b"0123456789" * 10
        sink = chunk_store.begin_upload("file-1")
        sink.write(data)
        assert sink.chunks_written == len(data) // TEST_CHUNK_SIZE
        chunk_store.finalize("file-1")

        assert read_all(chunk_store, "file-1") == data

    def test_each_download_restarts_from_first_chunk(self, chunk_store):
        data = b"abcdefghij" * 5
        store_bytes(chunk_store, "file-1", data)

        first = chunk_store.open_download("file-1")
        assert next(first) == data[:TEST_CHUNK_SIZE]

        assert read_all(chunk_store, "file-1") == data

    def test_empty_upload_yields_nothing(self, chunk_store):
        store_bytes(chunk_store, "empty", b"")
        assert list(chunk_store.open_download("empty")) == []


class TestUploadLifecycle:
    """Pending uploads stay invisible until committed."""

    def test_pending_upload_not_readable(self, chunk_store):
        sink = chunk_store.begin_upload("file-1")
        sink.write(b"z" * 40)

        with pytest.raises(ChunkNotFoundError):
            chunk_store.open_download("file-1")

        record = chunk_store.get_upload("file-1")
        assert record is not None
        assert not record.is_committed

    def test_unknown_file_not_found(self, chunk_store):
        with pytest.raises(ChunkNotFoundError):
            chunk_store.open_download("missing")

    def test_abort_removes_written_chunks(self, chunk_store, test_db):
        sink = chunk_store.begin_upload("file-1")
        sink.write(b"z" * 40)
        assert sink.chunks_written == 2

        sink.abort()

        assert chunk_store.get_upload("file-1") is None
        assert chunk_store.list_chunks("file-1") == []
        assert not chunk_store.has_open_upload("file-1")

    def test_write_after_abort_rejected(self, chunk_store):
        sink = chunk_store.begin_upload("file-1")
        sink.abort()

        with pytest.raises(UploadFailedError):
            sink.write(b"late")

    def test_duplicate_file_id_rejected(self, chunk_store):
        chunk_store.begin_upload("file-1")

        with pytest.raises(UploadFailedError):
            chunk_store.begin_upload("file-1")

    def test_finalize_without_open_upload(self, chunk_store):
        with pytest.raises(UploadFailedError):
            chunk_store.finalize("never-opened")

    def test_payload_too_large(self, chunk_store):
        sink = chunk_store.begin_upload("file-1")
        sink.write(b"a" * 1000)

        with pytest.raises(PayloadTooLargeError):
            sink.write(b"a" * 100)

        assert isinstance(PayloadTooLargeError("x"), UploadFailedError)

    def test_finalize_commits_record(self, chunk_store):
        store_bytes(chunk_store, "file-1", b"q" * 20)

        record = chunk_store.get_upload("file-1")
        assert record.is_committed
        assert record.content_length == 20
        assert record.chunk_count == 2
        assert record.committed_at is not None

    @pytest.mark.parametrize("chunk_size", [0, -1])
    def test_non_positive_chunk_size_rejected(self, chunk_store, chunk_size):
        with pytest.raises(ValueError):
            chunk_store.begin_upload("file-1", chunk_size=chunk_size)

        assert chunk_store.get_upload("file-1") is None

    def test_mark_linked(self, chunk_store):
        assert not chunk_store.mark_linked("file-1")
        store_bytes(chunk_store, "file-1", b"q" * 20)

        assert chunk_store.mark_linked("file-1")
        assert not chunk_store.mark_linked("file-1")

        record = chunk_store.get_upload("file-1")
        assert record.is_linked
        assert record.is_committed
        assert read_all(chunk_store, "file-1") == b"q" * 20


class TestIntegrity:
    """Reads detect gaps and corruption."""

    def test_missing_chunk_detected(self, chunk_store, test_db):
        store_bytes(chunk_store, "file-1", b"m" * 48)

        conn = sqlite3.connect(test_db)
        conn.execute("DELETE FROM chunks WHERE file_id = ? AND chunk_index = 1", ("file-1",))
        conn.commit()
        conn.close()

        stream = chunk_store.open_download("file-1")
        assert next(stream) == b"m" * 16
        with pytest.raises(ChunkIntegrityError):
            next(stream)

    def test_corrupted_chunk_detected(self, chunk_store, test_db):
        store_bytes(chunk_store, "file-1", b"c" * 32)

        conn = sqlite3.connect(test_db)
        conn.execute(
            "UPDATE chunks SET data = ? WHERE file_id = ? AND chunk_index = 0",
            (sqlite3.Binary(b"d" * 16), "file-1")
        )
        conn.commit()
        conn.close()

        with pytest.raises(ChunkIntegrityError):
            read_all(chunk_store, "file-1")


class TestDeleteAll:

    def test_delete_all_is_idempotent(self, chunk_store):
        store_bytes(chunk_store, "file-1", b"d" * 40)

        assert chunk_store.delete_all("file-1") == 3
        assert chunk_store.delete_all("file-1") == 0

        with pytest.raises(ChunkNotFoundError):
            chunk_store.open_download("file-1")

    def test_delete_all_leaves_other_files(self, chunk_store):
        store_bytes(chunk_store, "file-1", b"1" * 20)
        store_bytes(chunk_store, "file-2", b"2" * 20)

        chunk_store.delete_all("file-1")

        assert read_all(chunk_store, "file-2") == b"2" * 20
