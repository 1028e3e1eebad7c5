"""Chunked binary object store: staged chunk writes, commit, ordered reads."""

import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

from chunkstore.checksum_validator import (
    IncrementalChecksumCalculator,
    compute_checksum,
    verify_chunk,
)
from common.constants import CHUNK_SIZE_BYTES, MAX_UPLOAD_BYTES
from common.database import connection_scope, get_db_connection, transaction
from common.exceptions import (
    ChunkIntegrityError,
    ChunkNotFoundError,
    PayloadTooLargeError,
    UploadFailedError,
)
from common.logging_config import get_logger
from common.types import ChunkDescriptor, UploadSummary

logger = get_logger(__name__)

UPLOAD_PENDING = "pending"
UPLOAD_COMMITTED = "committed"
UPLOAD_LINKED = "linked"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UploadRecord:
    file_id: str
    chunk_size: int
    state: str
    content_length: int
    chunk_count: int
    checksum: Optional[str]
    started_at: datetime
    last_write_at: datetime
    committed_at: Optional[datetime]

    @property
    def is_committed(self) -> bool:
        return self.state in (UPLOAD_COMMITTED, UPLOAD_LINKED)

    @property
    def is_linked(self) -> bool:
        return self.state == UPLOAD_LINKED


def _row_to_upload(row: sqlite3.Row) -> UploadRecord:
    return UploadRecord(
        file_id=row["file_id"],
        chunk_size=row["chunk_size"],
        state=row["state"],
        content_length=row["content_length"],
        chunk_count=row["chunk_count"],
        checksum=row["checksum"],
        started_at=datetime.fromisoformat(row["started_at"]),
        last_write_at=datetime.fromisoformat(row["last_write_at"]),
        committed_at=datetime.fromisoformat(row["committed_at"]) if row["committed_at"] else None,
    )


class UploadSink:
    """
    Write side of a single upload.

    Accepts pieces of any size, slices them into fixed-size chunks and
    persists each chunk as soon as it is full. Only the partial tail of the
    stream is held in memory.
    """

    def __init__(self, store: "ChunkStore", file_id: str, chunk_size: int, max_bytes: int):
        self.file_id = file_id
        self.chunk_size = chunk_size
        self.max_bytes = max_bytes
        self._store = store
        self._buffer = bytearray()
        self._next_index = 0
        self._bytes_received = 0
        self._digest = IncrementalChecksumCalculator()
        self._closed = False

    @property
    def bytes_received(self) -> int:
        return self._bytes_received

    @property
    def chunks_written(self) -> int:
        return self._next_index

    def write(self, data: bytes) -> None:
        """
        Append bytes to the upload, persisting every completed chunk.

        Raises:
            PayloadTooLargeError: If the stream grows past ``max_bytes``
            UploadFailedError: If the sink is closed or a chunk write fails
        """
        if self._closed:
            raise UploadFailedError(f"Upload {self.file_id} is no longer accepting data")
        if not data:
            return

        if self._bytes_received + len(data) > self.max_bytes:
            raise PayloadTooLargeError(
                f"Upload {self.file_id} exceeds the maximum size of {self.max_bytes} bytes"
            )

        self._bytes_received += len(data)
        self._digest.update(data)
        self._buffer.extend(data)

        while len(self._buffer) >= self.chunk_size:
            chunk_data = bytes(self._buffer[:self.chunk_size])
            del self._buffer[:self.chunk_size]
            self._persist(chunk_data)

    def abort(self) -> None:
        """
        Discard the upload: every chunk written so far and the staging record.
        """
        self._closed = True
        self._buffer.clear()
        self._store._release(self.file_id)
        self._store._discard(self.file_id)
        logger.info(f"Aborted upload {self.file_id} after {self._bytes_received} bytes")

    def _persist(self, chunk_data: bytes) -> None:
        self._store._write_chunk(self.file_id, self._next_index, chunk_data)
        self._next_index += 1

    def _close(self) -> str:
        if self._buffer:
            chunk_data = bytes(self._buffer)
            self._buffer.clear()
            self._persist(chunk_data)
        self._closed = True
        return self._digest.finalize()


class ChunkStore:
    """
    Splits byte streams into ordered chunks, persists them, and reassembles
    them on read.

    Chunks are written under a pending upload record and stay invisible to
    readers until ``finalize`` marks the record committed. The store has no
    knowledge of accounts or videos.
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE_BYTES, max_upload_bytes: int = MAX_UPLOAD_BYTES):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size
        self.max_upload_bytes = max_upload_bytes
        self._open_sinks: Dict[str, UploadSink] = {}
        self._lock = threading.Lock()

    def begin_upload(self, file_id: str, chunk_size: Optional[int] = None) -> UploadSink:
        """
        Open a write sink for a new file id.

        Raises:
            UploadFailedError: If the file id is already in use
        """
        if chunk_size is None:
            chunk_size = self.chunk_size
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

        now = _now().isoformat()
        try:
            with transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO uploads (file_id, chunk_size, state, started_at, last_write_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (file_id, chunk_size, UPLOAD_PENDING, now, now)
                )
        except sqlite3.IntegrityError:
            raise UploadFailedError(f"Upload {file_id} already exists")
        except sqlite3.Error as e:
            logger.error(f"Failed to open upload {file_id}: {e}", exc_info=True)
            raise UploadFailedError(f"Could not open upload {file_id}: {e}") from e

        sink = UploadSink(self, file_id, chunk_size, self.max_upload_bytes)
        with self._lock:
            self._open_sinks[file_id] = sink

        logger.debug(f"Opened upload {file_id} [chunk_size={chunk_size}]")
        return sink

    def finalize(self, file_id: str) -> UploadSummary:
        """
        Flush the tail chunk, reconcile what was persisted, and commit.

        Raises:
            UploadFailedError: If there is no open upload for the file id
            ChunkIntegrityError: If the persisted chunks disagree with the stream
        """
        with self._lock:
            sink = self._open_sinks.pop(file_id, None)
        if sink is None:
            raise UploadFailedError(f"No open upload for file {file_id}")

        try:
            checksum = sink._close()
            expected_chunks = sink.chunks_written
            expected_length = sink.bytes_received

            with transaction(immediate=True) as conn:
                row = conn.execute(
                    """
                    SELECT COUNT(*) AS chunk_count,
                           COALESCE(SUM(size), 0) AS content_length,
                           COALESCE(MAX(chunk_index), -1) AS max_index
                    FROM chunks WHERE file_id = ?
                    """,
                    (file_id,)
                ).fetchone()

                if (row["chunk_count"] != expected_chunks
                        or row["content_length"] != expected_length
                        or row["max_index"] != expected_chunks - 1):
                    raise ChunkIntegrityError(
                        f"Upload {file_id} persisted {row['chunk_count']} chunks / "
                        f"{row['content_length']} bytes, expected {expected_chunks} chunks / "
                        f"{expected_length} bytes"
                    )

                cursor = conn.execute(
                    """
                    UPDATE uploads
                    SET state = ?, content_length = ?, chunk_count = ?, checksum = ?, committed_at = ?
                    WHERE file_id = ? AND state = ?
                    """,
                    (UPLOAD_COMMITTED, expected_length, expected_chunks, checksum,
                     _now().isoformat(), file_id, UPLOAD_PENDING)
                )
                if cursor.rowcount != 1:
                    raise UploadFailedError(f"Upload record for {file_id} disappeared before commit")
        except sqlite3.Error as e:
            logger.error(f"Failed to finalize upload {file_id}: {e}", exc_info=True)
            self._discard(file_id)
            raise UploadFailedError(f"Could not finalize upload {file_id}: {e}") from e
        except Exception:
            self._discard(file_id)
            raise

        logger.info(f"Committed upload {file_id}: {expected_chunks} chunks, {expected_length} bytes")
        return UploadSummary(
            file_id=file_id,
            content_length=expected_length,
            chunk_count=expected_chunks,
            checksum=checksum,
        )

    def open_download(self, file_id: str) -> Iterator[bytes]:
        """
        Return a lazy iterator over the committed chunks of a file, in order.

        The lookup happens immediately, so a missing file fails here rather
        than on first iteration. Each call restarts from chunk 0.

        Raises:
            ChunkNotFoundError: If the file id has no committed upload
        """
        record = self.get_upload(file_id)
        if record is None or not record.is_committed:
            raise ChunkNotFoundError(f"No committed data for file {file_id}")
        return self._stream_chunks(record)

    def _stream_chunks(self, record: UploadRecord) -> Iterator[bytes]:
        bytes_streamed = 0
        logger.debug(
            f"Starting stream of file {record.file_id} "
            f"({record.chunk_count} chunks, {record.content_length} bytes)"
        )

        for chunk_index in range(record.chunk_count):
            descriptor, data = self._read_chunk(record.file_id, chunk_index)
            if descriptor is None:
                logger.error(
                    f"Chunk {chunk_index} of file {record.file_id} missing after "
                    f"{bytes_streamed}/{record.content_length} bytes"
                )
                raise ChunkIntegrityError(
                    f"Chunk {chunk_index} of file {record.file_id} is missing"
                )
            verify_chunk(descriptor, data)
            bytes_streamed += len(data)
            yield data

        if bytes_streamed != record.content_length:
            raise ChunkIntegrityError(
                f"File {record.file_id} streamed {bytes_streamed} bytes, expected {record.content_length}"
            )
        logger.debug(f"Finished stream of file {record.file_id}: {bytes_streamed} bytes")

    def _read_chunk(self, file_id: str, chunk_index: int):
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT size, checksum, data FROM chunks WHERE file_id = ? AND chunk_index = ?",
                (file_id, chunk_index)
            ).fetchone()
        if row is None:
            return None, None
        descriptor = ChunkDescriptor(
            file_id=file_id,
            chunk_index=chunk_index,
            size=row["size"],
            checksum=row["checksum"],
        )
        return descriptor, bytes(row["data"])

    def delete_all(self, file_id: str, conn: Optional[sqlite3.Connection] = None) -> int:
        """
        Remove every chunk and the upload record for a file id. Idempotent.

        Args:
            file_id: File whose data should be removed
            conn: Optional connection whose transaction the delete joins

        Returns:
            Number of chunks deleted
        """
        if conn is None:
            with transaction() as own_conn:
                deleted = self._delete_rows(own_conn, file_id)
        else:
            deleted = self._delete_rows(conn, file_id)
        logger.debug(f"Deleted {deleted} chunks [file_id={file_id}]")
        return deleted

    def get_upload(self, file_id: str) -> Optional[UploadRecord]:
        with get_db_connection() as conn:
            row = conn.execute("SELECT * FROM uploads WHERE file_id = ?", (file_id,)).fetchone()
        return _row_to_upload(row) if row else None

    def list_chunks(self, file_id: str) -> List[ChunkDescriptor]:
        """
        Describe the stored chunks of a file without loading payloads.
        """
        with get_db_connection() as conn:
            rows = conn.execute(
                """
                SELECT file_id, chunk_index, size, checksum FROM chunks
                WHERE file_id = ? ORDER BY chunk_index
                """,
                (file_id,)
            ).fetchall()
        return [
            ChunkDescriptor(
                file_id=row["file_id"],
                chunk_index=row["chunk_index"],
                size=row["size"],
                checksum=row["checksum"],
            )
            for row in rows
        ]

    def has_open_upload(self, file_id: str) -> bool:
        with self._lock:
            return file_id in self._open_sinks

    def mark_linked(self, file_id: str, conn: Optional[sqlite3.Connection] = None) -> bool:
        """
        Record that a committed upload is now referenced by its owner.

        Linked uploads are never returned by ``list_stale_uploads``.
        """
        with connection_scope(conn) as conn:
            cursor = conn.execute(
                "UPDATE uploads SET state = ? WHERE file_id = ? AND state = ?",
                (UPLOAD_LINKED, file_id, UPLOAD_COMMITTED)
            )
        return cursor.rowcount == 1

    def list_stale_uploads(self, older_than: datetime) -> List[UploadRecord]:
        """
        Uploads that stopped receiving data (pending) or were committed but
        never linked, before ``older_than``. Candidates for the orphan sweep.
        """
        cutoff = older_than.isoformat()
        with get_db_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM uploads
                WHERE (state = ? AND last_write_at < ?)
                   OR (state = ? AND committed_at < ?)
                ORDER BY started_at
                """,
                (UPLOAD_PENDING, cutoff, UPLOAD_COMMITTED, cutoff)
            ).fetchall()
        return [_row_to_upload(row) for row in rows]

    def _write_chunk(self, file_id: str, chunk_index: int, data: bytes) -> None:
        checksum = compute_checksum(data)
        try:
            with transaction() as conn:
                cursor = conn.execute(
                    "UPDATE uploads SET last_write_at = ? WHERE file_id = ? AND state = ?",
                    (_now().isoformat(), file_id, UPLOAD_PENDING)
                )
                if cursor.rowcount != 1:
                    raise UploadFailedError(f"Upload {file_id} is not open for writing")
                conn.execute(
                    """
                    INSERT INTO chunks (file_id, chunk_index, size, checksum, data)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (file_id, chunk_index, len(data), checksum, sqlite3.Binary(data))
                )
        except sqlite3.Error as e:
            logger.error(f"Failed to write chunk {chunk_index} of file {file_id}: {e}", exc_info=True)
            raise UploadFailedError(f"Could not persist chunk {chunk_index} of file {file_id}: {e}") from e

        logger.debug(f"Wrote chunk {chunk_index} for file {file_id} ({len(data)} bytes)")

    def _release(self, file_id: str) -> None:
        with self._lock:
            self._open_sinks.pop(file_id, None)

    def _discard(self, file_id: str) -> None:
        try:
            self.delete_all(file_id)
        except sqlite3.Error as e:
            logger.error(
                f"Failed to discard chunks of upload {file_id}, leaving them for the orphan sweep: {e}",
                exc_info=True
            )

    @staticmethod
    def _delete_rows(conn: sqlite3.Connection, file_id: str) -> int:
        cursor = conn.execute("DELETE FROM chunks WHERE file_id = ?", (file_id,))
        deleted = cursor.rowcount
        conn.execute("DELETE FROM uploads WHERE file_id = ?", (file_id,))
        return deleted
