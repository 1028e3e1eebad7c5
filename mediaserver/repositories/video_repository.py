"""Video metadata repository for database operations."""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from common.database import connection_scope, get_db_connection
from common.logging_config import get_logger
from common.types import AccountType

logger = get_logger(__name__)

VIDEO_COLUMNS = """video_id, filename, content_length, chunk_size, title, subject,
                   owner_account_id, owner_email, owner_first_name, class_code, account_type,
                   school_name, content_type, viewed, checksum, uploaded_at"""


@dataclass
class Video:
    video_id: str
    filename: str
    content_length: int
    chunk_size: int
    title: str
    subject: str
    owner_account_id: str
    owner_email: str
    owner_first_name: Optional[str]
    class_code: str
    account_type: AccountType
    school_name: str
    content_type: str
    checksum: str
    uploaded_at: datetime
    viewed: bool = False


def _row_to_video(row: sqlite3.Row) -> Video:
    return Video(
        video_id=row["video_id"],
        filename=row["filename"],
        content_length=row["content_length"],
        chunk_size=row["chunk_size"],
        title=row["title"],
        subject=row["subject"],
        owner_account_id=row["owner_account_id"],
        owner_email=row["owner_email"],
        owner_first_name=row["owner_first_name"],
        class_code=row["class_code"],
        account_type=AccountType(row["account_type"]),
        school_name=row["school_name"],
        content_type=row["content_type"],
        checksum=row["checksum"],
        uploaded_at=datetime.fromisoformat(row["uploaded_at"]),
        viewed=bool(row["viewed"]),
    )


class VideoRepository:
    @staticmethod
    def create_video(video: Video, conn: Optional[sqlite3.Connection] = None) -> Video:
        """
        Insert a video record.

        Raises:
            sqlite3.IntegrityError: If the owner already has a video with the
                same title and class code
        """
        logger.debug(f"Creating video record [video_id={video.video_id}]")
        with connection_scope(conn) as conn:
            conn.execute(
                f"""
                INSERT INTO videos ({VIDEO_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (video.video_id, video.filename, video.content_length, video.chunk_size,
                 video.title, video.subject, video.owner_account_id, video.owner_email,
                 video.owner_first_name, video.class_code, video.account_type.value,
                 video.school_name, video.content_type, int(video.viewed), video.checksum,
                 video.uploaded_at.isoformat())
            )
        return video

    @staticmethod
    def get_by_id(video_id: str, conn: Optional[sqlite3.Connection] = None) -> Optional[Video]:
        with connection_scope(conn) as conn:
            row = conn.execute(
                f"SELECT {VIDEO_COLUMNS} FROM videos WHERE video_id = ?",
                (video_id,)
            ).fetchone()
            return _row_to_video(row) if row else None

    @staticmethod
    def find_by_owner_title_class(owner_email: str, title: str, class_code: str) -> Optional[Video]:
        with get_db_connection() as conn:
            row = conn.execute(
                f"""
                SELECT {VIDEO_COLUMNS} FROM videos
                WHERE owner_email = ? AND title = ? AND class_code = ?
                """,
                (owner_email, title, class_code)
            ).fetchone()
            return _row_to_video(row) if row else None

    @staticmethod
    def query(where_clause: str, params: List[str]) -> List[Video]:
        """
        Fetch videos matching a predicate, newest first.
        """
        with get_db_connection() as conn:
            rows = conn.execute(
                f"SELECT {VIDEO_COLUMNS} FROM videos WHERE {where_clause} ORDER BY uploaded_at DESC",
                params
            ).fetchall()
            return [_row_to_video(row) for row in rows]

    @staticmethod
    def list_ids_by_owner(owner_email: str, conn: Optional[sqlite3.Connection] = None) -> List[str]:
        with connection_scope(conn) as conn:
            rows = conn.execute(
                "SELECT video_id FROM videos WHERE owner_email = ?",
                (owner_email,)
            ).fetchall()
            return [row["video_id"] for row in rows]

    @staticmethod
    def exists(video_id: str) -> bool:
        with get_db_connection() as conn:
            row = conn.execute("SELECT 1 FROM videos WHERE video_id = ?", (video_id,)).fetchone()
            return row is not None

    @staticmethod
    def mark_viewed(video_id: str) -> bool:
        with connection_scope() as conn:
            cursor = conn.execute("UPDATE videos SET viewed = 1 WHERE video_id = ?", (video_id,))
            return cursor.rowcount == 1

    @staticmethod
    def delete_video(video_id: str, conn: Optional[sqlite3.Connection] = None) -> bool:
        logger.debug(f"Deleting video record [video_id={video_id}]")
        with connection_scope(conn) as conn:
            cursor = conn.execute("DELETE FROM videos WHERE video_id = ?", (video_id,))
            return cursor.rowcount == 1
