"""Database schema and connection management for SQLite."""

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from common.constants import DEFAULT_DATABASE_PATH


DATABASE_PATH = os.environ.get("CLASSREEL_DATABASE_PATH", DEFAULT_DATABASE_PATH)

BUSY_TIMEOUT_SECONDS = 30.0


def init_database() -> None:
    """
    Initialize database and create tables if they don't exist.
    """
    db_path = Path(DATABASE_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection() as conn:
        cursor = conn.cursor()

        cursor.execute("PRAGMA journal_mode=WAL")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS accounts (
                account_id TEXT PRIMARY KEY,
                email TEXT UNIQUE NOT NULL,
                password_hash TEXT NOT NULL,
                first_name TEXT NOT NULL,
                account_type TEXT NOT NULL,
                school_name TEXT NOT NULL,
                license_key TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS account_class_codes (
                email TEXT NOT NULL,
                class_code TEXT NOT NULL,
                PRIMARY KEY(email, class_code),
                FOREIGN KEY(email) REFERENCES accounts(email) ON DELETE CASCADE
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS videos (
                video_id TEXT PRIMARY KEY,
                filename TEXT NOT NULL,
                content_length INTEGER NOT NULL,
                chunk_size INTEGER NOT NULL,
                title TEXT NOT NULL,
                subject TEXT NOT NULL,
                owner_account_id TEXT NOT NULL,
                owner_email TEXT NOT NULL,
                owner_first_name TEXT,
                class_code TEXT NOT NULL,
                account_type TEXT NOT NULL,
                school_name TEXT NOT NULL,
                content_type TEXT NOT NULL,
                viewed INTEGER NOT NULL DEFAULT 0,
                checksum TEXT NOT NULL,
                uploaded_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS uploads (
                file_id TEXT PRIMARY KEY,
                chunk_size INTEGER NOT NULL,
                state TEXT NOT NULL,
                content_length INTEGER NOT NULL DEFAULT 0,
                chunk_count INTEGER NOT NULL DEFAULT 0,
                checksum TEXT,
                started_at TEXT NOT NULL,
                last_write_at TEXT NOT NULL,
                committed_at TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS chunks (
                file_id TEXT NOT NULL,
                chunk_index INTEGER NOT NULL,
                size INTEGER NOT NULL,
                checksum TEXT NOT NULL,
                data BLOB NOT NULL,
                PRIMARY KEY(file_id, chunk_index)
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_accounts_license_key ON accounts(license_key)
        """)

        cursor.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_videos_owner_title_class_unique
            ON videos(owner_email, title, class_code)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_videos_class_school ON videos(class_code, school_name)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_uploads_state ON uploads(state, last_write_at)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_uploads_committed ON uploads(state, committed_at)
        """)

        conn.commit()


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    """
    conn = sqlite3.connect(DATABASE_PATH, timeout=BUSY_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(immediate: bool = False) -> Generator[sqlite3.Connection, None, None]:
    """
    Run a block inside one explicit transaction.

    With ``immediate=True`` the write lock is taken up front, so reads made
    inside the block cannot be invalidated by a concurrent writer before the
    block's own writes land.
    """
    with get_db_connection() as conn:
        conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise


@contextmanager
def connection_scope(conn: Optional[sqlite3.Connection] = None) -> Generator[sqlite3.Connection, None, None]:
    """
    Yield ``conn`` when the caller already owns a transaction, otherwise open
    a connection of our own and commit it when the block succeeds.
    """
    if conn is not None:
        yield conn
        return

    with get_db_connection() as own_conn:
        try:
            yield own_conn
            own_conn.commit()
        except BaseException:
            own_conn.rollback()
            raise
