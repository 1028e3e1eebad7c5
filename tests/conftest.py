"""Shared pytest fixtures for all tests."""

import tempfile
from pathlib import Path
from typing import AsyncIterator, Generator

import pytest

from chunkstore.chunk_storage import ChunkStore
from common.database import init_database
from mediaserver.licenses import LicenseRegistry
from mediaserver.services.account_service import AccountService
from mediaserver.services.media_service import MediaService, VideoUpload

TEST_CHUNK_SIZE = 16


@pytest.fixture
def test_db(monkeypatch) -> Generator[Path, None, None]:
    """
    Create a temporary test database for each test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        monkeypatch.setattr("common.database.DATABASE_PATH", str(db_path))
        init_database()
        yield db_path


@pytest.fixture
def chunk_store(test_db) -> ChunkStore:
    """
    Chunk store with a tiny chunk size so short payloads span several chunks.
    """
    return ChunkStore(chunk_size=TEST_CHUNK_SIZE, max_upload_bytes=1024)


@pytest.fixture
def media_service(chunk_store) -> MediaService:
    return MediaService(chunk_store)


@pytest.fixture
def account_service(media_service) -> AccountService:
    return AccountService(LicenseRegistry.default(), media_service)


@pytest.fixture
def register(account_service):
    """
    Factory registering an account with sensible defaults.

    Returns:
        Callable taking ``email`` plus keyword overrides
    """
    def _register(email, account_type="student", license_key="STUDENT_KEY_1",
                  school_name="Burnside", class_codes=(), first_name="alex"):
        return account_service.create_account(
            email=email,
            password_hash="not-a-real-hash",
            first_name=first_name,
            account_type=account_type,
            license_key=license_key,
            school_name=school_name,
            class_codes=class_codes,
        )
    return _register


async def byte_stream(*pieces: bytes) -> AsyncIterator[bytes]:
    for piece in pieces:
        yield piece


def upload_for(account, title="Lesson 1", subject="Math", class_code="X1",
               content_type="video/mp4", filename="lesson.mp4") -> VideoUpload:
    return VideoUpload.for_account(
        account,
        title=title,
        subject=subject,
        class_code=class_code,
        content_type=content_type,
        original_filename=filename,
    )
