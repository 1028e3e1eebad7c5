"""Media catalog service: upload, role-scoped listing, playback and deletion."""

import asyncio
import sqlite3
from dataclasses import dataclass
from typing import AsyncIterable, Iterator, List, Optional, Tuple

from chunkstore.chunk_storage import ChunkStore
from common.database import connection_scope, transaction
from common.exceptions import (
    AccountNotFoundError,
    DuplicateVideoError,
    UploadFailedError,
    VideoNotFoundError,
)
from common.logging_config import get_logger
from common.types import AccountType, ChunkDescriptor
from mediaserver.repositories.account_repository import Account, AccountRepository
from mediaserver.repositories.video_repository import Video, VideoRepository
from mediaserver.utils import build_stored_filename, generate_uuid, get_current_time
from mediaserver.visibility import policy_for

logger = get_logger(__name__)


@dataclass(frozen=True)
class VideoUpload:
    """
    Metadata supplied with an upload. Owner fields come from the
    authenticated account, not from the request body.
    """
    owner_account_id: str
    owner_email: str
    owner_first_name: Optional[str]
    account_type: AccountType
    school_name: str
    title: str
    subject: str
    class_code: str
    content_type: str
    original_filename: str

    @classmethod
    def for_account(
        cls,
        account: Account,
        title: str,
        subject: str,
        class_code: str,
        content_type: str,
        original_filename: str,
    ) -> "VideoUpload":
        return cls(
            owner_account_id=account.account_id,
            owner_email=account.email,
            owner_first_name=account.first_name,
            account_type=account.account_type,
            school_name=account.school_name,
            title=title,
            subject=subject,
            class_code=class_code,
            content_type=content_type,
            original_filename=original_filename,
        )


class MediaService:
    def __init__(self, chunk_store: Optional[ChunkStore] = None):
        self.chunk_store = chunk_store or ChunkStore()
        self.video_repo = VideoRepository()
        self.account_repo = AccountRepository()

    async def upload(self, metadata: VideoUpload, stream: AsyncIterable[bytes]) -> Video:
        """
        Persist an uploaded video.

        The payload is streamed into the chunk store one chunk write at a
        time; the video record is inserted only after the chunks are
        committed, so a video never becomes visible with partial data.

        Raises:
            DuplicateVideoError: If the owner already has this title in this class
            UploadFailedError: If the payload could not be stored
        """
        if self.video_repo.find_by_owner_title_class(
            metadata.owner_email, metadata.title, metadata.class_code
        ) is not None:
            logger.warning(
                f"Duplicate upload rejected: '{metadata.title}' in {metadata.class_code} "
                f"[owner={metadata.owner_email}]"
            )
            raise DuplicateVideoError("A video with the same title and class code already exists")

        video_id = generate_uuid()
        sink = self.chunk_store.begin_upload(video_id)
        logger.info(f"Receiving upload '{metadata.title}' [video_id={video_id}] [owner={metadata.owner_email}]")

        try:
            async for piece in stream:
                await asyncio.to_thread(sink.write, piece)
            summary = await asyncio.to_thread(self.chunk_store.finalize, video_id)
        except UploadFailedError as e:
            logger.error(f"Upload failed for video {video_id}: {e}")
            sink.abort()
            raise
        except Exception as e:
            logger.error(f"Upload failed for video {video_id}: {e}", exc_info=True)
            sink.abort()
            raise UploadFailedError(f"Failed to upload video: {e}") from e
        except BaseException:
            logger.warning(f"Upload of video {video_id} interrupted, discarding received data")
            sink.abort()
            raise

        video = Video(
            video_id=video_id,
            filename=build_stored_filename(metadata.original_filename),
            content_length=summary.content_length,
            chunk_size=sink.chunk_size,
            title=metadata.title,
            subject=metadata.subject,
            owner_account_id=metadata.owner_account_id,
            owner_email=metadata.owner_email,
            owner_first_name=metadata.owner_first_name,
            class_code=metadata.class_code,
            account_type=metadata.account_type,
            school_name=metadata.school_name,
            content_type=metadata.content_type,
            checksum=summary.checksum,
            uploaded_at=get_current_time(),
        )

        try:
            with transaction() as conn:
                self.video_repo.create_video(video, conn=conn)
                self.chunk_store.mark_linked(video_id, conn=conn)
        except sqlite3.IntegrityError:
            logger.warning(f"Concurrent duplicate upload detected, discarding video {video_id}")
            self._reclaim(video_id)
            raise DuplicateVideoError("A video with the same title and class code already exists")
        except sqlite3.Error as e:
            logger.error(f"Failed to record video {video_id}: {e}", exc_info=True)
            self._reclaim(video_id)
            raise UploadFailedError(f"Failed to record video: {e}") from e

        logger.info(
            f"Uploaded video {video_id}: {summary.content_length} bytes in "
            f"{summary.chunk_count} chunks [owner={metadata.owner_email}]"
        )
        return video

    def list_for(self, requester: Account) -> List[Video]:
        """
        List the videos an account is allowed to see (metadata only).
        """
        predicate = policy_for(requester.account_type).predicate(requester)
        if predicate is None:
            logger.debug(f"No visible videos for {requester.email}: no class codes")
            return []

        where_clause, params = predicate
        videos = self.video_repo.query(where_clause, params)
        logger.info(
            f"Found {len(videos)} videos for {requester.account_type.value} {requester.email}"
        )
        return videos

    def list_videos(self, requester_email: str) -> List[Video]:
        requester = self.account_repo.get_by_email(requester_email)
        if requester is None:
            raise AccountNotFoundError("User not found")
        return self.list_for(requester)

    def get_video(self, video_id: str) -> Video:
        video = self.video_repo.get_by_id(video_id)
        if video is None:
            raise VideoNotFoundError(f"Video {video_id} not found")
        return video

    def download(self, video_id: str) -> Tuple[Video, Iterator[bytes]]:
        """
        Open a video for playback.

        Returns:
            The video record (for its content type and length) and a lazy
            iterator over its bytes

        Raises:
            VideoNotFoundError: If there is no video with that id
        """
        video = self.get_video(video_id)
        stream = self.chunk_store.open_download(video_id)
        logger.info(f"Opened download of video {video_id} ({video.content_length} bytes)")
        return video, stream

    def list_chunks(self, video_id: str) -> List[ChunkDescriptor]:
        self.get_video(video_id)
        return self.chunk_store.list_chunks(video_id)

    def mark_viewed(self, video_id: str) -> None:
        if not self.video_repo.mark_viewed(video_id):
            raise VideoNotFoundError(f"Video {video_id} not found")
        logger.info(f"Video marked as viewed: {video_id}")

    def delete_video(self, video_id: str) -> None:
        """
        Delete a video record and its chunks in one transaction.
        """
        with transaction() as conn:
            if not self.video_repo.delete_video(video_id, conn=conn):
                raise VideoNotFoundError(f"Video {video_id} not found")
            self.chunk_store.delete_all(video_id, conn=conn)
        logger.info(f"Video deleted successfully: {video_id}")

    def delete_all_for_owner(self, email: str, conn: Optional[sqlite3.Connection] = None) -> List[str]:
        """
        Delete every video owned by an email, records and chunks together.

        Returns:
            Ids of the deleted videos
        """
        with connection_scope(conn) as conn:
            video_ids = self.video_repo.list_ids_by_owner(email, conn=conn)
            for video_id in video_ids:
                self.video_repo.delete_video(video_id, conn=conn)
                self.chunk_store.delete_all(video_id, conn=conn)

        logger.info(f"Deleted {len(video_ids)} videos owned by {email}")
        return video_ids

    def _reclaim(self, video_id: str) -> None:
        try:
            self.chunk_store.delete_all(video_id)
        except sqlite3.Error as e:
            logger.error(
                f"Failed to reclaim chunks of video {video_id}, leaving them for the orphan sweep: {e}",
                exc_info=True
            )
