"""Background task for cleaning up orphaned chunks."""

import asyncio
import sqlite3
from datetime import timedelta
from typing import List, Optional

from chunkstore.chunk_storage import ChunkStore
from common.constants import ORPHAN_GRACE_SECONDS, ORPHAN_SWEEP_INTERVAL_SECONDS
from common.logging_config import get_logger
from mediaserver.repositories.video_repository import VideoRepository
from mediaserver.utils import get_current_time

logger = get_logger(__name__)


def sweep_orphaned_chunks(
    chunk_store: ChunkStore,
    grace_seconds: int = ORPHAN_GRACE_SECONDS,
    video_repo: Optional[VideoRepository] = None,
) -> List[str]:
    """
    Remove chunk data that no video will ever reference.

    Two kinds of upload qualify once they are older than the grace period:
    pending uploads that stopped receiving data (a crash or a failed abort),
    and committed uploads that were never linked to a video record. Linked
    uploads are not scanned at all.

    Returns:
        File ids whose chunks were removed
    """
    video_repo = video_repo or VideoRepository()
    cutoff = get_current_time() - timedelta(seconds=grace_seconds)

    swept = []
    for upload in chunk_store.list_stale_uploads(cutoff):
        if chunk_store.has_open_upload(upload.file_id):
            continue
        if upload.is_committed and video_repo.exists(upload.file_id):
            continue

        try:
            deleted = chunk_store.delete_all(upload.file_id)
        except sqlite3.Error as e:
            logger.warning(f"Error cleaning orphaned upload {upload.file_id}: {e}")
            continue

        logger.info(f"Cleaned orphaned upload {upload.file_id} [state={upload.state}] ({deleted} chunks)")
        swept.append(upload.file_id)

    return swept


class OrphanedChunkCleaner:
    """
    Background task that periodically sweeps orphaned chunks.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        interval_seconds: int = ORPHAN_SWEEP_INTERVAL_SECONDS,
        grace_seconds: int = ORPHAN_GRACE_SECONDS,
    ):
        """
        Initialize cleaner task.

        Args:
            chunk_store: Store to sweep
            interval_seconds: Time between cleanup attempts (default 6 hours)
            grace_seconds: Minimum age of an upload before it is considered orphaned
        """
        self.chunk_store = chunk_store
        self.interval_seconds = interval_seconds
        self.grace_seconds = grace_seconds
        self._running = False
        self._task = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background cleanup task."""
        if self._running:
            logger.warning("Cleanup task already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started orphaned chunk cleanup task (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background cleanup task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("Stopped orphaned chunk cleanup task")

    async def run_once(self) -> List[str]:
        swept = await asyncio.to_thread(sweep_orphaned_chunks, self.chunk_store, self.grace_seconds)
        if swept:
            logger.info(f"Cleanup cycle complete: {len(swept)} orphaned uploads removed")
        else:
            logger.debug("No orphaned chunks to clean")
        return swept

    async def _run(self) -> None:
        """Main loop for cleanup task."""
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                await self.run_once()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in cleanup task: {e}", exc_info=True)
