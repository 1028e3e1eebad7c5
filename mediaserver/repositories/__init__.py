"""Repository layer for data access."""

from mediaserver.repositories.account_repository import Account, AccountRepository
from mediaserver.repositories.video_repository import Video, VideoRepository

__all__ = [
    "Account",
    "AccountRepository",
    "Video",
    "VideoRepository",
]
