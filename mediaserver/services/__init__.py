"""Service layer for business logic."""

from mediaserver.services.account_service import AccountService
from mediaserver.services.media_service import MediaService, VideoUpload

__all__ = [
    "AccountService",
    "MediaService",
    "VideoUpload",
]
