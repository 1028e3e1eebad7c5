"""Service locator for the process-wide components."""

from typing import Optional

from chunkstore.chunk_storage import ChunkStore
from mediaserver import config
from mediaserver.licenses import LicenseRegistry, load_license_registry
from mediaserver.services.account_service import AccountService
from mediaserver.services.media_service import MediaService

_license_registry: Optional[LicenseRegistry] = None
_chunk_store: Optional[ChunkStore] = None
_media_service: Optional[MediaService] = None
_account_service: Optional[AccountService] = None


def set_license_registry(registry: Optional[LicenseRegistry]):
    """Set global license registry instance"""
    global _license_registry
    _license_registry = registry


def get_license_registry() -> LicenseRegistry:
    """Get global license registry instance, loading it on first use"""
    global _license_registry
    if _license_registry is None:
        _license_registry = load_license_registry(config.LICENSE_FILE)
    return _license_registry


def set_chunk_store(store: Optional[ChunkStore]):
    """Set global chunk store instance"""
    global _chunk_store
    _chunk_store = store


def get_chunk_store() -> ChunkStore:
    """Get global chunk store instance"""
    global _chunk_store
    if _chunk_store is None:
        _chunk_store = ChunkStore(max_upload_bytes=config.UPLOAD_LIMIT_BYTES)
    return _chunk_store


def set_media_service(service: Optional[MediaService]):
    """Set global media service instance"""
    global _media_service
    _media_service = service


def get_media_service() -> MediaService:
    """Get global media service instance"""
    global _media_service
    if _media_service is None:
        _media_service = MediaService(get_chunk_store())
    return _media_service


def set_account_service(service: Optional[AccountService]):
    """Set global account service instance"""
    global _account_service
    _account_service = service


def get_account_service() -> AccountService:
    """Get global account service instance"""
    global _account_service
    if _account_service is None:
        _account_service = AccountService(get_license_registry(), get_media_service())
    return _account_service


def reset():
    """Drop every cached instance so the next lookup rebuilds it"""
    set_account_service(None)
    set_media_service(None)
    set_chunk_store(None)
    set_license_registry(None)
