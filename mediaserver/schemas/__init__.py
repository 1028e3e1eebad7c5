"""Pydantic schemas for API requests and responses."""

from mediaserver.schemas.accounts import (
    RegisterRequest,
    RegisterResponse,
    SignInRequest,
    SignInResponse,
    AccountSummary,
    AccountInfoResponse,
    UpdateClassCodeRequest
)
from mediaserver.schemas.videos import (
    VideoMetadataResponse,
    ListVideosResponse,
    ChunkDescriptorResponse,
    ListChunksResponse
)
from mediaserver.schemas.common import ErrorResponse, MessageResponse

__all__ = [
    "RegisterRequest",
    "RegisterResponse",
    "SignInRequest",
    "SignInResponse",
    "AccountSummary",
    "AccountInfoResponse",
    "UpdateClassCodeRequest",
    "VideoMetadataResponse",
    "ListVideosResponse",
    "ChunkDescriptorResponse",
    "ListChunksResponse",
    "ErrorResponse",
    "MessageResponse"
]
