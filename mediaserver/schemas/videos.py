"""Pydantic schemas for video endpoints."""

from typing import List, Optional

from pydantic import BaseModel

from common.types import AccountType


class VideoMetadataResponse(BaseModel):
    """Response model for video metadata."""
    video_id: str
    filename: str
    title: str
    subject: str
    class_code: str
    owner_email: str
    owner_first_name: Optional[str]
    account_type: AccountType
    school_name: str
    content_type: str
    content_length: int
    chunk_size: int
    checksum: str
    viewed: bool
    uploaded_at: str


class ListVideosResponse(BaseModel):
    """Response model for video listing."""
    videos: List[VideoMetadataResponse]


class ChunkDescriptorResponse(BaseModel):
    chunk_index: int
    size: int
    checksum: str


class ListChunksResponse(BaseModel):
    """Response model for the chunk listing of one video."""
    video_id: str
    chunks: List[ChunkDescriptorResponse]
