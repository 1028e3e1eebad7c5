"""Video API routes."""

from typing import AsyncIterator

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import StreamingResponse

from common.constants import DEFAULT_CONTENT_TYPE, UPLOAD_READ_SIZE
from mediaserver.config import ALLOWED_CONTENT_TYPE_PREFIX
from mediaserver.repositories.video_repository import Video
from mediaserver.schemas.common import ErrorResponse, MessageResponse
from mediaserver.schemas.videos import (
    ChunkDescriptorResponse,
    ListChunksResponse,
    ListVideosResponse,
    VideoMetadataResponse
)
from mediaserver.service_locator import get_account_service, get_media_service
from mediaserver.services.media_service import VideoUpload
from mediaserver.utils import content_disposition

router = APIRouter(
    prefix="/videos",
    tags=["Videos"],
    responses={
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)


def _to_response(video: Video) -> VideoMetadataResponse:
    return VideoMetadataResponse(
        video_id=video.video_id,
        filename=video.filename,
        title=video.title,
        subject=video.subject,
        class_code=video.class_code,
        owner_email=video.owner_email,
        owner_first_name=video.owner_first_name,
        account_type=video.account_type,
        school_name=video.school_name,
        content_type=video.content_type,
        content_length=video.content_length,
        chunk_size=video.chunk_size,
        checksum=video.checksum,
        viewed=video.viewed,
        uploaded_at=video.uploaded_at.isoformat(),
    )


async def _read_upload(upload: UploadFile, piece_size: int = UPLOAD_READ_SIZE) -> AsyncIterator[bytes]:
    while True:
        piece = await upload.read(piece_size)
        if not piece:
            break
        yield piece


@router.post("", response_model=VideoMetadataResponse, status_code=status.HTTP_201_CREATED)
async def upload_video(
    video: UploadFile = File(...),
    email: str = Form(...),
    title: str = Form(...),
    subject: str = Form(...),
    class_code: str = Form(...)
):
    """
    Upload a video with its classroom metadata.

    Parameters:
        - video: Video file (multipart/form-data, video/* content type)
        - email: Email of the uploading account
        - title: Video title
        - subject: Subject the video belongs to
        - class_code: Class the video is tagged with

    Returns:
        - Metadata of the stored video

    Raises:
        - 400: Not a video file
        - 404: User not found
        - 409: Owner already has a video with this title and class code
        - 413: File too large
        - 500: Upload failed, nothing was stored
    """
    content_type = video.content_type or DEFAULT_CONTENT_TYPE
    if not content_type.startswith(ALLOWED_CONTENT_TYPE_PREFIX):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only video files are allowed"
        )

    account = get_account_service().get_account(email)

    metadata = VideoUpload.for_account(
        account,
        title=title.strip(),
        subject=subject.strip(),
        class_code=class_code.strip(),
        content_type=content_type,
        original_filename=video.filename or "video",
    )

    try:
        stored = await get_media_service().upload(metadata, _read_upload(video))
    finally:
        await video.close()

    return _to_response(stored)


@router.get("", response_model=ListVideosResponse)
async def list_videos(email: str = Query(..., min_length=1)):
    """
    List the videos visible to an account.

    Students see their own uploads. Teachers see uploads tagged with any of
    their class codes at their school. Newest first.

    Raises:
        - 404: User not found
    """
    videos = get_media_service().list_videos(email)
    return ListVideosResponse(videos=[_to_response(video) for video in videos])


@router.get("/{video_id}/download")
async def download_video(video_id: str):
    """
    Stream a video's bytes in order.

    Returns:
        - StreamingResponse with the video's stored content type

    Raises:
        - 404: Video not found
    """
    video, stream_generator = get_media_service().download(video_id)

    return StreamingResponse(
        stream_generator,
        media_type=video.content_type,
        headers={
            "Content-Disposition": content_disposition(video.filename),
            "Content-Length": str(video.content_length),
        }
    )


@router.get("/{video_id}/chunks", response_model=ListChunksResponse)
async def list_video_chunks(video_id: str):
    """
    Describe the stored chunks of a video (index, size, checksum).

    Raises:
        - 404: Video not found
    """
    descriptors = get_media_service().list_chunks(video_id)

    return ListChunksResponse(
        video_id=video_id,
        chunks=[
            ChunkDescriptorResponse(
                chunk_index=descriptor.chunk_index,
                size=descriptor.size,
                checksum=descriptor.checksum,
            )
            for descriptor in descriptors
        ],
    )


@router.post("/{video_id}/view", response_model=MessageResponse)
async def mark_video_viewed(video_id: str):
    """
    Mark a video as viewed. Marking it again is a no-op.

    Raises:
        - 404: Video not found
    """
    get_media_service().mark_viewed(video_id)
    return MessageResponse(message="Video marked as viewed successfully")


@router.delete("/{video_id}", response_model=MessageResponse)
async def delete_video(video_id: str):
    """
    Delete a video and its stored chunks.

    Raises:
        - 404: Video not found
    """
    get_media_service().delete_video(video_id)
    return MessageResponse(message="Video deleted successfully")
