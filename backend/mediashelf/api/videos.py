"""
FastAPI Videos Router for MediaShelf

- GET /videos - Public listing of every video, newest first
- GET /videos/{video_id} - One video, signed-in users only
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from mediashelf.core.auth import require_user_id
from mediashelf.models.video import VideoListResponse, VideoResponse
from mediashelf.services.video_service import (
    InvalidVideoIdError,
    VideoPersistenceError,
    VideoService,
    get_video_service,
)


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/videos",
    response_model=VideoListResponse,
    summary="List videos",
    description="All uploaded videos, newest first, with thumbnail, preview and download URLs.",
)
async def list_videos(
    video_service: VideoService = Depends(get_video_service),
) -> VideoListResponse:
    try:
        videos = await video_service.list_videos()
    except VideoPersistenceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error fetching videos"
        ) from e

    return VideoListResponse(videos=videos, total=len(videos))


@router.get(
    "/videos/{video_id}",
    response_model=VideoResponse,
    summary="Get video",
    responses={
        400: {"description": "Invalid video ID format"},
        404: {"description": "Video not found"},
    },
)
async def get_video(
    video_id: str,
    user_id: str = Depends(require_user_id),
    video_service: VideoService = Depends(get_video_service),
) -> VideoResponse:
    """
    Fetch one video by its MongoDB id.

    Raises:
        HTTPException: 400 for a malformed id, 404 when no such video exists.
    """
    try:
        video = await video_service.get_video(video_id)
    except InvalidVideoIdError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except VideoPersistenceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error fetching video"
        ) from e

    if video is None:
        logger.info("Video %s not found (requested by %s)", video_id, user_id)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")

    return video
