"""
MediaShelf API Router Aggregator.

Router Structure:
    - api_router (mounted under /api):
        - /video-upload, /image-upload: Uploads to Cloudinary
        - /videos: Video listing and lookup
        - /social-formats, /social-share: Social image crops
    - pages_router (mounted at the root):
        - /home, /sign-in, /sign-up, /sign-out, /video-upload, /social-share
"""

from fastapi import APIRouter

from mediashelf.api.pages import router as pages_router
from mediashelf.api.social import router as social_router
from mediashelf.api.upload import router as upload_router
from mediashelf.api.videos import router as videos_router


api_router = APIRouter()

api_router.include_router(upload_router, tags=["upload"])
api_router.include_router(videos_router, tags=["videos"])
api_router.include_router(social_router, tags=["social"])

__all__ = ["api_router", "pages_router"]
