"""
Business logic for the MediaShelf backend.

- media_service: Async Cloudinary facade with error translation
- video_service: Video upload, persistence and cached listing
"""
