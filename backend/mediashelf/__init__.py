"""
MediaShelf Backend Application Package

A FastAPI service where signed-in users upload videos and images. Cloudinary
compresses, converts and crops the media; MongoDB keeps the video records.
Every request first passes the route access policy, which sends anonymous
callers to sign-in and signed-in callers away from the auth pages.

Package Structure:
- api/: Page and REST endpoints
- core/: Access policy, identity, database, cache and media clients
- models/: Pydantic models for videos and social formats
- services/: Upload and listing logic
- utils/: Logging, formatting and upload validation helpers
"""

__version__ = "1.0.0"
__app_name__ = "MediaShelf"
