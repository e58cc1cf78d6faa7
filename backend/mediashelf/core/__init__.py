"""
Core infrastructure for the MediaShelf backend.

- access_policy: Pure route access decision (proceed / redirect home / redirect sign-in)
- middleware: Applies the access policy to every evaluated request
- auth: Session token resolution (Auth0 with local JWT fallback)
- database: MongoDB async client with Motor
- redis_client: Optional Redis cache
- media: Cloudinary upload and delivery URL client
"""
