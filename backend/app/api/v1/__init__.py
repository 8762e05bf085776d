"""
API v1 Router Aggregator.

Combines the v1 endpoint routers into a single APIRouter, mounted by the
application under /api/v1.

Router Structure:
    - /auth: Owner registration, login and profile
    - /buckets, /files, /dashboard: Owner bucket and file management (JWT)
    - /public: Bucket-key endpoints for presigned URLs and streaming
"""

import logging

from fastapi import APIRouter

from app.api.v1.auth import router as auth_router
from app.api.v1.buckets import router as buckets_router
from app.api.v1.public import router as public_router


logger = logging.getLogger(__name__)

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth")
api_router.include_router(buckets_router)
api_router.include_router(public_router, prefix="/public")


__all__ = ["api_router"]
