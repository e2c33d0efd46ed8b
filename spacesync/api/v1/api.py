"""
API v1 router.
"""
from fastapi import APIRouter
from spacesync.api.v1.endpoints import health, media, migration

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(migration.router)
api_router.include_router(media.router)
api_router.include_router(health.router, tags=["health"])
