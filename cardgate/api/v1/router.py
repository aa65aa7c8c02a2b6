"""
API v1 router.
"""
from fastapi import APIRouter

from cardgate.api.v1.endpoints import access_keys, generate, health

api_router = APIRouter()

# Health check endpoint (no prefix, so it's /api/v1/health)
api_router.include_router(health.router, tags=["health"])

api_router.include_router(access_keys.router, prefix="/admin", tags=["admin"])
api_router.include_router(generate.router, tags=["generate"])
