"""
API v1 routes
"""

from fastapi import APIRouter

from app.api.v1.endpoints import recordings, criteria

api_router = APIRouter()

api_router.include_router(recordings.router, prefix="/recordings", tags=["recordings"])
api_router.include_router(criteria.router, prefix="/criteria", tags=["criteria"])
