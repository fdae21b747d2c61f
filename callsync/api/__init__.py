"""
API package initialization.

Router modules:
- sync: reconciliation trigger and scheduler endpoints
"""

from fastapi import APIRouter

from callsync.api.sync import router as sync_router

api_router = APIRouter()

api_router.include_router(sync_router, prefix="/sync", tags=["sync"])

__all__ = [
    "api_router",
    "sync_router",
]
