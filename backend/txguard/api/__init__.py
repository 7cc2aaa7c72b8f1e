"""
API router configuration.

All endpoints are mounted under /api/v1.
"""
from __future__ import annotations

from fastapi import APIRouter

from .insights import router as insights_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(insights_router)

__all__ = ["api_router"]
