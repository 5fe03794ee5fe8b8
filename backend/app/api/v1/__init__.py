"""
API v1 routes.
"""

from fastapi import APIRouter
from app.api.v1 import analysis, sessions

api_router = APIRouter()

api_router.include_router(analysis.router, prefix="", tags=["insights"])
api_router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
