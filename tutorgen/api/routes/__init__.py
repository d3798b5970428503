"""
API Routes
"""

from fastapi import APIRouter

from .generation import router as generation_router
from .goals import router as goals_router

api_router = APIRouter()

api_router.include_router(generation_router, tags=["Generation"])
api_router.include_router(goals_router, prefix="/goals", tags=["Goals"])
