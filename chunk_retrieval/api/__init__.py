"""API router initialization."""

from fastapi import APIRouter

from chunk_retrieval.api import retrieval

api_router = APIRouter()

# Include all sub-routers
api_router.include_router(retrieval.router)

__all__ = ["api_router"]
