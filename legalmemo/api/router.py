"""API router aggregation."""

from fastapi import APIRouter

from legalmemo.api.health import router as health_router
from legalmemo.api.meetings import router as meetings_router
from legalmemo.api.search import router as search_router
from legalmemo.api.streaming import router as streaming_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(meetings_router)
api_router.include_router(search_router)
api_router.include_router(streaming_router)
