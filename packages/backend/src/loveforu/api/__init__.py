"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Only the health probe lives under /api/v1. Chat CRUD (threads,
messages, friendships, photos) is served by the persistence-backed API;
this service adds the live event stream on top, mounted from
loveforu.realtime.sse.
"""

from fastapi import APIRouter

from loveforu.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])
