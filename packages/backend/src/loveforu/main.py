"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan owns the ChatNotificationService: built at startup,
stored on app.state, closed at shutdown.

Open event streams end on their own when uvicorn starts exiting (see
realtime/sse.py); uvicorn waits for them before running the shutdown
half of the lifespan, so close() there is a final sweep of whatever is
left in the registry.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from loveforu import __version__
from loveforu.api import api_router
from loveforu.config import settings
from loveforu.services.notification_service import ChatNotificationService

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` at shutdown.
    """
    logger.info(
        "loveforu.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    app.state.notifications = ChatNotificationService(
        channel_capacity=settings.chat_channel_capacity,
    )

    yield

    logger.info("loveforu.shutdown")
    app.state.notifications.close()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="LoveForU Realtime",
        description="Live chat notifications for LoveForU over Server-Sent Events",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RequestId → handler

    from loveforu.middleware.request_id import RequestIdMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,  # auth cookie on EventSource(withCredentials)
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    from loveforu.realtime.sse import router as sse_router
    app.include_router(sse_router, tags=["chat"])

    return app


# Default app instance (used by uvicorn: loveforu.main:app)
app = create_app()
