"""Health check endpoint.

Learn: Besides "am I up", reports how many users and channels are
connected to the live event stream. Handy when watching a deploy drain.
"""

from fastapi import APIRouter, Depends

from loveforu import __version__
from loveforu.services.notification_service import (
    ChatNotificationService,
    get_notification_service,
)

router = APIRouter()


@router.get("/health")
async def health_check(
    service: ChatNotificationService = Depends(get_notification_service),
):
    """Check server health and live-stream load."""
    status = "shutting_down" if service.closed else "ok"
    return {"status": status, "version": __version__, **service.stats()}
