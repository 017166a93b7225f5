"""Server-Sent Events endpoint — live chat notifications to browsers.

Learn: Each client opens GET /api/chat/events (EventSource in the
browser, `loveforu listen` on the command line). The handler:
1. Authenticates via Depends (bearer header or auth cookie); 401 first
2. Sends the text/event-stream headers
3. Subscribes and relays every notification as one SSE frame
4. Disposes the subscription on every exit path (try/finally)

EventSourceResponse (sse-starlette) runs the body next to three
watchers: client disconnect, uvicorn's exit signal, and a keep-alive
ping. Whichever fires first cancels the body generator. Uvicorn waits
for open connections before it runs lifespan shutdown, so the exit
watcher is what lets a quiet stream end on SIGTERM.

Subscribing happens inside the body generator, not in the route
function: the generator's finally is the only cleanup hook that runs
whether the stream ends normally, is cancelled, or errors out.

Frame format (one flushed chunk per notification):

    event: message
    data: {"threadId":"...","messageId":"...","senderId":"...","event":"message"}

"""

from collections.abc import AsyncIterator, Iterable, Iterator

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sse_starlette import EventSourceResponse, ServerSentEvent

from loveforu.auth.dependencies import CurrentIdentity, get_current_user
from loveforu.config import settings
from loveforu.realtime.notifications import ChatNotification
from loveforu.services.notification_service import (
    ChatNotificationService,
    ServiceClosedError,
    get_notification_service,
)

logger = structlog.get_logger()
router = APIRouter()

SSE_SEPARATOR = "\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


def format_sse_event(notification: ChatNotification) -> str:
    """Render one notification as an SSE frame (two lines + blank line)."""
    return f"event: {notification.event}\ndata: {notification.to_json()}\n\n"


def parse_sse_lines(lines: Iterable[str]) -> Iterator[tuple[str, str]]:
    """Parse SSE text lines into (event, data) pairs.

    Comment lines (":") and unknown fields are ignored. Multiple data
    lines within one frame are joined with newlines, as EventSource does.
    """
    event = "message"
    data: list[str] = []
    for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if data:
                yield event, "\n".join(data)
            event, data = "message", []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)
    if data:
        yield event, "\n".join(data)


async def stream_notifications(
    service: ChatNotificationService, user_id: str
) -> AsyncIterator[bytes]:
    """Subscribe user_id and yield encoded SSE frames until the subscription ends.

    Frames are yielded as bytes so EventSourceResponse sends them as-is.
    """
    try:
        subscription = service.subscribe(user_id)
    except ServiceClosedError:
        # closed between the route's check and the body starting
        logger.info("chat.stream_refused", user_id=user_id)
        return

    with subscription:
        logger.info("chat.stream_opened", user_id=user_id)
        try:
            async for notification in subscription.notifications():
                yield format_sse_event(notification).encode("utf-8")
        finally:
            logger.info("chat.stream_closed", user_id=user_id)


def _keepalive() -> ServerSentEvent:
    return ServerSentEvent(comment="keep-alive", sep=SSE_SEPARATOR)


@router.get("/api/chat/events")
async def chat_events(
    identity: CurrentIdentity = Depends(get_current_user),
    service: ChatNotificationService = Depends(get_notification_service),
):
    """Long-lived event stream of "new message" notifications for the caller."""
    if service.closed:
        raise HTTPException(status_code=503, detail="Server is shutting down")

    return EventSourceResponse(
        stream_notifications(service, identity.user_id),
        headers=SSE_HEADERS,
        ping=settings.sse_ping_seconds,
        ping_message_factory=_keepalive,
        sep=SSE_SEPARATOR,
    )
