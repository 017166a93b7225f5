"""Chat notification service — the façade the rest of the backend talks to.

Learn: The chat write path and the SSE endpoint never touch the registry
directly. They get this service (one per process, built in the app
lifespan and injected via Depends) and call three things:

- subscribe(user_id)            → SSE endpoint, once per connection
- notify_message_sent(...)      → chat write path, after the DB commit
- publish(user_ids, notif)      → anything else that wants a live push

close() at shutdown closes every channel still registered; later
subscribe() calls raise ServiceClosedError.
"""

import asyncio
from collections.abc import Iterable
from typing import Optional

import structlog
from fastapi import Request

from loveforu.realtime.notifications import (
    MESSAGE_EVENT,
    ChatNotification,
    Identifier,
)
from loveforu.realtime.publisher import publish
from loveforu.realtime.registry import SubscriptionHandle, SubscriptionRegistry

logger = structlog.get_logger()


class ServiceClosedError(Exception):
    """Raised when subscribing to a service that has been shut down."""


class ChatNotificationService:
    """Owns the subscription registry for the lifetime of the app."""

    def __init__(
        self,
        registry: Optional[SubscriptionRegistry] = None,
        channel_capacity: int = 0,
    ):
        self.registry = registry or SubscriptionRegistry(
            channel_capacity=channel_capacity
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, user_id: str) -> SubscriptionHandle:
        """Open a subscription for one streaming connection."""
        if self._closed:
            raise ServiceClosedError("Notification service is shut down")
        return self.registry.subscribe(user_id)

    def publish(
        self,
        user_ids: Iterable[str],
        notification: ChatNotification,
        cancel: Optional[asyncio.Event] = None,
    ) -> bool:
        """Best-effort live push. See realtime.publisher.publish."""
        if self._closed:
            return True
        return publish(self.registry, user_ids, notification, cancel)

    def notify_message_sent(
        self,
        *,
        thread_id: Identifier,
        message_id: Identifier,
        sender_id: str,
        recipient_id: str,
        cancel: Optional[asyncio.Event] = None,
    ) -> bool:
        """Push a "message" event to both participants of a chat thread.

        Learn: The sender is a recipient too: their other tabs need to
        see the message they just sent from this one.
        """
        notification = ChatNotification(
            thread_id=thread_id,
            message_id=message_id,
            sender_id=sender_id,
            event=MESSAGE_EVENT,
        )
        return self.publish([sender_id, recipient_id], notification, cancel)

    def stats(self) -> dict[str, int]:
        return {
            "connected_users": len(self.registry.user_ids()),
            "open_channels": self.registry.channel_count(),
        }

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        stats = self.stats()
        self.registry.close()
        logger.info("chat.notifications_closed", **stats)


def get_notification_service(request: Request) -> ChatNotificationService:
    """FastAPI dependency — the service instance built in the app lifespan."""
    return request.app.state.notifications
