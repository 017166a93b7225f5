"""Publisher — fan one notification out to every live channel of the recipients.

Learn: Live push is best-effort. publish() never fails because a
recipient is offline (the message is already persisted; the client will
see it on its next pull). A channel that refuses a write is dead (closed
by its consumer, or over capacity) and is pruned right here, so an
abandoned connection can't leak a registry entry.

Nothing in here awaits: every write is a non-blocking enqueue, so one
slow browser tab can never stall delivery to the others.
"""

import asyncio
from collections.abc import Iterable
from typing import Optional

import structlog

from loveforu.realtime.notifications import ChatNotification
from loveforu.realtime.registry import SubscriptionRegistry

logger = structlog.get_logger()


def publish(
    registry: SubscriptionRegistry,
    recipient_ids: Iterable[str],
    notification: ChatNotification,
    cancel: Optional[asyncio.Event] = None,
) -> bool:
    """Deliver `notification` once to each live channel of each unique recipient.

    Returns True when the fan-out ran to completion, False if `cancel`
    was set part way through. The return value says nothing about
    per-recipient delivery.
    """
    # dict.fromkeys: dedupe, first-seen order
    for user_id in dict.fromkeys(recipient_ids):
        for channel in registry.snapshot_channels(user_id):
            if cancel is not None and cancel.is_set():
                logger.info(
                    "chat.publish_cancelled",
                    thread_id=str(notification.thread_id),
                    message_id=str(notification.message_id),
                )
                return False
            if not channel.write(notification):
                registry.unsubscribe(user_id, channel)
                logger.info("chat.channel_pruned", user_id=user_id)
    return True
