"""Real-time infrastructure — in-process pub/sub + Server-Sent Events.

Learn: Notifications flow through two halves:
1. Chat write path → publish() → every live SubscriberChannel for the recipients
2. SubscriberChannel.read_all() → SSE endpoint → browser EventSource

There is no broker: the SubscriptionRegistry lives in the process and
is owned by the ChatNotificationService built at app startup.
"""

from loveforu.realtime.channel import SubscriberChannel
from loveforu.realtime.notifications import MESSAGE_EVENT, ChatNotification
from loveforu.realtime.publisher import publish
from loveforu.realtime.registry import SubscriptionHandle, SubscriptionRegistry

__all__ = [
    "MESSAGE_EVENT",
    "ChatNotification",
    "SubscriberChannel",
    "SubscriptionHandle",
    "SubscriptionRegistry",
    "publish",
]
