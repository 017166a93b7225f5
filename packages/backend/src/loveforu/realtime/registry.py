"""Subscription registry — user id → live subscriber channels.

Learn: This is the only shared mutable state in the notification core.
Every mutation (subscribe/unsubscribe) and every read (snapshot) goes
through one lock, and the lock is never held while delivering. The
publisher takes a snapshot (a tuple copy) and iterates that, so a
connection closing mid-fan-out can't corrupt the iteration.

Invariants:
- a user id is present iff it has at least one subscribed channel
- a channel is registered at most once, and only between subscribe
  and its (idempotent) unsubscribe

The lock is a threading.Lock rather than an asyncio.Lock because no
operation here awaits; holding it is always brief and non-suspending.
"""

import asyncio
import threading
from collections.abc import AsyncIterator
from typing import Optional

import structlog

from loveforu.realtime.channel import SubscriberChannel
from loveforu.realtime.notifications import ChatNotification

logger = structlog.get_logger()


class SubscriptionHandle:
    """One subscriber's view of the registry: its channel + a dispose hook.

    Learn: Use it as a context manager (`with` or `async with`) so the
    subscription is released on every exit path, including cancellation.
    dispose() is idempotent.
    """

    def __init__(
        self,
        registry: "SubscriptionRegistry",
        user_id: str,
        channel: SubscriberChannel,
    ):
        self._registry = registry
        self.user_id = user_id
        self.channel = channel
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def notifications(
        self, cancel: Optional[asyncio.Event] = None
    ) -> AsyncIterator[ChatNotification]:
        """Consume this subscription's notifications (see SubscriberChannel.read_all)."""
        return self.channel.read_all(cancel)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._registry.unsubscribe(self.user_id, self.channel)

    def __enter__(self) -> "SubscriptionHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    async def __aenter__(self) -> "SubscriptionHandle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.dispose()


class SubscriptionRegistry:
    """Thread-safe map of user id → ordered list of SubscriberChannel."""

    def __init__(self, channel_capacity: int = 0):
        self.channel_capacity = channel_capacity
        self._lock = threading.Lock()
        self._connections: dict[str, list[SubscriberChannel]] = {}

    def subscribe(self, user_id: str) -> SubscriptionHandle:
        """Register a fresh channel for user_id and return its handle."""
        channel = SubscriberChannel(capacity=self.channel_capacity)
        with self._lock:
            channels = self._connections.setdefault(user_id, [])
            channels.append(channel)
            count = len(channels)
        logger.debug("chat.subscribed", user_id=user_id, channels=count)
        return SubscriptionHandle(self, user_id, channel)

    def unsubscribe(self, user_id: str, channel: SubscriberChannel) -> None:
        """Remove channel from user_id and close it. Safe to call repeatedly."""
        removed = False
        with self._lock:
            channels = self._connections.get(user_id)
            if channels is not None and channel in channels:
                channels.remove(channel)
                removed = True
                if not channels:
                    del self._connections[user_id]
        channel.close()
        if removed:
            logger.debug("chat.unsubscribed", user_id=user_id)

    def snapshot_channels(self, user_id: str) -> tuple[SubscriberChannel, ...]:
        """Point-in-time copy of user_id's channels; empty if not connected."""
        with self._lock:
            return tuple(self._connections.get(user_id, ()))

    def user_ids(self) -> list[str]:
        with self._lock:
            return list(self._connections)

    def channel_count(self) -> int:
        with self._lock:
            return sum(len(channels) for channels in self._connections.values())

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._connections

    def close(self) -> None:
        """Unsubscribe every channel (service shutdown).

        Open streams see their channel closed, drain what is buffered,
        and end on their own.
        """
        with self._lock:
            connections = self._connections
            self._connections = {}
        for channels in connections.values():
            for channel in channels:
                channel.close()
