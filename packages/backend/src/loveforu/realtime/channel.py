"""Subscriber channel — one delivery queue per streaming connection.

Learn: The producer side (write) never awaits. It appends to a deque and
sets an asyncio.Event to wake the consumer. The consumer side (read_all)
is an async iterator that drains the deque, then parks on the event
until something new arrives, the channel is closed, or it is cancelled.

Capacity policy: 0 means unbounded. With a bound, a full channel is
treated as a consumer that has fallen too far behind: the write is
dropped, the channel is closed for writes, and write() returns False so
the publisher prunes it. We never apply backpressure to the chat write
path.

Threads: write() and close() may be called from any thread. The consumer
records its event loop when it starts reading; a wakeup from another
thread is handed to that loop with call_soon_threadsafe, since
asyncio.Event.set() is only safe on its own loop.
"""

import asyncio
from collections import deque
from collections.abc import AsyncIterator
from typing import Optional

from loveforu.realtime.notifications import ChatNotification


class SubscriberChannel:
    """Single-consumer FIFO of ChatNotification with a closed flag."""

    def __init__(self, capacity: int = 0):
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self.capacity = capacity
        self._buffer: deque[ChatNotification] = deque()
        self._wakeup = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Notifications written but not yet read."""
        return len(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def write(self, notification: ChatNotification) -> bool:
        """Try to enqueue without blocking.

        Returns False if the channel no longer accepts writes: either it
        was closed, or it was bounded and full (in which case it is closed
        here). The caller should treat False as "prune this channel".
        """
        if self._closed:
            return False
        if self.capacity and len(self._buffer) >= self.capacity:
            self.close()
            return False
        self._buffer.append(notification)
        self._wake()
        return True

    def close(self) -> None:
        """Stop accepting writes. Buffered notifications stay readable."""
        self._closed = True
        self._wake()

    def _wake(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            # no reader parked yet; it checks the buffer before waiting
            self._wakeup.set()
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._wakeup.set()
        else:
            loop.call_soon_threadsafe(self._wakeup.set)

    async def read_all(
        self, cancel: Optional[asyncio.Event] = None
    ) -> AsyncIterator[ChatNotification]:
        """Yield notifications in write order until closed and drained.

        Suspends while the buffer is empty. Ends early (without raising)
        when `cancel` is set; task cancellation propagates as usual.
        """
        self._loop = asyncio.get_running_loop()
        while True:
            while self._buffer:
                if cancel is not None and cancel.is_set():
                    return
                yield self._buffer.popleft()

            if self._closed:
                return
            if cancel is not None and cancel.is_set():
                return

            self._wakeup.clear()
            if cancel is None:
                await self._wakeup.wait()
            else:
                await self._wait_either(cancel)

    async def _wait_either(self, cancel: asyncio.Event) -> None:
        """Park until the channel has news or the cancel event fires."""
        waiters = [
            asyncio.ensure_future(self._wakeup.wait()),
            asyncio.ensure_future(cancel.wait()),
        ]
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()
