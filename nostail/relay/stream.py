"""Broadcast delivery of notifications to independent readers.

Every reader gets its own bounded buffer. A slow reader never blocks the
relay connections: when its buffer is full the oldest notification is
dropped and the reader is told how many it missed on its next read.
"""

import asyncio
from collections import deque
from typing import Deque

from ..errors import StreamClosed, StreamLagged
from .notifications import Notification


class NotificationStream:
    """One reader's view of the pool's notifications.

    Example:
        stream = pool.notifications()
        while True:
            try:
                notification = await stream.recv()
            except StreamLagged as e:
                print(f"missed {e.skipped}")
                continue
            except StreamClosed:
                break
    """

    def __init__(self, maxsize: int = 1024):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._maxsize = maxsize
        self._buffer: Deque[Notification] = deque()
        self._ready = asyncio.Event()
        self._skipped = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def maxsize(self) -> int:
        return self._maxsize

    def qsize(self) -> int:
        return len(self._buffer)

    def publish(self, notification: Notification) -> bool:
        """Buffer a notification for this reader (never blocks).

        Returns:
            False if the stream is closed and the notification was dropped
        """
        if self._closed:
            return False

        if len(self._buffer) >= self._maxsize:
            self._buffer.popleft()
            self._skipped += 1
        self._buffer.append(notification)
        self._ready.set()
        return True

    def close(self) -> None:
        """Stop accepting notifications; buffered ones can still be read."""
        self._closed = True
        self._ready.set()

    async def recv(self) -> Notification:
        """Wait for the next notification.

        Raises:
            StreamLagged: If notifications were dropped since the last read.
                The next call continues with the oldest one still buffered.
            StreamClosed: If the stream is closed and fully drained
        """
        while True:
            if self._skipped:
                skipped, self._skipped = self._skipped, 0
                raise StreamLagged(skipped)

            if self._buffer:
                return self._buffer.popleft()

            if self._closed:
                raise StreamClosed()

            self._ready.clear()
            await self._ready.wait()

    def __aiter__(self) -> "NotificationStream":
        return self

    async def __anext__(self) -> Notification:
        """Iterate until the stream closes; lag is not reported."""
        while True:
            try:
                return await self.recv()
            except StreamLagged:
                continue
            except StreamClosed:
                raise StopAsyncIteration
