"""
Bounded ordered channel.

Connects the feeder (producer) to the processing pipeline (consumer).
Producers never wait: when the channel is full, the oldest item is dropped
and counted. Memory stays bounded no matter how far the consumer falls
behind, and the consumer always works on the freshest data available.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChannelClosedError(Exception):
    """Raised when putting into a closed channel, or getting from a closed, drained one."""


class BoundedChannel(Generic[T]):
    """
    An asyncio channel with a fixed capacity and drop-oldest overflow.

    Items come out in the order they went in. Closing the channel lets the
    consumer drain what is buffered, then ends iteration.
    """

    def __init__(self, capacity: int, on_drop: Callable[[T], None] | None = None) -> None:
        """
        Create an empty channel.

        Args:
            capacity: Maximum buffered items. Must be positive.
            on_drop: Called with every item discarded on overflow.
        """
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.dropped = 0
        self._on_drop = on_drop
        self._items: deque[T] = deque()
        self._readable = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether `close` was called."""
        return self._closed

    def __len__(self) -> int:
        return len(self._items)

    def put_nowait(self, item: T) -> bool:
        """
        Append an item without waiting.

        Returns:
            False if an older item had to be dropped to make room.

        Raises:
            ChannelClosedError: If the channel is closed.
        """
        if self._closed:
            raise ChannelClosedError("put on a closed channel")

        accepted = True
        if len(self._items) >= self.capacity:
            oldest = self._items.popleft()
            self.dropped += 1
            accepted = False
            if self._on_drop is not None:
                self._on_drop(oldest)

        self._items.append(item)
        self._readable.set()
        return accepted

    async def get(self) -> T:
        """
        Remove and return the oldest item, waiting for one if necessary.

        Raises:
            ChannelClosedError: If the channel is closed and drained.
        """
        while not self._items:
            if self._closed:
                raise ChannelClosedError("channel closed")
            self._readable.clear()
            await self._readable.wait()
        return self._items.popleft()

    def close(self) -> None:
        """Stop accepting items. Buffered items remain readable."""
        self._closed = True
        self._readable.set()

    def __aiter__(self) -> BoundedChannel[T]:
        return self

    async def __anext__(self) -> T:
        try:
            return await self.get()
        except ChannelClosedError:
            raise StopAsyncIteration from None
