"""
Broadcast primitives connecting producers to any number of consumers
BroadcastChannel: per-family stream, bounded backlog per subscriber, no replay
WatchChannel: single latest value with change notification
"""

import asyncio
import logging
from collections import deque
from typing import Deque, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CAPACITY = 16


class Subscription(Generic[T]):
    """One consumer's view of a BroadcastChannel"""

    def __init__(self, channel: "BroadcastChannel[T]", capacity: int):
        self._channel = channel
        self._backlog: Deque[T] = deque()
        self._capacity = capacity
        self._available = asyncio.Event()
        self.missed = 0
        self.closed = False

    def _deliver(self, value: T):
        if len(self._backlog) >= self._capacity:
            # Lagging consumer: oldest pending value is lost, newest kept
            self._backlog.popleft()
            self.missed += 1
        self._backlog.append(value)
        self._available.set()

    def pending(self) -> int:
        return len(self._backlog)

    async def recv(self) -> T:
        """Wait for the next published value (FIFO)"""
        while not self._backlog:
            self._available.clear()
            await self._available.wait()
        value = self._backlog.popleft()
        if not self._backlog:
            self._available.clear()
        return value

    def close(self):
        """Stop receiving; the channel forgets this subscriber"""
        if not self.closed:
            self.closed = True
            self._channel._unsubscribe(self)
            self._backlog.clear()


class BroadcastChannel(Generic[T]):
    """
    Multi-consumer channel for one data family
    Publishing never waits on consumers; each subscriber keeps at most
    `capacity` unread values and late subscribers see only new values
    """

    def __init__(self, name: str, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.name = name
        self.capacity = capacity
        self._subscribers: List[Subscription[T]] = []

    @property
    def receiver_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription[T]:
        subscription = Subscription(self, self.capacity)
        self._subscribers.append(subscription)
        logger.debug(f"New subscriber on '{self.name}' ({self.receiver_count} total)")
        return subscription

    def _unsubscribe(self, subscription: Subscription[T]):
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def publish(self, value: T) -> int:
        """Hand value to every current subscriber, returns how many received it"""
        for subscription in list(self._subscribers):
            subscription._deliver(value)
        return len(self._subscribers)


class WatchReceiver(Generic[T]):
    """Tracks which version of a WatchChannel value this consumer has seen"""

    def __init__(self, channel: "WatchChannel[T]"):
        self._channel = channel
        self._seen_version = channel.version

    def has_changed(self) -> bool:
        return self._channel.version > self._seen_version

    async def changed(self):
        """Wait until a value newer than the last seen one is available"""
        while not self.has_changed():
            await self._channel._wait_next()
        self._seen_version = self._channel.version

    def borrow(self) -> T:
        """Current value, read at call time"""
        return self._channel.value


class WatchChannel(Generic[T]):
    """Latest-value-wins channel: bursts of updates collapse into one change"""

    def __init__(self, name: str, initial: T):
        self.name = name
        self._value = initial
        self.version = 0
        self._next = asyncio.Event()

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self) -> WatchReceiver[T]:
        return WatchReceiver(self)

    def send(self, value: T):
        """Replace the value and wake every waiting receiver"""
        self._value = value
        self.version += 1
        fired, self._next = self._next, asyncio.Event()
        fired.set()

    async def _wait_next(self):
        await self._next.wait()
