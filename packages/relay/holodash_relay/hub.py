"""Lossy publish/subscribe fan-out for streaming sessions."""

from __future__ import annotations

import asyncio


SUBSCRIBER_CAPACITY = 16


class Subscription:
    """Bounded per-subscriber queue; a full queue drops its oldest payload."""

    def __init__(self, hub: BroadcastHub, capacity: int) -> None:
        self._hub = hub
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=capacity)
        self.lagged = 0

    def offer(self, payload: str) -> None:
        while True:
            try:
                self._queue.put_nowait(payload)
                return
            except asyncio.QueueFull:
                self._queue.get_nowait()
                self.lagged += 1

    async def get(self) -> str:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._hub.detach(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class BroadcastHub:
    """Every subscriber sees payloads in publish order, possibly with gaps."""

    def __init__(self, capacity: int = SUBSCRIBER_CAPACITY) -> None:
        self.capacity = max(1, capacity)
        self._subscribers: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        sub = Subscription(self, self.capacity)
        self._subscribers.add(sub)
        return sub

    def detach(self, sub: Subscription) -> None:
        self._subscribers.discard(sub)

    def publish(self, payload: str) -> int:
        """Offer ``payload`` to all subscribers; returns how many were reached."""
        subscribers = list(self._subscribers)
        for sub in subscribers:
            sub.offer(payload)
        return len(subscribers)
