"""Reload notification fan-out to connected preview clients."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from typing import Optional, Set

from .logging import get_logger


@dataclass(eq=False)
class Subscription:
    """One connected client: an asyncio queue bound to the loop that reads it."""

    loop: asyncio.AbstractEventLoop
    queue: "asyncio.Queue[int]" = field(default_factory=asyncio.Queue)

    async def next(self, timeout: Optional[float] = None) -> Optional[int]:
        """Wait for the next notification number, or None on timeout."""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None


class ReloadBroadcaster:
    """Delivers reload signals from the watch thread to every subscriber.

    ``publish`` may be called from any thread; delivery is handed to each
    subscriber's event loop with ``call_soon_threadsafe``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: Set[Subscription] = set()
        self.published = 0
        self.logger = get_logger("notify")

    def subscribe(self) -> Subscription:
        """Register a subscriber; must be called from inside a running event loop."""
        subscription = Subscription(loop=asyncio.get_running_loop())
        with self._lock:
            self._subscribers.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self) -> int:
        """Send one reload signal to all subscribers; returns the signal number."""
        with self._lock:
            self.published += 1
            number = self.published
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            try:
                subscription.loop.call_soon_threadsafe(subscription.queue.put_nowait, number)
            except RuntimeError:
                # Loop already closed; the client is gone.
                self.unsubscribe(subscription)
        self.logger.debug("Reload #%d sent to %d clients", number, len(subscribers))
        return number


__all__ = ["ReloadBroadcaster", "Subscription"]
