"""
In-process fan-out of flight updates to live stream subscribers.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..config import get_settings

logger = logging.getLogger(__name__)


class Subscription:
    """A registered stream listener with its own bounded message queue."""

    def __init__(self, broadcaster: "FlightBroadcaster", maxsize: int):
        self.id = str(uuid4())
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self._broadcaster = broadcaster

    async def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """Wait for the next message; None when ``timeout`` elapses first."""
        if timeout is None:
            return await self.queue.get()
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    def unsubscribe(self) -> None:
        self._broadcaster.unsubscribe(self)


class FlightBroadcaster:
    """
    Delivers each published flight to every subscriber registered at that moment.

    There is no backlog: subscribers only see messages published after they
    subscribe. A subscriber whose queue is full loses that message; other
    subscribers are unaffected.
    """

    def __init__(self, queue_size: Optional[int] = None):
        self.queue_size = queue_size or get_settings().stream_queue_size
        self._subscribers: List[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self.queue_size)
        self._subscribers.append(subscription)
        logger.info(f"Flight stream subscriber {subscription.id} connected ({self.subscriber_count} active)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
            logger.info(
                f"Flight stream subscriber {subscription.id} disconnected "
                f"({self.subscriber_count} active)"
            )

    def publish(self, flight: Dict[str, Any]) -> int:
        """
        Fan a flight payload out to all current subscribers.

        Args:
            flight: JSON-serializable flight representation

        Returns:
            Number of subscribers the message was queued for
        """
        message = json.dumps(flight, default=str)
        delivered = 0

        for subscription in list(self._subscribers):
            try:
                subscription.queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"Flight stream subscriber {subscription.id} is full, dropping update")

        logger.debug(f"Published flight update to {delivered}/{len(self._subscribers)} subscribers")
        return delivered


_broadcaster: Optional[FlightBroadcaster] = None


def get_flight_broadcaster() -> FlightBroadcaster:
    """Get the process-wide broadcaster."""
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = FlightBroadcaster()
    return _broadcaster
