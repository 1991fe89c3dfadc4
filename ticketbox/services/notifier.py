"""
Seat-change event fan-out.

The reservation and booking code only needs ``publish(showtime_id, payload)``.
Delivery is best effort: publish never blocks and never raises into the
caller. ``ShowtimeBroadcaster`` is the in-process implementation behind the
showtime WebSocket; each subscriber owns a bounded queue on its own event
loop, and events for a full queue are dropped.
"""
import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Protocol
from uuid import UUID

from ticketbox.core.config import settings
from ticketbox.schemas.events import SeatChangeEvent

logger = logging.getLogger(__name__)


class EventNotifier(Protocol):
    def publish(self, showtime_id: UUID, payload: dict) -> None:
        ...


def notify(notifier: EventNotifier, event: SeatChangeEvent) -> None:
    """Publish an event; a delivery failure is logged, never raised."""
    try:
        notifier.publish(event.showtime_id, event.model_dump(mode="json", exclude_none=True))
    except Exception:
        logger.exception(
            "Failed to publish %s for showtime %s", event.type, event.showtime_id
        )


@dataclass(eq=False)
class Subscription:
    showtime_id: str
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue
    dropped: int = field(default=0)

    async def receive(self) -> dict:
        return await self.queue.get()


class ShowtimeBroadcaster:
    def __init__(self, buffer_size: int = settings.EVENT_BUFFER_SIZE):
        self._buffer_size = buffer_size
        self._subscribers: Dict[str, List[Subscription]] = {}
        # Guards the subscriber map only; never held across I/O.
        self._lock = threading.Lock()

    def subscribe(self, showtime_id) -> Subscription:
        """Register a subscriber; must be called from the consuming event loop."""
        sub = Subscription(
            showtime_id=str(showtime_id),
            loop=asyncio.get_running_loop(),
            queue=asyncio.Queue(maxsize=self._buffer_size),
        )
        with self._lock:
            self._subscribers.setdefault(sub.showtime_id, []).append(sub)
        logger.debug("Subscribed to showtime %s", sub.showtime_id)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscribers.get(sub.showtime_id)
            if not subs:
                return
            if sub in subs:
                subs.remove(sub)
            if not subs:
                del self._subscribers[sub.showtime_id]

    def subscriber_count(self, showtime_id) -> int:
        with self._lock:
            return len(self._subscribers.get(str(showtime_id), ()))

    def publish(self, showtime_id, payload: dict) -> None:
        with self._lock:
            subs = list(self._subscribers.get(str(showtime_id), ()))

        for sub in subs:
            try:
                sub.loop.call_soon_threadsafe(self._deliver, sub, payload)
            except RuntimeError:
                # Subscriber's loop is closed; it will never read again.
                self.unsubscribe(sub)

    @staticmethod
    def _deliver(sub: Subscription, payload: dict) -> None:
        try:
            sub.queue.put_nowait(payload)
        except asyncio.QueueFull:
            sub.dropped += 1
            logger.warning(
                "Subscriber queue full for showtime %s, dropping %s event",
                sub.showtime_id,
                payload.get("type"),
            )


broadcaster = ShowtimeBroadcaster()
