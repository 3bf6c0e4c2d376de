import asyncio
import logging
import threading
from collections import defaultdict
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel

logger = logging.getLogger(__name__)

EVENT_TYPES = ("INSERT", "UPDATE", "DELETE")


class ChangeEvent(BaseModel):
    event_type: str
    campus: str
    new: Optional[dict] = None
    old: Optional[dict] = None


class Subscription:
    def __init__(self, broker: "ListingBroker", campus: str, loop: asyncio.AbstractEventLoop):
        self.broker = broker
        self.campus = campus
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue()

    async def get(self) -> ChangeEvent:
        return await self.queue.get()

    def close(self):
        self.broker.unsubscribe(self)


class ListingBroker:
    """
    Fans listing change events out to per-campus subscribers.

    Stores publish from request worker threads, so delivery hops onto each
    subscriber's event loop.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[Subscription]] = defaultdict(list)

    def subscribe(self, campus: str) -> Subscription:
        sub = Subscription(self, campus, asyncio.get_running_loop())

        with self._lock:
            self._subscribers[campus].append(sub)

        return sub

    def unsubscribe(self, sub: Subscription):
        with self._lock:
            subs = self._subscribers.get(sub.campus, [])
            if sub in subs:
                subs.remove(sub)

    def subscriber_count(self, campus: str) -> int:
        with self._lock:
            return len(self._subscribers.get(campus, []))

    def publish(self, event_type: str, campus: str, new: Optional[dict] = None, old: Optional[dict] = None):
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type {event_type}")

        event = ChangeEvent(event_type=event_type, campus=campus, new=new, old=old)

        with self._lock:
            targets: List[Tuple[Subscription, asyncio.AbstractEventLoop]] = [
                (sub, sub.loop) for sub in self._subscribers.get(campus, [])
            ]

        for sub, loop in targets:
            try:
                loop.call_soon_threadsafe(sub.queue.put_nowait, event)
            except RuntimeError:
                # loop already closed, the websocket is gone
                logger.debug("Dropping event for closed subscriber on %s", campus)
                self.unsubscribe(sub)
