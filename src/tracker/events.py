"""Ordered publish channel for tracker events."""

import logging
import queue
import threading
from typing import Iterator, List, Optional

from .models import TrackerEvent

logger = logging.getLogger(__name__)


class Subscription:
    """
    A reader's bounded view of the event stream.

    Events arrive in publish order. When the reader falls behind and the
    queue is full, the oldest undelivered event is dropped.
    """

    def __init__(self, bus: "EventBus", maxsize: int):
        self._bus = bus
        self._queue: "queue.Queue[TrackerEvent]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def _offer(self, event: TrackerEvent) -> None:
        while True:
            try:
                self._queue.put_nowait(event)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

    def get(self, timeout: Optional[float] = None) -> Optional[TrackerEvent]:
        """
        Wait for the next event.

        Args:
            timeout: Seconds to wait, or None to wait forever

        Returns:
            The next event, or None if the timeout expired
        """
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[TrackerEvent]:
        """Return every event currently queued without blocking."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def __iter__(self) -> Iterator[TrackerEvent]:
        """Blocking iterator over events."""
        while True:
            yield self._queue.get()

    def close(self) -> None:
        """Stop receiving events."""
        self._bus.unsubscribe(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class EventBus:
    """
    Fan-out of tracker events to any number of subscribers.

    publish() never blocks on readers.
    """

    def __init__(self, queue_size: int = 256):
        self.queue_size = queue_size
        self._subscribers: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, maxsize: Optional[int] = None) -> Subscription:
        """
        Register a new reader.

        Args:
            maxsize: Queue size for this reader (defaults to the bus size)

        Returns:
            The subscription to read events from
        """
        subscription = Subscription(self, maxsize or self.queue_size)
        with self._lock:
            self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """
        Remove a reader.

        Returns:
            True if the subscription was registered
        """
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)
                return True
            return False

    def publish(self, event: TrackerEvent) -> None:
        """Deliver an event to every current subscriber."""
        logger.debug(f"Publishing {event.event_type.value} event for {event.root}")
        # Held across delivery so concurrent publishers cannot interleave.
        with self._lock:
            for subscription in self._subscribers:
                subscription._offer(event)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)
