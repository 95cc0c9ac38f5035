"""
Invalidation bus: a one-topic, payload-free publish/subscribe channel.

Subscribers are told "something changed" and re-read state themselves.
Delivery is fire-and-forget: publish() never raises, a failing subscriber
is logged and skipped, and duplicate or lost signals are tolerated.
"""

import logging
import threading
from concurrent.futures import Executor
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Subscriber = Callable[[], None]


class InvalidationBus:
    """
    Broadcast channel for one kind of change.

    Without an executor, subscribers run inline on the publishing thread.
    With one, each delivery is submitted to it and publish() returns
    immediately.
    """

    def __init__(self, topic: str, executor: Optional[Executor] = None) -> None:
        self.topic = topic
        self._executor = executor
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback.

        Returns:
            A function that removes the subscription (safe to call twice)
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self) -> None:
        """Notify every subscriber that the topic changed."""
        with self._lock:
            subscribers = list(self._subscribers)
        logger.debug("Publishing %s to %d subscriber(s)", self.topic, len(subscribers))
        for callback in subscribers:
            if self._executor is not None:
                try:
                    self._executor.submit(self._deliver, callback)
                except RuntimeError as e:
                    # Executor shut down
                    logger.warning("Dropped %s notification: %s", self.topic, e)
            else:
                self._deliver(callback)

    def _deliver(self, callback: Subscriber) -> None:
        try:
            callback()
        except Exception as e:
            logger.warning("%s subscriber %r failed: %s", self.topic, callback, e,
                           exc_info=True)
