from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable
from typing import Any

from smartshelf.serializers import to_jsonable

logger = logging.getLogger(__name__)

Subscriber = Callable[[str, Any], None]


class NotificationPublisher:
    """Fans live change events out to connected subscribers.

    Delivery is best effort: nothing is persisted and a subscriber that is not
    connected when an event is published never sees it. Subscribers are called
    in the publishing thread, so each one must hand off quickly.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._subscribers: dict[int, Subscriber] = {}

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            subscription_id = next(self._ids)
            self._subscribers[subscription_id] = callback

        def _unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(subscription_id, None)

        return _unsubscribe

    def publish(self, event: str, payload: Any) -> int:
        data = to_jsonable(payload)
        with self._lock:
            targets = list(self._subscribers.items())

        delivered = 0
        for subscription_id, callback in targets:
            try:
                callback(event, data)
            except Exception:
                logger.warning('Dropping live-update subscriber %s after delivery failure', subscription_id, exc_info=True)
                with self._lock:
                    self._subscribers.pop(subscription_id, None)
                continue
            delivered += 1
        return delivered
