"""
Event bus for integration events.

Synchronous in-process pub/sub. Handlers execute immediately in the same
thread as the publisher. Handler errors are logged but never propagate:
a broken observability sink must not change a job's outcome.
"""

import logging
import threading
from typing import Callable, Dict, List

from core.events import PortalEvent

logger = logging.getLogger(__name__)


class EventBus:
    """
    In-process event bus for integration events.

    Subscribe by event class name (string), publish by event instance.
    Handlers are called synchronously in subscription order. Safe to publish
    from several worker threads at once.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, callback: Callable):
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Name of event class to subscribe to (e.g. 'JobFailedPermanently')
            callback: Function to call when event is published
        """
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(callback)

    def publish(self, event: PortalEvent):
        """
        Publish an event to all subscribers of that type.

        Handlers are called synchronously in subscription order.
        Handler errors are logged but do not propagate.

        Args:
            event: PortalEvent instance to publish
        """
        event_type = event.__class__.__name__

        with self._lock:
            callbacks = list(self._subscribers.get(event_type, ()))

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Handler %s failed for %s (event_id=%s)",
                    getattr(callback, "__name__", repr(callback)),
                    event_type,
                    event.event_id,
                )
